# cvtailor\schemas\generation.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from cvtailor.db.models import GenerationMode

MIN_JOB_DESCRIPTION_LENGTH = 50
MAX_JOB_DESCRIPTION_LENGTH = 50_000
MAX_COMPANY_NAME_LENGTH = 100

# Wire format is camelCase; Python side stays snake_case.
_camel = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Schema for a generation request (used in POST /generate)
class CvGenerationRequest(BaseModel):
    job_description: str = Field(..., min_length=MIN_JOB_DESCRIPTION_LENGTH, max_length=MAX_JOB_DESCRIPTION_LENGTH)
    company_name: Optional[str] = Field(None, max_length=MAX_COMPANY_NAME_LENGTH)
    mode: GenerationMode = GenerationMode.EXPERIENCED
    force_regenerate: bool = False

    model_config = _camel

    @field_validator("job_description")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Job description is required")
        return value


class MatchScoreView(BaseModel):
    keyword_coverage: Optional[int] = None
    recruiter_fit: Optional[int] = None

    model_config = _camel


class DetectedKeywordsView(BaseModel):
    must_have: List[str] = []
    nice_to_have: List[str] = []
    soft_skills: List[str] = []

    model_config = _camel


class KeywordTiersView(BaseModel):
    proficient: List[str] = []
    exposure: List[str] = []
    awareness: List[str] = []

    model_config = _camel


class LearningRoadmapView(BaseModel):
    seven_days: List[str] = []
    fourteen_days: List[str] = []
    twenty_one_days: List[str] = []

    model_config = _camel


class CoachBriefView(BaseModel):
    skill_gaps: List[str] = []
    learning_roadmap: Optional[LearningRoadmapView] = None
    interview_questions: List[str] = []

    model_config = _camel


# Schema for status and result responses. Null fields are dropped by the router.
class CvGenerationResponse(BaseModel):
    id: Optional[str] = None
    status: str # 'PROCESSING', 'COMPLETED' or 'FAILED'
    progress: Optional[int] = None
    current_step: Optional[str] = None
    mode: Optional[GenerationMode] = None
    company_name: Optional[str] = None
    job_title: Optional[str] = None
    recruiter_domain: Optional[str] = None
    match_score: Optional[MatchScoreView] = None
    detected_keywords: Optional[DetectedKeywordsView] = None
    keyword_tiers: Optional[KeywordTiersView] = None
    coach_brief: Optional[CoachBriefView] = None
    pdf_url: Optional[str] = None
    tex_url: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    model_config = _camel


class CacheStatsResponse(BaseModel):
    total_entries: int
    completed_entries: int
    in_flight: int

    model_config = _camel


class SweepResponse(BaseModel):
    removed: int


class ProfileReloadResponse(BaseModel):
    status: str = "ok"
    name: str

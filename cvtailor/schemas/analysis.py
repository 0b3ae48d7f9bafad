# cvtailor\schemas\analysis.py

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Structured payload authored by the LLM inside content[0].text.
# Unknown keys are ignored so prompt tweaks never break parsing.


class DetectedKeywords(BaseModel):
    must_have: List[str] = Field(default_factory=list)
    nice_to_have: List[str] = Field(default_factory=list)
    soft_skills: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class RecruiterModel(BaseModel):
    domain: Optional[str] = None
    detected_keywords: Optional[DetectedKeywords] = None

    model_config = ConfigDict(extra="ignore")


class KeywordTiers(BaseModel):
    proficient: List[str] = Field(default_factory=list)
    exposure: List[str] = Field(default_factory=list)
    awareness: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class MatchScore(BaseModel):
    keyword_coverage_pct: Optional[int] = None
    recruiter_fit_pct: Optional[int] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("keyword_coverage_pct", "recruiter_fit_pct")
    @classmethod
    def clamp_percentage(cls, value: Optional[int]) -> Optional[int]:
        if value is None:
            return None
        return max(0, min(100, value))


class LearningRoadmap(BaseModel):
    seven_days: List[str] = Field(default_factory=list, alias="7_days")
    fourteen_days: List[str] = Field(default_factory=list, alias="14_days")
    twenty_one_days: List[str] = Field(default_factory=list, alias="21_days")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CoachBrief(BaseModel):
    skill_gaps: List[str] = Field(default_factory=list)
    learning_roadmap: Optional[LearningRoadmap] = None
    interview_questions: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class GenerationResult(BaseModel):
    """Parsed response of the generation API."""
    status: Optional[str] = None
    recruiter_model: Optional[RecruiterModel] = None
    keyword_tiers: Optional[KeywordTiers] = None
    match_score: Optional[MatchScore] = None
    latex_cv: Optional[str] = None
    coach_brief: Optional[CoachBrief] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def is_success(self) -> bool:
        return (
            (self.status or "").strip().lower() == "ok"
            and bool(self.latex_cv and self.latex_cv.strip())
        )

    def analysis_payload(self) -> dict:
        """Everything except the LaTeX source, in the wire key format."""
        return self.model_dump(by_alias=True, exclude={"latex_cv", "status"}, exclude_none=True)

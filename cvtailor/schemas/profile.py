# cvtailor\schemas\profile.py

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# The profile is free-form beyond the few fields we rely on; everything else
# is passed through to the prompt untouched.


class PersonalInfo(BaseModel):
    name: str
    location: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin: Optional[str] = None
    github: Optional[str] = None
    website: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class CandidateProfile(BaseModel):
    personal: PersonalInfo
    summary: Optional[str] = None
    education: List[dict[str, Any]] = Field(min_length=1)
    experience: List[dict[str, Any]] = Field(min_length=1)
    skills: dict[str, Any] = Field(default_factory=dict)
    certifications: List[dict[str, Any]] = Field(default_factory=list)
    projects: List[dict[str, Any]] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")

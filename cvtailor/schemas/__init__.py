# cvtailor\schemas\__init__.py

from .generation import (
    CvGenerationRequest, CvGenerationResponse, CacheStatsResponse,
    SweepResponse, ProfileReloadResponse,
)
from .analysis import GenerationResult, CoachBrief, KeywordTiers, MatchScore
from .profile import CandidateProfile

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from cvtailor.api.deps import get_orchestrator
from cvtailor.core.exceptions import ProfileError
from cvtailor.schemas.generation import CacheStatsResponse, ProfileReloadResponse, SweepResponse
from cvtailor.services.orchestrator import GenerationOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/profile/reload", response_model=ProfileReloadResponse)
def reload_profile_endpoint(orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """Re-reads the candidate profile and instruction files from DATA_DIR."""
    try:
        data = orchestrator.reload_profile()
    except ProfileError as e:
        logger.error(f"Profile reload failed: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.detail())
    return ProfileReloadResponse(name=data.profile.personal.name)


@router.post("/cache/sweep", response_model=SweepResponse)
def sweep_cache_endpoint(orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """Deletes every generation older than the cache TTL."""
    return SweepResponse(removed=orchestrator.sweep_expired())


@router.get("/cache/stats", response_model=CacheStatsResponse)
def cache_stats_endpoint(orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    stats = orchestrator.stats()
    return CacheStatsResponse(
        total_entries=stats.total_entries,
        completed_entries=stats.completed_entries,
        in_flight=stats.in_flight,
    )

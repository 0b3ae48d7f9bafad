import io
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import StreamingResponse

# --- Local Imports ---
from cvtailor.api.deps import get_orchestrator
from cvtailor.core.exceptions import JobDescriptionError
from cvtailor.db.models import GeneratedCv, GenerationStatus
from cvtailor.schemas.analysis import CoachBrief, DetectedKeywords, KeywordTiers
from cvtailor.schemas.generation import (
    CoachBriefView,
    CvGenerationRequest,
    CvGenerationResponse,
    DetectedKeywordsView,
    KeywordTiersView,
    LearningRoadmapView,
    MatchScoreView,
)
from cvtailor.services.orchestrator import GenerationOrchestrator, GenerationSnapshot

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generation"])

STATUS_LABELS = {
    GenerationStatus.PENDING: "PROCESSING",
    GenerationStatus.COMPLETED: "COMPLETED",
    GenerationStatus.FAILED: "FAILED",
}

MEDIA_TYPES = {"pdf": "application/pdf", "tex": "application/x-tex"}


# --- Response Builders ---

def download_urls(record_id: str) -> dict:
    return {
        "pdf_url": f"/api/v1/download/{record_id}/pdf",
        "tex_url": f"/api/v1/download/{record_id}/tex",
    }


def build_status_response(snapshot: GenerationSnapshot) -> CvGenerationResponse:
    """Status-only view: progress while processing, error when failed, links when done."""
    record = snapshot.record
    response = CvGenerationResponse(
        id=record.id,
        status=STATUS_LABELS[record.status],
        created_at=record.created_at,
    )
    if record.is_pending:
        response.progress = snapshot.progress
        response.current_step = snapshot.current_step
    elif record.is_failed:
        response.error_message = record.error_message
        response.completed_at = record.completed_at
    elif record.is_completed:
        response.progress = 100
        response.completed_at = record.completed_at
        response.pdf_url = download_urls(record.id)["pdf_url"]
        response.tex_url = download_urls(record.id)["tex_url"]
    return response


def build_result_response(record: GeneratedCv) -> CvGenerationResponse:
    """Full payload of a completed generation."""
    analysis = record.analysis or {}
    response = CvGenerationResponse(
        id=record.id,
        status=STATUS_LABELS[record.status],
        progress=100,
        mode=record.mode,
        company_name=record.company_name,
        job_title=record.job_title,
        recruiter_domain=record.recruiter_domain,
        created_at=record.created_at,
        completed_at=record.completed_at,
        **download_urls(record.id),
    )

    if record.keyword_coverage is not None or record.recruiter_fit is not None:
        response.match_score = MatchScoreView(
            keyword_coverage=record.keyword_coverage,
            recruiter_fit=record.recruiter_fit,
        )

    detected = (analysis.get("recruiter_model") or {}).get("detected_keywords")
    if detected:
        keywords = DetectedKeywords.model_validate(detected)
        response.detected_keywords = DetectedKeywordsView(**keywords.model_dump())

    if analysis.get("keyword_tiers"):
        tiers = KeywordTiers.model_validate(analysis["keyword_tiers"])
        response.keyword_tiers = KeywordTiersView(**tiers.model_dump())

    if analysis.get("coach_brief"):
        brief = CoachBrief.model_validate(analysis["coach_brief"])
        roadmap = None
        if brief.learning_roadmap is not None:
            roadmap = LearningRoadmapView(**brief.learning_roadmap.model_dump())
        response.coach_brief = CoachBriefView(
            skill_gaps=brief.skill_gaps,
            learning_roadmap=roadmap,
            interview_questions=brief.interview_questions,
        )

    return response


def get_snapshot_or_404(orchestrator: GenerationOrchestrator, record_id: UUID) -> GenerationSnapshot:
    snapshot = orchestrator.get_status(str(record_id))
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Generation not found.")
    return snapshot


# --- Generation Endpoints ---

@router.post(
    "/generate",
    response_model=CvGenerationResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_202_ACCEPTED,
)
def generate_cv_endpoint(
    payload: CvGenerationRequest,
    response: Response,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Starts a generation, or returns the cached result for an identical job description."""
    try:
        submitted = orchestrator.submit(
            payload.job_description,
            mode=payload.mode,
            force_regenerate=payload.force_regenerate,
            company_name=payload.company_name,
        )
    except JobDescriptionError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    if submitted.cache_hit:
        snapshot = orchestrator.get_result(submitted.id)
        if snapshot is not None and snapshot.record.is_completed:
            response.status_code = status.HTTP_200_OK
            return build_result_response(snapshot.record)

    return CvGenerationResponse(
        id=submitted.id,
        status="PROCESSING",
        progress=0,
        current_step="Starting CV generation...",
    )


@router.get("/status/{record_id}", response_model=CvGenerationResponse, response_model_exclude_none=True)
def get_status_endpoint(record_id: UUID, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """Polled by clients until the generation is COMPLETED or FAILED."""
    return build_status_response(get_snapshot_or_404(orchestrator, record_id))


@router.get("/result/{record_id}", response_model=CvGenerationResponse, response_model_exclude_none=True)
def get_result_endpoint(record_id: UUID, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """Full result once completed; the status view otherwise."""
    snapshot = orchestrator.get_result(str(record_id))
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Generation not found.")
    if snapshot.record.is_completed:
        return build_result_response(snapshot.record)
    return build_status_response(snapshot)


@router.delete("/cache/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_generation_endpoint(record_id: UUID, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """Evicts one generation from the cache."""
    if not orchestrator.delete(str(record_id)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Generation not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Download Endpoints ---

@router.get("/download/{record_id}/{file_type}")
def download_artifact_endpoint(
    record_id: UUID,
    file_type: str,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Downloads the compiled PDF or the LaTeX source of a completed generation."""
    if file_type not in MEDIA_TYPES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown file type '{file_type}'.")

    record = get_snapshot_or_404(orchestrator, record_id).record
    if not record.is_completed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Generation is {STATUS_LABELS[record.status]}; nothing to download yet.",
        )

    content = record.pdf_content if file_type == "pdf" else (record.latex_content or "").encode("utf-8")
    if not content:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Downloadable file not found for this generation.")

    filename = orchestrator.artifact_filename(record, file_type)
    logger.info(f"Serving {file_type} download for generation {record.id} as {filename}")
    return StreamingResponse(
        io.BytesIO(content),
        media_type=MEDIA_TYPES[file_type],
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )

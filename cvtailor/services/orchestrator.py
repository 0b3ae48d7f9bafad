"""Coordinates CV generation: cache lookup, record creation and the background pipeline.

``submit`` returns as soon as a PENDING record exists; the pipeline
(assemble prompt -> generate -> compile -> persist -> audit) then runs on the
worker pool and moves the record to COMPLETED or FAILED exactly once.
Failures inside the pipeline are recorded on the record and never raised back
to the submitter.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import NamedTuple, Optional

from cvtailor.core.config import Settings
from cvtailor.core.exceptions import (
    ErrorKind,
    JobDescriptionError,
    PipelineError,
    ProfileError,
    StorageError,
)
from cvtailor.db.models import GeneratedCv, GenerationMode, GenerationStatus, new_generation_id, utcnow
from cvtailor.schemas.generation import (
    MAX_COMPANY_NAME_LENGTH,
    MAX_JOB_DESCRIPTION_LENGTH,
    MIN_JOB_DESCRIPTION_LENGTH,
)
from cvtailor.services.ai.claude_client import ClaudeGenerationClient
from cvtailor.services.ai.prompts import build_request
from cvtailor.services.audit import AuditWebhookNotifier
from cvtailor.services.hashing import fingerprint
from cvtailor.services.latex_compiler import LatexCompiler
from cvtailor.services.naming import document_filename, extract_company_name, extract_job_title
from cvtailor.services.profile import CandidateData, CandidateProfileProvider
from cvtailor.services.worker_pool import GenerationWorkerPool
from cvtailor.storage.result_store import ResultStore

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Generation was interrupted by a server restart; please resubmit"


class SubmitResult(NamedTuple):
    id: str
    cache_hit: bool


@dataclass(frozen=True)
class GenerationSnapshot:
    """A record plus the progress estimate shown while it is pending."""
    record: GeneratedCv
    progress: Optional[int]
    current_step: Optional[str]


@dataclass(frozen=True)
class CacheStats:
    total_entries: int
    completed_entries: int
    in_flight: int


def estimate_progress(created_at: Optional[datetime], now: Optional[datetime] = None) -> int:
    """
    Guesses pipeline progress from elapsed time. A typical run takes 20-30s:
    0-5s analysing (10-30%), 5-15s generating (30-70%), 15-25s compiling
    (70-90%), then a slow creep capped at 99%.
    """
    if created_at is None:
        return 0
    elapsed_ms = int(((now or utcnow()) - created_at).total_seconds() * 1000)
    elapsed_ms = max(0, elapsed_ms)

    if elapsed_ms < 5000:
        return 10 + elapsed_ms // 250
    if elapsed_ms < 15000:
        return 30 + (elapsed_ms - 5000) // 250
    if elapsed_ms < 25000:
        return 70 + (elapsed_ms - 15000) // 500
    return min(99, 90 + (elapsed_ms - 25000) // 1000)


def progress_step(progress: int) -> str:
    if progress < 30:
        return "Analyzing job description..."
    if progress < 70:
        return "Generating LaTeX CV..."
    if progress < 90:
        return "Compiling PDF..."
    return "Finishing up..."


def validate_submission(job_description: Optional[str], company_name: Optional[str] = None) -> None:
    """Raises JobDescriptionError for input that must never reach the pipeline."""
    if job_description is None or not job_description.strip():
        raise JobDescriptionError("Job description is required")
    if len(job_description) < MIN_JOB_DESCRIPTION_LENGTH:
        raise JobDescriptionError(f"Job description must be at least {MIN_JOB_DESCRIPTION_LENGTH} characters")
    if len(job_description) > MAX_JOB_DESCRIPTION_LENGTH:
        raise JobDescriptionError(f"Job description must not exceed {MAX_JOB_DESCRIPTION_LENGTH} characters")
    if company_name is not None and len(company_name) > MAX_COMPANY_NAME_LENGTH:
        raise JobDescriptionError(f"Company name must not exceed {MAX_COMPANY_NAME_LENGTH} characters")


class GenerationOrchestrator:

    def __init__(
        self,
        settings: Settings,
        store: ResultStore,
        profile_provider: CandidateProfileProvider,
        generation_client: ClaudeGenerationClient,
        compiler: LatexCompiler,
        worker_pool: GenerationWorkerPool,
        audit: Optional[AuditWebhookNotifier] = None,
    ):
        self.settings = settings
        self.store = store
        self.profile_provider = profile_provider
        self.generation_client = generation_client
        self.compiler = compiler
        self.worker_pool = worker_pool
        self.audit = audit
        self.cache_ttl = timedelta(hours=settings.CACHE_TTL_HOURS)
        # fingerprint -> id of the pipeline currently running for it in this process
        self._in_flight: dict[str, str] = {}
        self._lock = threading.Lock()

    # --- Submission ---

    def submit(
        self,
        job_description: str,
        mode: GenerationMode = GenerationMode.EXPERIENCED,
        force_regenerate: bool = False,
        company_name: Optional[str] = None,
    ) -> SubmitResult:
        """
        Returns the id to poll. A completed, unexpired record with the same
        job description is returned as a cache hit unless force_regenerate is
        set; otherwise a new PENDING record is created and its pipeline queued.

        Raises:
            JobDescriptionError: Invalid input. No record is created.
            StorageError: The record could not be stored.
        """
        validate_submission(job_description, company_name)
        jd_hash = fingerprint(job_description)

        if not force_regenerate:
            cached = self.find_cached(jd_hash)
            if cached is not None:
                logger.info(f"Cache hit for JD hash {jd_hash}, returning generation {cached.id}")
                return SubmitResult(cached.id, True)

        company = company_name.strip() if company_name and company_name.strip() else extract_company_name(job_description)
        record = GeneratedCv(
            jd_hash=jd_hash,
            job_description=job_description,
            company_name=company,
            job_title=extract_job_title(job_description),
            mode=mode,
        )

        # Only the reservation happens under the lock; the insert runs outside it
        with self._lock:
            running_id = self._in_flight.get(jd_hash)
            if running_id is not None and not force_regenerate:
                logger.info(f"Generation {running_id} already running for JD hash {jd_hash}, joining it")
                return SubmitResult(running_id, False)
            record.id = new_generation_id()
            self._in_flight[jd_hash] = record.id

        try:
            record = self.store.insert(record)
        except StorageError:
            self._release(jd_hash, record.id)
            raise

        logger.info(f"Cache miss for JD hash {jd_hash}, queued generation {record.id} ({mode.value}, company={company})")
        try:
            self.worker_pool.submit(f"generation-{record.id}", self.run_pipeline, record.id, jd_hash)
        except RuntimeError as e:
            self._release(jd_hash, record.id)
            self._mark_failed(record, PipelineError(f"Could not queue generation: {e}", kind=ErrorKind.UNEXPECTED))
        return SubmitResult(record.id, False)

    def find_cached(self, jd_hash: str) -> Optional[GeneratedCv]:
        """Newest completed record for the hash, if it is younger than the cache TTL."""
        cached = self.store.find_completed_by_fingerprint(jd_hash)
        if cached is None:
            return None
        if cached.created_at < utcnow() - self.cache_ttl:
            logger.debug(f"Cached generation {cached.id} is older than {self.settings.CACHE_TTL_HOURS}h, ignoring")
            return None
        return cached

    # --- Queries ---

    def get_status(self, record_id: str, now: Optional[datetime] = None) -> Optional[GenerationSnapshot]:
        record = self.store.find_by_id(record_id)
        if record is None:
            return None
        if record.is_pending:
            progress = estimate_progress(record.created_at, now)
            return GenerationSnapshot(record, progress, progress_step(progress))
        if record.is_completed:
            return GenerationSnapshot(record, 100, "Complete")
        return GenerationSnapshot(record, None, None)

    def get_result(self, record_id: str, now: Optional[datetime] = None) -> Optional[GenerationSnapshot]:
        # Same lookup; callers render the full payload once the record is COMPLETED
        return self.get_status(record_id, now)

    def artifact_filename(self, record: GeneratedCv, extension: str) -> str:
        try:
            candidate_name = self.profile_provider.get_profile().personal.name
        except ProfileError as e:
            logger.warning(f"Could not load candidate name for download filename: {e}")
            candidate_name = "Candidate"
        return document_filename(candidate_name, record.company_name, extension)

    def stats(self) -> CacheStats:
        return CacheStats(
            total_entries=self.store.count(),
            completed_entries=self.store.count(GenerationStatus.COMPLETED),
            in_flight=self.worker_pool.in_flight,
        )

    # --- Maintenance ---

    def delete(self, record_id: str) -> bool:
        return self.store.delete(record_id)

    def sweep_expired(self) -> int:
        cutoff = utcnow() - self.cache_ttl
        removed = self.store.delete_older_than(cutoff)
        logger.info(f"Cache sweep removed {removed} generations older than {self.settings.CACHE_TTL_HOURS}h")
        return removed

    def recover_interrupted(self) -> int:
        """Fails every PENDING record; their pipelines died with the previous process."""
        error = PipelineError(INTERRUPTED_MESSAGE, kind=ErrorKind.UNEXPECTED)
        count = self.store.fail_pending(error.detail(), error.kind.value)
        if count:
            logger.warning(f"Marked {count} interrupted generations as FAILED")
        return count

    def reload_profile(self) -> CandidateData:
        return self.profile_provider.reload()

    def shutdown(self, wait: bool = True) -> None:
        self.worker_pool.shutdown(wait=wait)
        self.generation_client.close()
        self.compiler.close()
        if self.audit is not None:
            self.audit.close()

    # --- Pipeline ---

    def run_pipeline(self, record_id: str, jd_hash: Optional[str] = None) -> None:
        """
        Drives one PENDING record to a terminal state. Never raises.

        jd_hash is the fingerprint reserved at submit time; it is released on
        every exit, including when the record was deleted before the run began.
        """
        try:
            try:
                record = self.store.find_by_id(record_id)
            except StorageError as e:
                logger.error(f"Could not load generation {record_id}: {e}")
                return
            if record is None:
                logger.warning(f"Generation {record_id} vanished before its pipeline started")
                return
            jd_hash = jd_hash or record.jd_hash
            self._run(record)
        finally:
            if jd_hash is not None:
                self._release(jd_hash, record_id)

    def _run(self, record: GeneratedCv) -> None:
        logger.info(f"Starting generation {record.id}")
        try:
            self._execute(record)
        except PipelineError as e:
            logger.error(f"Generation {record.id} failed: {e.detail()}")
            self._mark_failed(record, e)
        except StorageError as e:
            logger.error(f"Generation {record.id} could not be persisted: {e}")
            self._mark_failed(record, PipelineError(f"Could not persist result: {e}", kind=ErrorKind.UNEXPECTED))
        except Exception as e:
            logger.exception(f"Unexpected error in generation {record.id}")
            self._mark_failed(record, PipelineError(f"Unexpected error: {e}", kind=ErrorKind.UNEXPECTED))

    def _execute(self, record: GeneratedCv) -> None:
        candidate = self.profile_provider.get()
        request = build_request(candidate, record.job_description, record.mode)

        started = time.monotonic()
        result = self.generation_client.generate(request)
        record.generation_time_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Generation {record.id}: LaTeX received in {record.generation_time_ms}ms")

        started = time.monotonic()
        try:
            pdf_bytes = self.compiler.compile(result.latex_cv)
        except PipelineError:
            record.debug_source = result.latex_cv
            raise
        record.compilation_time_ms = int((time.monotonic() - started) * 1000)

        recruiter = result.recruiter_model
        scores = result.match_score
        record.status = GenerationStatus.COMPLETED
        record.latex_content = result.latex_cv
        record.pdf_content = pdf_bytes
        record.analysis = result.analysis_payload()
        record.recruiter_domain = recruiter.domain[:50] if recruiter and recruiter.domain else None
        record.keyword_coverage = scores.keyword_coverage_pct if scores else None
        record.recruiter_fit = scores.recruiter_fit_pct if scores else None
        record.error_message = None
        record.error_kind = None
        record.debug_source = None
        record.completed_at = utcnow()

        if not self.store.update(record, expected_status=GenerationStatus.PENDING):
            logger.warning(f"Generation {record.id} was already finalized, discarding result")
            return
        logger.info(
            f"Generation {record.id} completed: {len(pdf_bytes)} bytes PDF, "
            f"coverage={record.keyword_coverage}, fit={record.recruiter_fit}"
        )

        if self.audit is not None:
            self.audit.notify(record, document_filename(candidate.profile.personal.name, record.company_name, "pdf"))

    def _mark_failed(self, record: GeneratedCv, error: PipelineError) -> None:
        record.status = GenerationStatus.FAILED
        record.error_message = error.detail()[:1000]
        record.error_kind = error.kind.value
        record.latex_content = None
        record.pdf_content = None
        record.analysis = None
        record.recruiter_domain = None
        record.keyword_coverage = None
        record.recruiter_fit = None
        record.completed_at = utcnow()
        try:
            self.store.update(record, expected_status=GenerationStatus.PENDING)
        except StorageError as e:
            logger.error(f"Could not mark generation {record.id} as FAILED: {e}")

    def _release(self, jd_hash: str, record_id: str) -> None:
        with self._lock:
            if self._in_flight.get(jd_hash) == record_id:
                del self._in_flight[jd_hash]

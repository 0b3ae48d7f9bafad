# cvtailor\main.py

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from cvtailor.api.v1 import admin, generation
from cvtailor.core.config import Settings, settings as default_settings
from cvtailor.core.exceptions import StorageError
from cvtailor.db.database import build_engine, build_session_factory, init_db
from cvtailor.services.ai.claude_client import ClaudeGenerationClient
from cvtailor.services.audit import AuditWebhookNotifier
from cvtailor.services.latex_compiler import LatexCompiler
from cvtailor.services.orchestrator import GenerationOrchestrator
from cvtailor.services.profile import CandidateProfileProvider
from cvtailor.services.worker_pool import GenerationWorkerPool
from cvtailor.storage.result_store import ResultStore

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
    )


def build_orchestrator(settings: Settings) -> GenerationOrchestrator:
    """Wires the store, remote clients and worker pool from settings."""
    engine = build_engine(settings.DATABASE_URL)
    init_db(engine)
    return GenerationOrchestrator(
        settings=settings,
        store=ResultStore(build_session_factory(engine)),
        profile_provider=CandidateProfileProvider.from_settings(settings),
        generation_client=ClaudeGenerationClient(settings),
        compiler=LatexCompiler(settings),
        worker_pool=GenerationWorkerPool(max_workers=settings.WORKER_POOL_SIZE),
        audit=AuditWebhookNotifier(settings),
    )


async def sweep_periodically(orchestrator: GenerationOrchestrator, interval_minutes: int) -> None:
    while True:
        await asyncio.sleep(interval_minutes * 60)
        try:
            await run_in_threadpool(orchestrator.sweep_expired)
        except StorageError as e:
            logger.error(f"Scheduled cache sweep failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    owns_orchestrator = app.state.orchestrator is None
    if owns_orchestrator:
        app.state.orchestrator = build_orchestrator(settings)
        app.state.orchestrator.recover_interrupted()
    orchestrator: GenerationOrchestrator = app.state.orchestrator

    if not settings.generation_configured:
        logger.warning("CLAUDE_API_KEY is not set; generations will fail until it is configured")

    sweep_task = None
    if settings.CACHE_SWEEP_INTERVAL_MINUTES > 0:
        sweep_task = asyncio.create_task(sweep_periodically(orchestrator, settings.CACHE_SWEEP_INTERVAL_MINUTES))

    logger.info(f"CV tailor started (database: {settings.DATABASE_URL.split('://')[0]}, workers: {settings.WORKER_POOL_SIZE})")
    try:
        yield
    finally:
        if sweep_task is not None:
            sweep_task.cancel()
        if owns_orchestrator:
            orchestrator.shutdown(wait=False)


def create_app(settings: Optional[Settings] = None, orchestrator: Optional[GenerationOrchestrator] = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)

    # Create a FastAPI instance
    app = FastAPI(
        title="CV Tailor",
        description="Generates job-tailored LaTeX CVs and PDFs with match analysis",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # All generation endpoints are available under /api/v1/...
    app.include_router(generation.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        return JSONResponse(status_code=500, content={"detail": "Internal storage error."})

    # Basic root endpoint
    @app.get("/")
    async def read_root():
        return RedirectResponse(url="/docs")

    @app.get("/health")
    async def health():
        return {"status": "ok", "generationConfigured": settings.generation_configured}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

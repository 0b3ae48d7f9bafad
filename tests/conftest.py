"""Shared fixtures: settings on a temp SQLite file, candidate data, and fake remote APIs."""

from __future__ import annotations

import json
import threading
from typing import Callable, Optional

import httpx
import pytest
from tenacity import wait_none

from cvtailor.core.config import Settings
from cvtailor.db.database import build_engine, build_session_factory, init_db
from cvtailor.services.ai.claude_client import ClaudeGenerationClient
from cvtailor.services.audit import AuditWebhookNotifier
from cvtailor.services.latex_compiler import LatexCompiler
from cvtailor.services.orchestrator import GenerationOrchestrator
from cvtailor.services.profile import CandidateProfileProvider
from cvtailor.services.worker_pool import GenerationWorkerPool
from cvtailor.storage.result_store import ResultStore

CLAUDE_URL = "https://claude.test/v1/messages"
LATEX_URL = "https://latex.test/builds/sync"
AUDIT_URL = "https://audit.test/hook"

VALID_LATEX = "\\documentclass{article}\n\\begin{document}\nAlex Morgan\n\\end{document}\n"

PROFILE = {
    "personal": {"name": "Alex Morgan", "email": "alex@example.com"},
    "summary": "Backend engineer.",
    "education": [{"degree": "MSc Computer Science", "institution": "Example University"}],
    "experience": [{"title": "Software Engineer", "company": "Northwind", "bullets": ["Built APIs"]}],
    "skills": {"languages": ["Python", "Java"]},
}

JOB_DESCRIPTION = (
    "Senior Backend Engineer at Acme Corp. You will design Python services, "
    "own PostgreSQL schemas and run them on Kubernetes."
)


def build_generation_text(latex: Optional[str] = VALID_LATEX, status: str = "ok", fenced: bool = True) -> str:
    payload = {
        "status": status,
        "recruiter_model": {
            "domain": "backend",
            "detected_keywords": {
                "must_have": ["Python", "PostgreSQL"],
                "nice_to_have": ["Kubernetes"],
                "soft_skills": ["Ownership"],
            },
        },
        "keyword_tiers": {"proficient": ["Python"], "exposure": ["Kubernetes"], "awareness": ["Go"]},
        "match_score": {"keyword_coverage_pct": 82, "recruiter_fit_pct": 75},
        "coach_brief": {
            "skill_gaps": ["Go"],
            "learning_roadmap": {"7_days": ["Go tour"], "14_days": ["Small Go service"], "21_days": ["Go in production"]},
            "interview_questions": ["How would you shard a PostgreSQL table?"],
        },
    }
    if latex is not None:
        payload["latex_cv"] = latex
    text = json.dumps(payload)
    return f"```json\n{text}\n```" if fenced else text


def claude_body(text: str) -> dict:
    return {"id": "msg_test", "type": "message", "content": [{"type": "text", "text": text}]}


class FakeUpstreams:
    """Plays the generation API, the LaTeX compiler and the audit webhook over httpx.MockTransport."""

    def __init__(self):
        self.generation_text = build_generation_text()
        # Responses served before falling back to a 200 with generation_text
        self.generation_queue: list[httpx.Response] = []
        self.pdf_bytes = b"%PDF-1.5" + b"x" * 12337
        self.compile_status = 200
        self.compile_body: Optional[bytes] = None
        self.audit_status = 200
        self.generation_requests: list[httpx.Request] = []
        self.compile_requests: list[httpx.Request] = []
        self.audit_requests: list[httpx.Request] = []
        # Cleared by tests that need a generation to stay in flight
        self.release = threading.Event()
        self.release.set()
        self._lock = threading.Lock()

    @property
    def generation_calls(self) -> int:
        return len(self.generation_requests)

    @property
    def compile_calls(self) -> int:
        return len(self.compile_requests)

    def handler(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host == "claude.test":
            with self._lock:
                self.generation_requests.append(request)
                queued = self.generation_queue.pop(0) if self.generation_queue else None
            self.release.wait(timeout=10)
            if queued is not None:
                return queued
            return httpx.Response(200, json=claude_body(self.generation_text))
        if host == "latex.test":
            with self._lock:
                self.compile_requests.append(request)
            body = self.pdf_bytes if self.compile_body is None else self.compile_body
            return httpx.Response(self.compile_status, content=body)
        if host == "audit.test":
            with self._lock:
                self.audit_requests.append(request)
            return httpx.Response(self.audit_status, json={"ok": self.audit_status == 200})
        return httpx.Response(404)


@pytest.fixture
def data_dir(tmp_path):
    directory = tmp_path / "data"
    directory.mkdir()
    (directory / "candidate_profile.json").write_text(json.dumps(PROFILE), encoding="utf-8")
    (directory / "system_prompt.txt").write_text("You write LaTeX CVs. Reply with JSON.", encoding="utf-8")
    return directory


@pytest.fixture
def settings(tmp_path, data_dir):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        CLAUDE_API_KEY="test-key",
        CLAUDE_API_URL=CLAUDE_URL,
        LATEX_API_URL=LATEX_URL,
        AUDIT_WEBHOOK_URL=AUDIT_URL,
        DATA_DIR=str(data_dir),
        ENTRY_LEVEL_SYSTEM_PROMPT_FILE=None,
        CACHE_SWEEP_INTERVAL_MINUTES=0,
        WORKER_POOL_SIZE=2,
    )


@pytest.fixture
def session_factory(settings):
    engine = build_engine(settings.DATABASE_URL)
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return ResultStore(session_factory)


@pytest.fixture
def profile_provider(settings):
    return CandidateProfileProvider.from_settings(settings)


@pytest.fixture
def upstreams():
    fake = FakeUpstreams()
    yield fake
    fake.release.set()


@pytest.fixture
def http_client(upstreams):
    client = httpx.Client(transport=httpx.MockTransport(upstreams.handler))
    yield client
    client.close()


@pytest.fixture
def orchestrator(settings, store, profile_provider, http_client):
    orchestrator = GenerationOrchestrator(
        settings=settings,
        store=store,
        profile_provider=profile_provider,
        generation_client=ClaudeGenerationClient(settings, http_client=http_client, retry_wait=wait_none()),
        compiler=LatexCompiler(settings, http_client=http_client),
        worker_pool=GenerationWorkerPool(max_workers=settings.WORKER_POOL_SIZE),
        audit=AuditWebhookNotifier(settings, http_client=http_client),
    )
    yield orchestrator
    orchestrator.shutdown(wait=True)


@pytest.fixture
def generation_text() -> Callable[..., str]:
    return build_generation_text


@pytest.fixture
def job_description() -> str:
    return JOB_DESCRIPTION

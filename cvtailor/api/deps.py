# cvtailor\api\deps.py

from fastapi import Request

from cvtailor.services.orchestrator import GenerationOrchestrator


def get_orchestrator(request: Request) -> GenerationOrchestrator:
    """The orchestrator built at startup and stored on app.state."""
    return request.app.state.orchestrator

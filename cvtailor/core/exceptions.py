"""Error taxonomy for the generation pipeline.

Every failure that can end a pipeline run is a ``PipelineError`` tagged with an
``ErrorKind``. Callers decide whether to retry by looking at ``error.retryable``
instead of matching on exception classes.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    TRANSIENT_UPSTREAM = "TRANSIENT_UPSTREAM"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    AUTHENTICATION = "AUTHENTICATION"
    TIMEOUT = "TIMEOUT"
    UPSTREAM_REJECTED = "UPSTREAM_REJECTED"
    INVALID_SOURCE = "INVALID_SOURCE"
    COMPILATION_REJECTED = "COMPILATION_REJECTED"
    EMPTY_ARTIFACT = "EMPTY_ARTIFACT"
    CONFIGURATION = "CONFIGURATION"
    UNEXPECTED = "UNEXPECTED"

    @property
    def retryable(self) -> bool:
        return self is ErrorKind.TRANSIENT_UPSTREAM


class PipelineError(Exception):
    """Base exception for anything that fails a generation pipeline."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, *, kind: ErrorKind | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        if kind is not None:
            self.kind = kind

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def detail(self) -> str:
        """Human-readable description stored on FAILED records."""
        return f"{self.kind.value}: {self.message}"


class TransientUpstreamError(PipelineError):
    """Rate limit, overload or 5xx from an upstream API. Safe to retry."""
    kind = ErrorKind.TRANSIENT_UPSTREAM


class MalformedResponseError(PipelineError):
    """The upstream answered, but not with a usable payload."""
    kind = ErrorKind.MALFORMED_RESPONSE


class AuthenticationError(PipelineError):
    """Missing or rejected API credential."""
    kind = ErrorKind.AUTHENTICATION


class UpstreamTimeoutError(PipelineError):
    kind = ErrorKind.TIMEOUT


class UpstreamRequestError(PipelineError):
    """A 4xx other than auth or rate limiting; retrying would not help."""
    kind = ErrorKind.UPSTREAM_REJECTED


class InvalidDocumentSourceError(PipelineError):
    """LaTeX source failed the structural pre-check."""
    kind = ErrorKind.INVALID_SOURCE


class CompilationRejectedError(PipelineError):
    kind = ErrorKind.COMPILATION_REJECTED


class EmptyArtifactError(PipelineError):
    kind = ErrorKind.EMPTY_ARTIFACT


class ProfileError(PipelineError):
    """Candidate profile or instruction files are missing or invalid."""
    kind = ErrorKind.CONFIGURATION


class StorageError(Exception):
    """Raised by the result store when the database layer fails."""
    pass


class JobDescriptionError(ValueError):
    """Rejected input, raised before any record is created."""
    pass

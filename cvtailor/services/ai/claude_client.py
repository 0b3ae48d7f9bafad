"""Client for the Claude Messages API.

Sends one assembled request, retries transient failures with exponential
backoff, and turns the model's text reply into a validated GenerationResult.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Optional

import httpx
from pydantic import ValidationError
from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from cvtailor.core.config import Settings
from cvtailor.core.exceptions import (
    AuthenticationError,
    MalformedResponseError,
    PipelineError,
    TransientUpstreamError,
    UpstreamRequestError,
    UpstreamTimeoutError,
)
from cvtailor.schemas.analysis import GenerationResult
from cvtailor.services.ai.prompts import GenerationRequest

logger = logging.getLogger(__name__)

# 529 is Anthropic's "overloaded"; 501 and 505 will not change on retry.
RETRYABLE_STATUS_CODES = {429, 529}
PERMANENT_SERVER_STATUS_CODES = {501, 505}
AUTH_STATUS_CODES = {401, 403}


def classify_status(status_code: int, message: str) -> Optional[PipelineError]:
    """Maps a non-2xx HTTP status onto the error taxonomy. Returns None for success."""
    if 200 <= status_code < 300:
        return None
    if status_code in AUTH_STATUS_CODES:
        return AuthenticationError(f"Generation API rejected the credential ({status_code}): {message}", status_code=status_code)
    if status_code in RETRYABLE_STATUS_CODES:
        return TransientUpstreamError(f"Generation API is rate limited or overloaded ({status_code}): {message}", status_code=status_code)
    if status_code >= 500 and status_code not in PERMANENT_SERVER_STATUS_CODES:
        return TransientUpstreamError(f"Generation API server error ({status_code}): {message}", status_code=status_code)
    return UpstreamRequestError(f"Generation API rejected the request ({status_code}): {message}", status_code=status_code)


def extract_json_payload(text: str) -> str:
    """Pulls the outermost JSON object out of the model's reply.

    Tolerates markdown fences and any chatter before the first '{' or after
    the last '}'.
    """
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise MalformedResponseError("No JSON object found in generation response")
    return cleaned[start:end + 1]


def parse_generation_text(text: str) -> GenerationResult:
    """Validates the model's reply. Raises MalformedResponseError on anything unusable."""
    payload = extract_json_payload(text)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Generation response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedResponseError("Generation response JSON is not an object")

    try:
        result = GenerationResult.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(f"Generation response has an unexpected shape: {e}") from e

    if (result.status or "").strip().lower() != "ok":
        raise MalformedResponseError(f"Generation response did not report success (status={result.status!r})")
    if not result.is_success:
        raise MalformedResponseError("Generation response is missing the latex_cv document")
    return result


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, PipelineError) and error.retryable


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
        return str(body.get("error", {}).get("message") or body)[:300]
    except (ValueError, AttributeError):
        return response.text[:300]


class ClaudeGenerationClient:

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.Client] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        self.settings = settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=settings.CLAUDE_TIMEOUT_SECONDS)
        self._retry_wait = retry_wait or wait_exponential(
            multiplier=settings.GENERATION_RETRY_BASE_SECONDS,
            min=settings.GENERATION_RETRY_BASE_SECONDS,
            max=settings.GENERATION_RETRY_MAX_SECONDS,
        )

    @property
    def is_configured(self) -> bool:
        return self.settings.generation_configured

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def generate(self, request: GenerationRequest) -> GenerationResult:
        """Runs one generation. Raises a PipelineError subclass on failure."""
        if not self.is_configured:
            raise AuthenticationError("CLAUDE_API_KEY is not set in environment variables or .env")

        body = request.to_body(self.settings.CLAUDE_MODEL, self.settings.CLAUDE_MAX_TOKENS)
        retrying = Retrying(
            stop=stop_after_attempt(self.settings.GENERATION_MAX_RETRIES + 1),
            wait=self._retry_wait,
            retry=retry_if_exception(_is_retryable),
            before_sleep=self._log_retry,
            reraise=True,
        )

        logger.info(f"Calling Claude API ({self.settings.CLAUDE_MODEL}, mode={request.mode.value})...")
        started = time.monotonic()
        text = retrying(self._send, body)
        logger.info(f"Claude API response received in {int((time.monotonic() - started) * 1000)}ms")

        return parse_generation_text(text)

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.settings.CLAUDE_API_KEY or "",
            "anthropic-version": self.settings.ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

    def _send(self, body: dict[str, Any]) -> str:
        """One HTTP attempt. Returns content[0].text."""
        try:
            response = self._client.post(
                self.settings.CLAUDE_API_URL,
                json=body,
                headers=self._headers(),
                timeout=self.settings.CLAUDE_TIMEOUT_SECONDS,
            )
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"Generation API timed out after {self.settings.CLAUDE_TIMEOUT_SECONDS}s") from e
        except httpx.TransportError as e:
            raise TransientUpstreamError(f"Could not reach generation API: {e}") from e

        error = classify_status(response.status_code, "" if response.is_success else _error_message(response))
        if error is not None:
            logger.warning(f"Claude API returned {response.status_code} ({error.kind.value})")
            raise error

        try:
            content = response.json().get("content") or []
            text = content[0]["text"]
        except (ValueError, AttributeError, LookupError, TypeError) as e:
            raise MalformedResponseError("Generation API response has no content[0].text") from e
        if not isinstance(text, str) or not text.strip():
            raise MalformedResponseError("Generation API returned empty text content")
        return text

    def _log_retry(self, state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0
        logger.warning(
            f"Claude API attempt {state.attempt_number}/{self.settings.GENERATION_MAX_RETRIES + 1} failed "
            f"({error}). Retrying in {delay:.1f}s..."
        )

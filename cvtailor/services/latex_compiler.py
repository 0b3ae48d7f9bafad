# cvtailor/services/latex_compiler.py

import logging
import time
from typing import Optional

import httpx

from cvtailor.core.config import Settings
from cvtailor.core.exceptions import (
    CompilationRejectedError,
    EmptyArtifactError,
    InvalidDocumentSourceError,
    UpstreamTimeoutError,
)

logger = logging.getLogger(__name__)

REQUIRED_MARKERS = ("\\documentclass", "\\begin{document}", "\\end{document}")


def validate_latex_source(latex_source: Optional[str]) -> None:
    """
    Cheap structural pre-check, run before spending a network round trip.

    Raises:
        InvalidDocumentSourceError: If the source is blank or any of the
            documentclass/begin/end markers is missing or out of order.
    """
    if not latex_source or not latex_source.strip():
        raise InvalidDocumentSourceError("LaTeX source is empty")

    missing = [marker for marker in REQUIRED_MARKERS if marker not in latex_source]
    if missing:
        raise InvalidDocumentSourceError(f"LaTeX source is missing {', '.join(missing)}")

    if latex_source.find("\\begin{document}") > latex_source.rfind("\\end{document}"):
        raise InvalidDocumentSourceError("LaTeX source ends its document before beginning it")


class LatexCompiler:
    """Compiles LaTeX to PDF through the remote build API."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.Client] = None):
        self.settings = settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=settings.LATEX_TIMEOUT_SECONDS)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def build_request(self, latex_source: str) -> dict:
        return {
            "compiler": self.settings.LATEX_COMPILER,
            "resources": [{"main": True, "content": latex_source}],
        }

    def compile(self, latex_source: str) -> bytes:
        """
        Compiles the LaTeX source and returns the PDF bytes.

        Raises:
            InvalidDocumentSourceError: Pre-check failed; nothing was sent.
            CompilationRejectedError: The compiler reported a build failure
                or could not be reached.
            EmptyArtifactError: The call succeeded but returned no bytes.
            UpstreamTimeoutError: No answer within LATEX_TIMEOUT_SECONDS.
        """
        validate_latex_source(latex_source)

        logger.info(f"Starting LaTeX compilation ({len(latex_source)} chars)...")
        started = time.monotonic()
        try:
            response = self._client.post(
                self.settings.LATEX_API_URL,
                json=self.build_request(latex_source),
                timeout=self.settings.LATEX_TIMEOUT_SECONDS,
            )
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"LaTeX compilation timed out after {self.settings.LATEX_TIMEOUT_SECONDS}s") from e
        except httpx.TransportError as e:
            raise CompilationRejectedError(f"Could not reach LaTeX compiler: {e}") from e

        if not response.is_success:
            # The build log comes back in the body; keep the tail, that's where errors are
            log_tail = response.text[-500:]
            logger.error(f"LaTeX API error: {response.status_code} - {log_tail}")
            raise CompilationRejectedError(
                f"LaTeX compilation failed ({response.status_code}): {log_tail}",
                status_code=response.status_code,
            )

        pdf_bytes = response.content
        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"LaTeX compilation completed in {elapsed_ms}ms, PDF size: {len(pdf_bytes)} bytes")

        if not pdf_bytes:
            raise EmptyArtifactError("Empty PDF returned from compiler")
        return pdf_bytes

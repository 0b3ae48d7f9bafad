"""Best-effort audit log of completed generations, posted to a webhook."""

import base64
import json
import logging
from typing import Any, Optional

import httpx

from cvtailor.core.config import Settings
from cvtailor.db.models import GeneratedCv, utcnow

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 500


def truncate(text: Optional[str], max_length: int) -> str:
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + "..."


class AuditWebhookNotifier:

    def __init__(self, settings: Settings, http_client: Optional[httpx.Client] = None):
        self.webhook_url = settings.AUDIT_WEBHOOK_URL
        self.timeout = settings.AUDIT_TIMEOUT_SECONDS
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=self.timeout)

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def build_payload(self, record: GeneratedCv, document_filename: Optional[str]) -> dict[str, Any]:
        analysis = record.analysis or {}
        coach_brief = analysis.get("coach_brief")
        payload: dict[str, Any] = {
            "date": (record.completed_at or utcnow()).strftime("%Y-%m-%d %H:%M"),
            "company": record.company_name or "Unknown",
            "jobDescriptionExcerpt": truncate(record.job_description, EXCERPT_LENGTH),
            "coachBrief": json.dumps(coach_brief) if coach_brief else "",
            "matchScore": record.keyword_coverage or 0,
        }
        if record.pdf_content:
            payload["documentBase64"] = base64.b64encode(record.pdf_content).decode("ascii")
            payload["documentFilename"] = document_filename or "CV.pdf"
        return payload

    def notify(self, record: GeneratedCv, document_filename: Optional[str] = None) -> bool:
        """Posts the audit entry. Never raises; returns whether the webhook accepted it."""
        if not self.enabled:
            logger.debug("Audit webhook not configured, skipping log")
            return False

        try:
            payload = self.build_payload(record, document_filename)
            response = self._client.post(self.webhook_url, json=payload, timeout=self.timeout)
            if response.is_success:
                logger.info(f"Audit entry logged for generation {record.id}")
                return True
            logger.warning(f"Audit webhook returned {response.status_code} for generation {record.id}")
        except Exception as e:
            # Audit logging must never affect a persisted generation
            logger.warning(f"Failed to log generation {record.id} to audit webhook: {e}")
        return False

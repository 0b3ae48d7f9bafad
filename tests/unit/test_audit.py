import base64
import json
from datetime import datetime

import httpx

from cvtailor.db.models import GeneratedCv, GenerationStatus
from cvtailor.services.audit import AuditWebhookNotifier, truncate


def completed_record(job_description: str = "Backend Engineer at Acme Corp " * 40) -> GeneratedCv:
    return GeneratedCv(
        id="11111111-2222-3333-4444-555555555555",
        jd_hash="f" * 32,
        job_description=job_description,
        company_name="Acme Corp",
        status=GenerationStatus.COMPLETED,
        pdf_content=b"%PDF-1.5",
        analysis={"coach_brief": {"skill_gaps": ["Go"]}},
        keyword_coverage=82,
        completed_at=datetime(2024, 5, 17, 9, 30, 12),
    )


def make_notifier(settings, respond):
    sent = []

    def handler(request):
        sent.append(request)
        return respond(request)

    notifier = AuditWebhookNotifier(settings, http_client=httpx.Client(transport=httpx.MockTransport(handler)))
    return notifier, sent


def test_truncate():
    assert truncate(None, 10) == ""
    assert truncate("short", 10) == "short"
    assert truncate("x" * 20, 10) == "xxxxxxx..."


def test_notify_posts_audit_payload(settings):
    notifier, sent = make_notifier(settings, lambda request: httpx.Response(200))

    assert notifier.notify(completed_record(), "AlexMorganCvAcmeCorp.pdf") is True

    payload = json.loads(sent[0].content)
    assert payload["date"] == "2024-05-17 09:30"
    assert payload["company"] == "Acme Corp"
    assert len(payload["jobDescriptionExcerpt"]) == 500
    assert payload["jobDescriptionExcerpt"].endswith("...")
    assert json.loads(payload["coachBrief"]) == {"skill_gaps": ["Go"]}
    assert payload["matchScore"] == 82
    assert base64.b64decode(payload["documentBase64"]) == b"%PDF-1.5"
    assert payload["documentFilename"] == "AlexMorganCvAcmeCorp.pdf"


def test_notify_without_url_is_skipped(settings):
    settings.AUDIT_WEBHOOK_URL = None
    notifier, sent = make_notifier(settings, lambda request: httpx.Response(200))
    assert notifier.notify(completed_record()) is False
    assert sent == []


def test_notify_swallows_failures(settings):
    notifier, _ = make_notifier(settings, lambda request: httpx.Response(500))
    assert notifier.notify(completed_record()) is False

    def refused(request):
        raise httpx.ConnectError("refused", request=request)

    notifier, _ = make_notifier(settings, refused)
    assert notifier.notify(completed_record()) is False

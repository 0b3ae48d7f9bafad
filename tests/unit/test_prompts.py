import json

from cvtailor.db.models import GenerationMode
from cvtailor.services.ai.prompts import LATEX_SPECIAL_CHARACTERS, build_instructions, build_request


def test_build_request_is_deterministic(profile_provider, job_description):
    candidate = profile_provider.get()
    first = build_request(candidate, job_description, GenerationMode.EXPERIENCED)
    second = build_request(candidate, job_description, GenerationMode.EXPERIENCED)
    assert first == second
    assert first.to_body("model-x", 1000) == second.to_body("model-x", 1000)


def test_user_message_contains_all_sections(profile_provider, job_description):
    request = build_request(profile_provider.get(), "  " + job_description + "\n", GenerationMode.ENTRY_LEVEL)

    message = request.user_message
    for marker in ("---CANDIDATE DATA---", "---JOB DESCRIPTION---", "---EXPERIENCE LEVEL---", "---INSTRUCTIONS---"):
        assert marker in message
    assert f"---JOB DESCRIPTION---\n{job_description}\n" in message
    assert "---EXPERIENCE LEVEL---\nENTRY_LEVEL" in message
    assert '"name": "Alex Morgan"' in message


def test_mode_selects_instruction_variant():
    entry = build_instructions(GenerationMode.ENTRY_LEVEL)
    experienced = build_instructions(GenerationMode.EXPERIENCED)
    assert "ENTRY-LEVEL" in entry and "ONE PAGE" in entry
    assert "EXPERIENCED" in experienced and "TWO PAGES" in experienced
    for text in (entry, experienced):
        assert "\\begin{document}" in text
        assert all(char in text for char in LATEX_SPECIAL_CHARACTERS)


def test_body_has_messages_api_shape(profile_provider, job_description):
    request = build_request(profile_provider.get(), job_description, GenerationMode.EXPERIENCED)
    body = request.to_body("claude-test", 8000)

    assert body["model"] == "claude-test"
    assert body["max_tokens"] == 8000
    assert body["system"] == "You write LaTeX CVs. Reply with JSON."
    assert body["messages"] == [{"role": "user", "content": request.user_message}]
    json.dumps(body)

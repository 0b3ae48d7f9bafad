import json

import pytest

from cvtailor.core.exceptions import ErrorKind, ProfileError
from cvtailor.db.models import GenerationMode
from cvtailor.services.profile import CandidateProfileProvider


def test_loads_profile_and_prompts_lazily(profile_provider):
    data = profile_provider.get()
    assert data.profile.personal.name == "Alex Morgan"
    assert data.system_prompt(GenerationMode.EXPERIENCED) == data.system_prompt(GenerationMode.ENTRY_LEVEL)
    assert profile_provider.get() is data


def test_separate_entry_level_prompt(data_dir):
    (data_dir / "entry_prompt.txt").write_text("Entry-level instructions", encoding="utf-8")
    provider = CandidateProfileProvider(
        data_dir / "candidate_profile.json",
        data_dir / "system_prompt.txt",
        data_dir / "entry_prompt.txt",
    )
    assert provider.get().system_prompt(GenerationMode.ENTRY_LEVEL) == "Entry-level instructions"


def test_reload_picks_up_changes(profile_provider, data_dir):
    profile_provider.get()
    profile = json.loads((data_dir / "candidate_profile.json").read_text(encoding="utf-8"))
    profile["personal"]["name"] = "Sam Rivera"
    (data_dir / "candidate_profile.json").write_text(json.dumps(profile), encoding="utf-8")

    assert profile_provider.get_profile().personal.name == "Alex Morgan"
    assert profile_provider.reload().profile.personal.name == "Sam Rivera"
    assert profile_provider.get_profile().personal.name == "Sam Rivera"


def test_failed_reload_keeps_previous_data(profile_provider, data_dir):
    previous = profile_provider.get()
    (data_dir / "candidate_profile.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(ProfileError) as exc_info:
        profile_provider.reload()
    assert exc_info.value.kind is ErrorKind.CONFIGURATION
    assert profile_provider.get() is previous


@pytest.mark.parametrize("content", [
    "",
    json.dumps({"personal": {"name": "No History"}, "education": [], "experience": []}),
])
def test_invalid_profile_is_a_configuration_error(data_dir, content):
    (data_dir / "candidate_profile.json").write_text(content, encoding="utf-8")
    provider = CandidateProfileProvider(data_dir / "candidate_profile.json", data_dir / "system_prompt.txt")
    with pytest.raises(ProfileError):
        provider.get()


def test_missing_prompt_file(data_dir):
    provider = CandidateProfileProvider(data_dir / "candidate_profile.json", data_dir / "missing.txt")
    with pytest.raises(ProfileError):
        provider.get()

"""Candidate profile and instruction text, loaded from DATA_DIR.

The provider is constructed once at startup and injected into the
orchestrator. ``reload()`` swaps in freshly read files atomically, so a reload
never leaves a pipeline looking at a half-updated profile.
"""

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from cvtailor.core.config import Settings
from cvtailor.core.exceptions import ProfileError
from cvtailor.db.models import GenerationMode
from cvtailor.schemas.profile import CandidateProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateData:
    profile: CandidateProfile
    system_prompts: dict[GenerationMode, str]

    def system_prompt(self, mode: GenerationMode) -> str:
        return self.system_prompts[mode]


class CandidateProfileProvider:

    def __init__(self, profile_path: Path, system_prompt_path: Path, entry_level_prompt_path: Optional[Path] = None):
        self.profile_path = profile_path
        self.system_prompt_path = system_prompt_path
        self.entry_level_prompt_path = entry_level_prompt_path
        self._lock = threading.Lock()
        self._data: Optional[CandidateData] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "CandidateProfileProvider":
        entry_level = settings.ENTRY_LEVEL_SYSTEM_PROMPT_FILE
        return cls(
            profile_path=settings.data_path(settings.CANDIDATE_PROFILE_FILE),
            system_prompt_path=settings.data_path(settings.SYSTEM_PROMPT_FILE),
            entry_level_prompt_path=settings.data_path(entry_level) if entry_level else None,
        )

    def get(self) -> CandidateData:
        """Returns the loaded data, loading it on first use."""
        with self._lock:
            if self._data is None:
                self._data = self._load()
            return self._data

    def get_profile(self) -> CandidateProfile:
        return self.get().profile

    def reload(self) -> CandidateData:
        """Re-reads all files. The previous data stays active if loading fails."""
        logger.info(f"Reloading candidate profile from {self.profile_path}")
        data = self._load()
        with self._lock:
            self._data = data
        logger.info(f"Candidate profile reloaded for: {data.profile.personal.name}")
        return data

    def _load(self) -> CandidateData:
        profile = self._load_profile()
        shared_prompt = self._read_text(self.system_prompt_path)
        entry_prompt = shared_prompt
        if self.entry_level_prompt_path is not None:
            entry_prompt = self._read_text(self.entry_level_prompt_path)

        return CandidateData(
            profile=profile,
            system_prompts={
                GenerationMode.EXPERIENCED: shared_prompt,
                GenerationMode.ENTRY_LEVEL: entry_prompt,
            },
        )

    def _load_profile(self) -> CandidateProfile:
        raw = self._read_text(self.profile_path)
        try:
            return CandidateProfile.model_validate(json.loads(raw))
        except json.JSONDecodeError as e:
            raise ProfileError(f"Candidate profile {self.profile_path.name} is not valid JSON: {e}") from e
        except ValidationError as e:
            raise ProfileError(f"Candidate profile {self.profile_path.name} is incomplete: {e}") from e

    @staticmethod
    def _read_text(path: Path) -> str:
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ProfileError(f"Cannot read {path}: {e}") from e
        if not content.strip():
            raise ProfileError(f"{path.name} is empty")
        return content

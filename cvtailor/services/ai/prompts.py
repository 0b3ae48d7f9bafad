"""Builds the generation-API request from the candidate data and a job description.

Pure functions only: no I/O, and identical inputs always give an identical
payload.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict

from cvtailor.db.models import GenerationMode
from cvtailor.services.profile import CandidateData

# Characters that must be escaped inside the LaTeX the model writes.
LATEX_SPECIAL_CHARACTERS = ("#", "$", "%", "&", "_", "{", "}", "~", "^", "\\")

_SHARED_REQUIREMENTS = """REQUIREMENTS:
1. Use the EXACT LaTeX template structure from the system prompt
2. Use the candidate's ACTUAL data - do not invent employers, dates, degrees or metrics
3. Tailor the Professional Profile and skill ordering to the job description keywords
4. Properly escape LaTeX special characters in all text: {special}
5. The document must start with \\documentclass and contain \\begin{{document}} and \\end{{document}}

OUTPUT FORMAT:
Return ONE valid JSON object with the structure defined in the system prompt and nothing else.
Set "status" to "ok" only when "latex_cv" holds complete, compilable LaTeX code."""

_ENTRY_LEVEL_INSTRUCTIONS = """Generate an ENTRY-LEVEL CV for the candidate.

ENTRY-LEVEL RULES:
1. Position the candidate as a recent graduate with a strong academic background
2. Lead with Education, Certifications and Projects; keep work history brief
3. Only keep professional roles that show reliability or directly match the job
4. Select the 5-6 projects most relevant to the job description
5. The CV MUST fit on ONE PAGE

"""

_EXPERIENCED_INSTRUCTIONS = """Generate an EXPERIENCED PROFESSIONAL CV for the candidate.

EXPERIENCED RULES:
1. Lead with Professional Experience and keep every bullet point from technical roles
2. Keep quantified achievements and metrics exactly as given in the candidate data
3. Follow with Education, Certifications, Technical Skills and Projects
4. Include all projects from the candidate data, most relevant first
5. The CV may use TWO PAGES to cover the full background

"""

INSTRUCTIONS_BY_MODE: Dict[GenerationMode, str] = {
    GenerationMode.ENTRY_LEVEL: _ENTRY_LEVEL_INSTRUCTIONS,
    GenerationMode.EXPERIENCED: _EXPERIENCED_INSTRUCTIONS,
}


@dataclass(frozen=True)
class GenerationRequest:
    system: str
    user_message: str
    mode: GenerationMode

    def to_body(self, model: str, max_tokens: int) -> Dict[str, Any]:
        """Request body for the Messages endpoint."""
        return {
            "model": model,
            "max_tokens": max_tokens,
            "system": self.system,
            "messages": [{"role": "user", "content": self.user_message}],
        }


def build_instructions(mode: GenerationMode) -> str:
    special = ", ".join(LATEX_SPECIAL_CHARACTERS)
    return INSTRUCTIONS_BY_MODE[mode] + _SHARED_REQUIREMENTS.format(special=special)


def format_candidate_data(candidate: CandidateData) -> str:
    # sort_keys keeps the prompt byte-identical for identical profiles
    return json.dumps(
        candidate.profile.model_dump(mode="json", exclude_none=True),
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
    )


def build_request(candidate: CandidateData, job_description: str, mode: GenerationMode) -> GenerationRequest:
    """Assembles system instructions and the user message for one generation."""
    sections = [
        "---CANDIDATE DATA---",
        format_candidate_data(candidate),
        "",
        "---JOB DESCRIPTION---",
        job_description.strip(),
        "",
        "---EXPERIENCE LEVEL---",
        mode.name,
        "",
        "---INSTRUCTIONS---",
        build_instructions(mode),
    ]
    return GenerationRequest(
        system=candidate.system_prompt(mode),
        user_message="\n".join(sections),
        mode=mode,
    )

"""Company and job-title inference from job description text, and download filenames."""

import re
from typing import Optional

DEFAULT_COMPANY = "Company"
DEFAULT_JOB_TITLE = "Position"

_COMPANY_PATTERNS = [
    re.compile(r"(?i:\bat\s+|@\s*|\bjoin\s+|\bcompany[:\s]+)([A-Z][A-Za-z0-9&]*(?:[ \t]+[A-Z][A-Za-z0-9&]*)*)"),
    re.compile(r"(?i:\babout\s+|\bworking at\s+)([A-Z][A-Za-z0-9&]*(?:[ \t]+[A-Z][A-Za-z0-9&]*)*)"),
]

_TITLE_PATTERNS = [
    re.compile(r"(?i:\bposition|\brole|\btitle)[:\s]+([A-Za-z ]+?)[ \t]*(?:\n|,|$)", re.MULTILINE),
    re.compile(r"^([A-Za-z ]+(?:Engineer|Developer|Manager|Analyst|Designer))(?:\s|,|$)", re.MULTILINE),
]

_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')


def sanitize_for_filename(value: Optional[str], fallback: str = DEFAULT_COMPANY) -> str:
    """Strips characters invalid in filenames, removes whitespace and caps at 30 chars."""
    if not value:
        return fallback
    sanitized = _INVALID_FILENAME_CHARS.sub("", value)
    sanitized = re.sub(r"\s+", "", sanitized)[:30]
    return sanitized or fallback


def extract_company_name(job_description: str) -> str:
    for pattern in _COMPANY_PATTERNS:
        match = pattern.search(job_description)
        if match:
            company = match.group(1).strip()
            if 2 < len(company) < 50:
                return company
    return DEFAULT_COMPANY


def extract_job_title(job_description: str) -> str:
    for pattern in _TITLE_PATTERNS:
        match = pattern.search(job_description)
        if match:
            title = match.group(1).strip()
            if 3 < len(title) < 100:
                return title
    return DEFAULT_JOB_TITLE


def document_filename(candidate_name: str, company_name: Optional[str], extension: str) -> str:
    """e.g. ``AlexMorganCvAcmeCorp.pdf``."""
    candidate = sanitize_for_filename(candidate_name, fallback="Candidate")
    return f"{candidate}Cv{sanitize_for_filename(company_name)}.{extension}"

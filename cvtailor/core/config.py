# cvtailor\core\config.py

import os
from pathlib import Path

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# load_dotenv() is still good to have here to ensure .env is loaded
# before Pydantic initializes the Settings.
load_dotenv()

class Settings(BaseSettings):
    """
    Application configuration settings.
    Pydantic will automatically read from environment variables or a .env file.
    The default values defined here are used if the corresponding environment
    variable is not found.
    """
    # --- Database Settings ---
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./cv_tailor.db")

    # --- Generation API (Claude) Settings ---
    # Optional field: Pydantic will set this to None if CLAUDE_API_KEY is not in the environment.
    CLAUDE_API_KEY: str | None = None
    CLAUDE_API_URL: str = "https://api.anthropic.com/v1/messages"
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"
    CLAUDE_MAX_TOKENS: int = 8000
    CLAUDE_TIMEOUT_SECONDS: float = 120.0
    ANTHROPIC_VERSION: str = "2023-06-01"

    # Retries happen after the first attempt, so 3 means at most 4 calls.
    GENERATION_MAX_RETRIES: int = 3
    GENERATION_RETRY_BASE_SECONDS: float = 2.0
    GENERATION_RETRY_MAX_SECONDS: float = 30.0

    # --- LaTeX Compilation API Settings ---
    LATEX_API_URL: str = "https://latex.ytotech.com/builds/sync"
    LATEX_COMPILER: str = "pdflatex"
    LATEX_TIMEOUT_SECONDS: float = 60.0

    # --- Cache & Worker Settings ---
    CACHE_TTL_HOURS: int = 24
    # Set to 0 to disable the periodic sweep.
    CACHE_SWEEP_INTERVAL_MINUTES: int = 60
    WORKER_POOL_SIZE: int = 4

    # --- Candidate Data ---
    DATA_DIR: str = "./data"
    CANDIDATE_PROFILE_FILE: str = "candidate_profile.json"
    SYSTEM_PROMPT_FILE: str = "system_prompt.txt"
    ENTRY_LEVEL_SYSTEM_PROMPT_FILE: str | None = None

    # --- Audit Webhook ---
    AUDIT_WEBHOOK_URL: str | None = None
    AUDIT_TIMEOUT_SECONDS: float = 15.0

    LOG_LEVEL: str = "INFO"

    class Config:
        # Pydantic-settings configuration
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = "ignore" # Ignore extra env vars not defined in the model

    def data_path(self, filename: str) -> Path:
        """Resolves a file name inside DATA_DIR."""
        return Path(self.DATA_DIR).expanduser().resolve() / filename

    @property
    def generation_configured(self) -> bool:
        return bool(self.CLAUDE_API_KEY and self.CLAUDE_API_KEY.strip())

# Create a single, reusable instance of the settings
settings = Settings()

"""
Application configuration settings.
Loads from .env file first (overrides shell env for local dev), then pydantic reads from environment.
Production: set env vars in the platform (Docker, K8s, etc.); .env is optional.

All service configs and pipeline constants are centralized here.
"""
from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env path: project root .env (absolute path, works regardless of cwd)
_BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent
_ENV_FILE = (_BASE_DIR / ".env").resolve()

# Load .env into environment BEFORE pydantic reads. override=True ensures .env
# values override any shell env. When .env doesn't exist (prod), this is a no-op.
if _ENV_FILE.exists():
    load_dotenv(_ENV_FILE, override=True)


class Settings(BaseSettings):
    """Application settings. Source: env vars (after dotenv load)."""

    # App
    app_name: str = "Resume Screener"
    app_version: str = "1.0.0"
    port: int = 8001

    # Database
    database_url: str = "sqlite:///./screener.db"

    # Auth (tokens are issued by the identity service; we only verify)
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"

    # Storage
    upload_dir: str = "uploads"

    # Gemini
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # AI HTTP client
    ai_request_timeout: float = 120.0
    ai_max_retries: int = 2
    ai_retry_backoff: float = 1.0
    ai_temperature: float = 0.1
    analysis_language: str = "Bahasa Indonesia"

    # Analysis job
    analysis_job_tries: int = 3
    analysis_job_timeout: float = 300.0
    analysis_job_backoff: float = 5.0

    # Skills
    skill_name_max_length: int = 255

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()


# --- Constants (non-env, business config) ---

# Lower bound for the AI request timeout; shorter budgets abort healthy generations
AI_MIN_REQUEST_TIMEOUT: float = 60.0

# Characters of an error response body kept on AiServiceError
AI_ERROR_BODY_MAX_CHARS: int = 500

# Key the model uses for the candidate's name in its JSON answer
CANDIDATE_NAME_KEY: str = "nama_kandidat"
UNKNOWN_CANDIDATE: str = "Unknown Candidate"

SCORE_MIN: int = 0
SCORE_MAX: int = 100

# Slack past analysis_job_timeout before a `processing` row counts as abandoned
PROCESSING_STALE_GRACE_SECONDS: float = 60.0

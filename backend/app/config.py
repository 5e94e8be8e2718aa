from pathlib import Path
from typing import Any
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Always resolve .env relative to this file (backend/app/config.py → backend/.env)
_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_DEFAULT_PROBLEMS_DIR = Path(__file__).resolve().parent / "data" / "problems"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database (psycopg3 dialect: postgresql+psycopg://, sqlite:// for tests)
    database_url: str = "postgresql+psycopg://localhost:5432/mathpractice"

    # Static problem corpus (one JSON file per problem, any depth)
    problems_dir: Path = _DEFAULT_PROBLEMS_DIR

    # Admin endpoints require `Authorization: Bearer <admin_token>`.
    # Empty token disables them entirely.
    admin_token: str = ""

    # Rating batch job
    vote_batch_size: int = 1000
    recompute_interval_minutes: int = 10
    recompute_lease_seconds: int = 300
    scheduler_enabled: bool = True

    # In-memory practice sessions
    session_idle_minutes: int = 240
    max_sessions: int = 10_000

    # App
    app_env: str = "development"
    log_level: str = "INFO"
    # Space- or comma-separated list of allowed origins.
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:3001"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors(cls, v: Any) -> Any:
        """Accept a plain string (space- or comma-separated) in addition to a list."""
        if isinstance(v, str):
            # replace commas with spaces, then split on whitespace
            return [o.strip() for o in v.replace(",", " ").split() if o.strip()]
        return v

    @field_validator(
        "vote_batch_size", "recompute_interval_minutes", "recompute_lease_seconds",
        "session_idle_minutes", "max_sessions",
    )
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v


settings = Settings()

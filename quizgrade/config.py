"""Grading core configuration loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings

# Always resolve .env relative to the project root, no matter where the host process starts
_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseSettings):
    """Core settings; all values sourced from env / .env file."""

    # ── Runtime ─────────────────────────────────────────────────────────
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Database (persistence boundary only) ────────────────────────────
    DATABASE_URL: str = "sqlite:///./quizgrade.db"
    DATABASE_ECHO: bool = False

    # ── Reporting defaults ──────────────────────────────────────────────
    DEFAULT_PASS_MARK: float = 60.0   # percentage; insights screen default
    HISTOGRAM_BIN_WIDTH: int = 10     # percentage points per histogram bin

    model_config = {"env_file": str(_ENV_FILE), "case_sensitive": True, "extra": "ignore"}


settings = Settings()

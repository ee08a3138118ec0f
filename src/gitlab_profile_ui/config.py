# src/gitlab_profile_ui/config.py

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, TypeAdapter, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# .env is at the project root, two levels up from src/gitlab_profile_ui/
CONFIG_FILE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT_DIR = CONFIG_FILE_DIR.parent.parent
ENV_FILE_PATH = PROJECT_ROOT_DIR / ".env"


class Settings(BaseSettings):
    # === GitLab OAuth application ===
    APP_ID: str
    APP_SECRET: str
    # Kept verbatim: GitLab compares redirect URIs byte for byte.
    REDIRECT: str
    SCOPE: str = "read_api"

    # === GitLab instance ===
    GITLAB_BASE_URL: AnyHttpUrl = "https://gitlab.lnu.se"
    GITLAB_TIMEOUT: float = 10.0

    # === Session Management ===
    SESSION_NAME: str = "gitlab_profile_session"
    SESSION_SECRET: str
    SESSION_MAX_AGE: int = 60 * 60 * 24  # 1 day
    SESSION_COOKIE_SECURE: bool = False

    # === Server ===
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def gitlab_url(self) -> str:
        return str(self.GITLAB_BASE_URL).rstrip("/")

    @property
    def redirect_uri(self) -> str:
        return self.REDIRECT

    @field_validator("REDIRECT")
    @classmethod
    def redirect_is_http_url(cls, v: str) -> str:
        TypeAdapter(AnyHttpUrl).validate_python(v)
        return v

    @field_validator("SESSION_SECRET")
    @classmethod
    def secret_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("SESSION_SECRET must not be blank.")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown LOG_LEVEL: {v}")
        return level


def load_settings(env_file: Optional[Path] = ENV_FILE_PATH, **overrides) -> Settings:
    """
    Builds the Settings object once at startup.

    Values from ``env_file`` are loaded into the process environment first
    (existing variables win), then keyword overrides are applied on top.
    """
    if env_file is not None and Path(env_file).exists():
        load_dotenv(dotenv_path=env_file, override=False)
        logger.info("Loaded .env file from: %s", env_file)
    else:
        logger.info(".env file not found at %s. Relying on environment variables.", env_file)
    return Settings(**overrides)

"""
Configuration utilities for the application.
"""
import logging
import secrets
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings read from CASGUARD_* environment variables and .env"""
    model_config = SettingsConfigDict(env_prefix='CASGUARD_', env_file='.env', extra='ignore')

    # Path to cas-config.yaml, default locations are searched when unset
    CAS_CONFIG_PATH: Optional[str] = None

    # Signed-cookie session
    SESSION_SECRET: str = ""
    SESSION_COOKIE: str = "casguard_session"
    SESSION_MAX_AGE: int = 3600
    SESSION_HTTPS_ONLY: bool = False

    LOG_LEVEL: str = "INFO"

    def session_secret(self) -> str:
        if not self.SESSION_SECRET:
            logger.warning("Generated random session secret. For production, set CASGUARD_SESSION_SECRET environment variable.")
            self.SESSION_SECRET = secrets.token_urlsafe(32)
        return self.SESSION_SECRET


@lru_cache
def get_settings() -> Settings:
    """
    Get application settings, cached for efficiency.
    """
    return Settings()

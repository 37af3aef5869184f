"""Settings for the Task Manager API, read from the environment and `.env`"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List
from urllib.parse import quote_plus

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from taskmanager.core.exceptions import ConfigurationError

# backend/
_BACKEND_DIR = Path(__file__).resolve().parent.parent

_PLACEHOLDER_SECRETS = frozenset({
    "change-me",
    "changeme",
    "secret",
    "your-access-token-secret",
    "your-refresh-token-secret",
})


class Settings(BaseSettings):
    """Environment-backed configuration; keys are case sensitive"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    APP_NAME: str = "Task Manager API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    HOST: str = "0.0.0.0"
    PORT: int = 5000
    WORKERS: int = 4

    # Either a full URL or the POSTGRES_* parts
    DATABASE_URL: str = ""
    POSTGRES_USER: str = "taskmanager"
    POSTGRES_PASSWORD: str = "taskmanager"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "taskmanager_db"
    DATABASE_POOL_SIZE: int = 30
    DATABASE_MAX_OVERFLOW: int = 20
    DB_INIT_MODE: str = "migrate"  # migrate | create_all | off
    DB_REQUIRE_HEAD: bool = True

    # JWT signing; both secrets must be provided and must differ
    ACCESS_TOKEN_SECRET: str = ""
    REFRESH_TOKEN_SECRET: str = ""
    ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "taskmanager-api"
    JWT_AUDIENCE: str = "taskmanager-users"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30

    BCRYPT_ROUNDS: int = 12
    MAX_CONCURRENT_SESSIONS: int = 5
    MAX_LOGIN_ATTEMPTS: int = 5
    LOCK_TIME_MINUTES: int = 120

    RUN_TOKEN_SWEEPER: bool = True
    TOKEN_SWEEP_INTERVAL_SECONDS: float = 300.0
    # Probability that an authenticated request also cleans its user's ledger
    TOKEN_SWEEP_SAMPLE_RATE: float = 0.1

    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:3000", "http://localhost:5173"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        """Accept a JSON list or a comma-separated string"""
        if not isinstance(value, str):
            return value
        text = value.strip()
        if text.startswith("["):
            try:
                value = json.loads(text)
            except json.JSONDecodeError:
                value = text.strip("[]").split(",")
        else:
            value = text.split(",")
        return [str(origin).strip().strip('"') for origin in value if str(origin).strip()]

    @field_validator("TOKEN_SWEEP_SAMPLE_RATE")
    @classmethod
    def _clamp_sample_rate(cls, value: float) -> float:
        return min(1.0, max(0.0, value))

    def get_log_file(self) -> str:
        if self.LOG_FILE and not self.LOG_FILE.startswith(".."):
            return self.LOG_FILE
        return str(_BACKEND_DIR.parent / "logs" / "taskmanager.log")

    def get_database_url(self) -> str:
        """DATABASE_URL when set, otherwise a PostgreSQL URL built from POSTGRES_*"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        credentials = f"{quote_plus(self.POSTGRES_USER)}:{quote_plus(self.POSTGRES_PASSWORD)}"
        return f"postgresql://{credentials}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    def validate_security_settings(self) -> None:
        """
        Check the signing secrets; called once at startup.

        Raises:
            ConfigurationError: A secret is missing, both secrets are the same,
                or (in production) a secret is short or a placeholder.
        """
        for name in ("ACCESS_TOKEN_SECRET", "REFRESH_TOKEN_SECRET"):
            if not getattr(self, name):
                raise ConfigurationError(f"{name} is not defined in environment variables")
        if self.ACCESS_TOKEN_SECRET == self.REFRESH_TOKEN_SECRET:
            raise ConfigurationError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ")

        if self.ENVIRONMENT.lower() != "production":
            return
        for name in ("ACCESS_TOKEN_SECRET", "REFRESH_TOKEN_SECRET"):
            secret = getattr(self, name)
            if len(secret) < 32 or secret.lower() in _PLACEHOLDER_SECRETS:
                raise ConfigurationError(
                    f"Insecure {name} for production. Use a strong key (e.g. `openssl rand -hex 32`)."
                )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

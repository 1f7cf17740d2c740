"""Settings loaded from environment variables."""
import os
from dataclasses import dataclass
from functools import lru_cache

ENV_PREFIX = "TASKMANAGER"


def _env(suffix: str, default: str) -> str:
    value = os.getenv(f"{ENV_PREFIX}_{suffix}")
    if value is None or value.strip() == "":
        return default
    return value


def _env_int(suffix: str, default: int) -> int:
    try:
        return int(_env(suffix, str(default)))
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./tasks.db"
    jwt_secret: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 1440
    log_level: str = "INFO"


def load_settings() -> Settings:
    defaults = Settings()
    return Settings(
        database_url=_env("DATABASE_URL", defaults.database_url),
        jwt_secret=_env("JWT_SECRET", defaults.jwt_secret),
        jwt_algorithm=_env("JWT_ALGORITHM", defaults.jwt_algorithm),
        access_token_expire_minutes=_env_int(
            "ACCESS_TOKEN_EXPIRE_MINUTES", defaults.access_token_expire_minutes
        ),
        log_level=_env("LOG_LEVEL", defaults.log_level).upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read once."""
    return load_settings()

import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        secret_key: str,
        token_max_age_days: int,
        log_level: str,
        cors_origins: list[str],
        auto_create_schema: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.secret_key = secret_key
        self.token_max_age_days = token_max_age_days
        self.log_level = log_level
        self.cors_origins = cors_origins
        self.auto_create_schema = auto_create_schema

    @property
    def token_max_age_secs(self) -> int:
        return self.token_max_age_days * 24 * 3600


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _split_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "finance.db"
    database_url = os.getenv("FINANCE_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINANCE_TIMEZONE", "UTC")
    secret_key = os.getenv(
        "FINANCE_SECRET_KEY",
        "4f0c2b9e8a7d41c6b3e5f2a1d9c8b7a6e5f4d3c2b1a09f8e7d6c5b4a39281706",
    )
    token_max_age_days = int(os.getenv("FINANCE_TOKEN_MAX_AGE_DAYS", "7"))
    log_level = os.getenv("FINANCE_LOG_LEVEL", "INFO").upper()
    cors_origins = _split_origins(
        os.getenv(
            "FINANCE_CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
        )
    )
    auto_create_schema = os.getenv("FINANCE_AUTO_CREATE_SCHEMA", "1") not in {
        "0",
        "false",
        "no",
    }
    return Settings(
        database_url=database_url,
        timezone=timezone,
        secret_key=secret_key,
        token_max_age_days=token_max_age_days,
        log_level=log_level,
        cors_origins=cors_origins,
        auto_create_schema=auto_create_schema,
    )

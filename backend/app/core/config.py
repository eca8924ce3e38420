# backend/app/core/config.py

from __future__ import annotations

from typing import List
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_JWT_SECRET = "dev-secret-change-me"


def _strip_asyncpg_unsupported_params(url: str) -> str:
    """
    asyncpg rejects sslmode/channel_binding as connect kwargs, so drop them
    from the query string (hosted Postgres URLs usually carry both).
    """
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = parse_qsl(parts.query, keep_blank_values=True)
    filtered = [(k, v) for (k, v) in params if k not in {"sslmode", "channel_binding"}]
    new_query = urlencode(filtered, doseq=True)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, new_query, parts.fragment))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -----------------------------
    # Environment
    # -----------------------------
    # development | staging | production
    ENVIRONMENT: str = "development"
    APP_NAME: str = "Trailblaize API"

    # Used to build invitation links handed out to recruits/alumni
    APP_BASE_URL: str = "http://localhost:3000"
    # Comma separated
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # -----------------------------
    # DB
    # -----------------------------
    DATABASE_URL_ASYNC: str
    DATABASE_URL_SYNC: str
    DATABASE_ECHO: bool = False

    # -----------------------------
    # JWT / auth
    # -----------------------------
    JWT_SECRET: str = PLACEHOLDER_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    RETURN_MAGIC_CODE_IN_RESPONSE: bool = True

    # -----------------------------
    # Logging
    # -----------------------------
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json | text

    # -----------------------------
    # Branding / media
    # -----------------------------
    MEDIA_ROOT: str = "storage/chapter-logos"
    MEDIA_BASE_URL: str = "/media/chapter-logos"
    LOGO_MAX_BYTES: int = 5 * 1024 * 1024

    # -----------------------------
    # Chapters
    # -----------------------------
    DEFAULT_STARTING_BUDGET: float = 12000.0

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def DATABASE_URL_ASYNC_CLEAN(self) -> str:
        return _strip_asyncpg_unsupported_params(self.DATABASE_URL_ASYNC)

    @property
    def is_production(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in {"prod", "production"}

    def model_post_init(self, __context) -> None:  # pydantic v2 hook
        env = (self.ENVIRONMENT or "").strip().lower()

        if env in {"staging", "production"}:
            if not self.JWT_SECRET or self.JWT_SECRET.strip() == PLACEHOLDER_JWT_SECRET:
                raise ValueError("JWT_SECRET must be set to a strong value in staging/production.")
            if len(self.JWT_SECRET.strip()) < 32:
                raise ValueError("JWT_SECRET is too short; use at least 32 characters in staging/production.")

        if self.JWT_ALGORITHM not in {"HS256"}:
            raise ValueError(f"Unsupported JWT_ALGORITHM={self.JWT_ALGORITHM!r}. Allowed: HS256")

        if self.LOG_FORMAT not in {"json", "text"}:
            raise ValueError(f"Unsupported LOG_FORMAT={self.LOG_FORMAT!r}. Allowed: json, text")

        if self.DEFAULT_STARTING_BUDGET < 0:
            raise ValueError("DEFAULT_STARTING_BUDGET must be >= 0")


settings = Settings()

# settings.py
import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from os import getenv

import structlog
from dotenv import load_dotenv

logger = structlog.get_logger(__name__)


def _csv_env(name: str, default: str = "") -> tuple[str, ...]:
    raw = getenv(name, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    db_path: str = "storage/app.db"
    jwt_secret: str = ""
    session_ttl: timedelta = timedelta(days=30)
    project_cache_ttl: float = 24 * 60 * 60
    provider_timeout: float = 40.0
    public_api_keys: tuple[str, ...] = ()
    admin_address: str | None = None
    commit_sha: str = "dev"
    cors_origins: tuple[str, ...] = field(default_factory=lambda: ("http://localhost:8080",))
    log_level: str = "INFO"
    log_format: str = "console"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        if not getenv("JWT_SECRET"):
            logger.warning("JWT_SECRET is not set, sessions will not survive a restart")
        return cls(
            db_path=getenv("DB_PATH", "storage/app.db"),
            jwt_secret=getenv("JWT_SECRET") or secrets.token_urlsafe(32),
            session_ttl=timedelta(days=int(getenv("SESSION_TTL_DAYS", "30"))),
            project_cache_ttl=float(getenv("PROJECT_CACHE_TTL_SECONDS", "86400")),
            provider_timeout=float(getenv("PROVIDER_TIMEOUT_SECONDS", "40")),
            public_api_keys=_csv_env("PUBLIC_API_KEYS"),
            admin_address=getenv("ADMIN_ADDRESS") or None,
            commit_sha=getenv("COMMIT_SHA", "dev"),
            cors_origins=_csv_env("CORS_ORIGINS", "http://localhost:8080"),
            log_level=getenv("LOG_LEVEL", "INFO").upper(),
            log_format=getenv("LOG_FORMAT", "console").lower(),
        )


def get_settings() -> Settings:
    return Settings.from_env()

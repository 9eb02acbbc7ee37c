from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlsplit

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name, "true" if default else "false").lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def _getint(name: str, default: int) -> int:
    raw = _getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


def normalize_base_url(url: str) -> str:
    """Reduce a configured base URL to its origin (scheme://host[:port]).

    Values that don't parse as absolute URLs are returned with any
    trailing slash removed.
    """
    parts = urlsplit(url)
    if parts.scheme and parts.netloc:
        return f"{parts.scheme}://{parts.netloc}"
    return url.rstrip("/")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    service_database_url: str | None = None
    public_base_url: str = "http://localhost:3000"
    certificate_prefix: str = "EDUC"
    certificate_validity_days: int = 365
    resend_api_key: str | None = None
    email_from: str = "certificados@hackathon.local"
    jwt_public_key: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _getint("PORT", 8000)

    prefix = _getenv("CERTIFICATE_PREFIX", "EDUC").upper()
    if not prefix.isalnum():
        raise ValueError(
            f"CERTIFICATE_PREFIX must be alphanumeric (got {prefix!r})"
        )

    validity_days = _getint("CERTIFICATE_VALIDITY_DAYS", 365)
    if validity_days <= 0:
        raise ValueError(
            f"CERTIFICATE_VALIDITY_DAYS must be positive (got {validity_days})"
        )

    database_url = _getenv("DATABASE_URL", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", False),
        port=port,
        database_url=database_url,
        redis_url=_getenv("REDIS_URL", "") or None,
        service_database_url=_getenv("SERVICE_DATABASE_URL", "") or database_url,
        public_base_url=normalize_base_url(
            _getenv("PUBLIC_BASE_URL", "http://localhost:3000")
        ),
        certificate_prefix=prefix,
        certificate_validity_days=validity_days,
        resend_api_key=_getenv("RESEND_API_KEY", "") or None,
        email_from=_getenv("EMAIL_FROM", "certificados@hackathon.local"),
        jwt_public_key=_getenv("JWT_PUBLIC_KEY", "") or None,
    )


SETTINGS = load_settings()

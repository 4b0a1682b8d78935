import os
from dataclasses import dataclass

from app.cheongwon.constants import EMAIL_COOKIE_MAX_AGE, REFRESH_COOKIE_MAX_AGE


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    univcert_api_key: str
    univcert_base_url: str
    univ_name: str

    access_token_minutes: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).") from None


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///cheongwon.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        univcert_api_key=_getenv("UNIVCERT_API_KEY", ""),
        univcert_base_url=_getenv("UNIVCERT_BASE_URL", "https://univcert.com/api/v1"),
        univ_name=_getenv("UNIV_NAME", "한국외국어대학교"),
        access_token_minutes=_getenv_int("ACCESS_TOKEN_MINUTES", 30),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "UNIVCERT_API_KEY": s.univcert_api_key,
        "UNIVCERT_BASE_URL": s.univcert_base_url,
        "UNIV_NAME": s.univ_name,
        "ACCESS_TOKEN_MINUTES": s.access_token_minutes,
        # cookie policy
        "REFRESH_COOKIE_MAX_AGE": int(REFRESH_COOKIE_MAX_AGE.total_seconds()),
        "EMAIL_COOKIE_MAX_AGE": int(EMAIL_COOKIE_MAX_AGE.total_seconds()),
        "COOKIE_SECURE": is_production,  # Require HTTPS in production
        # request body limit (petitions are text only)
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }

from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field


class Settings(BaseModel):
    captcha_ttl_seconds: int = Field(default=600)
    captcha_max_attempts: int = Field(default=3)
    captcha_sweep_interval_seconds: int = Field(default=300)

    profile_sweep_interval_seconds: int = Field(default=3600)
    profile_max_age_seconds: int = Field(default=3 * 24 * 60 * 60)
    profile_evict_below_score: int = Field(default=20)

    block_risk_threshold: int = Field(default=60)
    block_failed_attempts: int = Field(default=5)
    unblock_score_decay: int = Field(default=20)

    recent_request_window_seconds: int = Field(default=60)
    elevated_request_count: int = Field(default=10)

    rate_limits_enabled: bool = Field(default=True)
    rate_limit_api: str = Field(default="100/15minutes")
    rate_limit_form: str = Field(default="5/15minutes")
    rate_limit_captcha: str = Field(default="20/5minutes")
    rate_limit_admin: str = Field(default="30/15minutes")

    trust_forwarded_for: bool = Field(default=False)
    allowed_origins: List[str] = Field(default_factory=list)
    jwt_secret: str = Field(default="change-me-in-production")
    jwt_algorithm: str = Field(default="HS256")
    security_log_file: str = Field(default="security.log")


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _env_int(name: str, default: int) -> int:
    return int(_env(name, str(default)))


def _env_flag(name: str, default: bool) -> bool:
    return _env(name, "1" if default else "0") == "1"


def _load_settings() -> Settings:
    raw_origins = _env("ALLOWED_ORIGINS", "") or ""
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    return Settings(
        captcha_ttl_seconds=_env_int("CAPTCHA_TTL_SECONDS", 600),
        captcha_max_attempts=_env_int("CAPTCHA_MAX_ATTEMPTS", 3),
        captcha_sweep_interval_seconds=_env_int("CAPTCHA_SWEEP_INTERVAL_SECONDS", 300),
        profile_sweep_interval_seconds=_env_int("PROFILE_SWEEP_INTERVAL_SECONDS", 3600),
        profile_max_age_seconds=_env_int("PROFILE_MAX_AGE_SECONDS", 3 * 24 * 60 * 60),
        profile_evict_below_score=_env_int("PROFILE_EVICT_BELOW_SCORE", 20),
        block_risk_threshold=_env_int("BLOCK_RISK_THRESHOLD", 60),
        block_failed_attempts=_env_int("BLOCK_FAILED_ATTEMPTS", 5),
        unblock_score_decay=_env_int("UNBLOCK_SCORE_DECAY", 20),
        recent_request_window_seconds=_env_int("RECENT_REQUEST_WINDOW_SECONDS", 60),
        elevated_request_count=_env_int("ELEVATED_REQUEST_COUNT", 10),
        rate_limits_enabled=_env_flag("RATE_LIMITS_ENABLED", True),
        rate_limit_api=_env("RATE_LIMIT_API", "100/15minutes"),
        rate_limit_form=_env("RATE_LIMIT_FORM", "5/15minutes"),
        rate_limit_captcha=_env("RATE_LIMIT_CAPTCHA", "20/5minutes"),
        rate_limit_admin=_env("RATE_LIMIT_ADMIN", "30/15minutes"),
        trust_forwarded_for=_env_flag("TRUST_FORWARDED_FOR", False),
        allowed_origins=origins,
        jwt_secret=_env("JWT_SECRET", "change-me-in-production"),
        jwt_algorithm=_env("JWT_ALGORITHM", "HS256"),
        security_log_file=_env("SECURITY_LOG_FILE", "security.log"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return _load_settings()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings"]

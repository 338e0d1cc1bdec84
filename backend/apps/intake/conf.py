# apps/intake/conf.py

"""
Pipeline settings, read from the ``LEAD_INTAKE`` dict in Django settings.

The popup cap and the dedup window have no documented business rationale;
they are kept here as knobs rather than hardcoded.
"""

from dataclasses import dataclass, field, fields

from django.conf import settings


@dataclass(frozen=True)
class IntakeSettings:
    API_BASE_URL: str = "http://localhost:3001"
    API_TIMEOUT: float = 30.0
    API_MAX_RETRIES: int = 2

    IP_LOOKUP_URL: str = "https://ipapi.co/json/"
    IP_LOOKUP_FALLBACK_URL: str = "http://ip-api.com/json/"
    TELEMETRY_TIMEOUT: float = 5.0
    IP_CACHE_SECONDS: int = 60 * 60

    DRAFT_DEBOUNCE_SECONDS: float = 0.5
    DRAFT_TTL_SECONDS: int | None = None

    DEDUP_WINDOW_SECONDS: int = 60 * 60 * 24
    SUBMIT_LOCK_SECONDS: float = 60.0

    POPUP_CAP: int = 3
    ONE_SHOT_TRIGGERS: tuple[str, ...] = field(default=("exit_intent",))

    STORAGE_PREFIX: str = "lead_"
    SESSION_BACKEND: str = "django"  # "django" or "redis"
    SESSION_TTL_SECONDS: int = 60 * 60 * 24


def intake_settings() -> IntakeSettings:
    """Build settings from Django config, ignoring unknown keys."""
    overrides = getattr(settings, "LEAD_INTAKE", {}) or {}
    known = {f.name for f in fields(IntakeSettings)}
    values = {k: v for k, v in overrides.items() if k in known}
    if "ONE_SHOT_TRIGGERS" in values:
        values["ONE_SHOT_TRIGGERS"] = tuple(values["ONE_SHOT_TRIGGERS"])
    return IntakeSettings(**values)

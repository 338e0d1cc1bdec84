# leadcapture/settings/test.py

from .base import *  # noqa: F401, F403

SECRET_KEY = "test-secret-key"

ALLOWED_HOSTS = ["testserver", "localhost"]

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

# Sessions travel in the cookie so tests need neither Redis nor a database
SESSION_ENGINE = "django.contrib.sessions.backends.signed_cookies"

CELERY_TASK_ALWAYS_EAGER = True
CELERY_BROKER_URL = "memory://"

LEAD_INTAKE = {
    "API_BASE_URL": "http://backend.test",
    "API_TIMEOUT": 2.0,
    "API_MAX_RETRIES": 0,
    "TELEMETRY_TIMEOUT": 0.5,
    "DRAFT_DEBOUNCE_SECONDS": 0.05,
    "SESSION_BACKEND": "django",
}

# leadcapture/settings/local.py

from .base import *  # noqa: F401, F403

DEBUG = True

SECRET_KEY = "dev-secret-key-not-for-production"

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "web"]

# Run tasks synchronously in dev for easier debugging
CELERY_TASK_ALWAYS_EAGER = False  # Set True if you want synchronous tasks

LOGGING["loggers"]["apps"]["level"] = "DEBUG"

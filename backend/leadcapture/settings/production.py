# leadcapture/settings/production.py

import os
from .base import *  # noqa: F401, F403

DEBUG = False

# Security
SECRET_KEY = os.environ["SECRET_KEY"]
ALLOWED_HOSTS = os.environ.get("ALLOWED_HOSTS", "").split(",")

# Visitor state lives in Redis so any web worker can serve the session
LEAD_INTAKE = {
    **LEAD_INTAKE,
    "SESSION_BACKEND": os.environ.get("LEAD_SESSION_BACKEND", "redis"),
    "SESSION_TTL_SECONDS": int(os.environ.get("LEAD_SESSION_TTL", str(60 * 60 * 4))),
}

# Security settings
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = "DENY"
CSRF_COOKIE_SECURE = True
SESSION_COOKIE_SECURE = True

# If behind a proxy (nginx, load balancer)
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
USE_X_FORWARDED_HOST = True

# Anonymous visitors only; throttle per IP
REST_FRAMEWORK = {
    **REST_FRAMEWORK,
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.AnonRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": "300/hour",
    },
}

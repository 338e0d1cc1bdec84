# apps/intake/services.py

import logging
import uuid

from apps.common.enums import FormSource
from apps.common.storage import (
    BrowsingSession,
    DjangoSessionStore,
    RedisSessionStore,
    SessionStore,
)
from .conf import IntakeSettings, intake_settings
from .controller import FormStateController
from .dedupe import DuplicateGuard, Fingerprint
from .drafts import DraftPersistence
from .http_client import BackendClient, HttpClientConfig
from .telemetry import IpLookupProvider, TelemetryAcquisition

logger = logging.getLogger(__name__)


VISITOR_SESSION_ID_KEY = "lead_visitor_session_id"


class CeleryContactPublisher:
    """Hands recorded fingerprints to a Celery task for registration."""

    def publish(self, fingerprint: Fingerprint, submitted_at: str) -> None:
        from .tasks import publish_submitted_contact

        publish_submitted_contact.delay(fingerprint.mobile, fingerprint.email, submitted_at)


def get_client_ip(request) -> str | None:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


def get_session_store(request, config: IntakeSettings | None = None) -> SessionStore:
    """Pick the session-scoped store for this visitor."""
    config = config or intake_settings()

    if config.SESSION_BACKEND == "redis":
        session_id = request.session.get(VISITOR_SESSION_ID_KEY)
        if not session_id:
            session_id = uuid.uuid4().hex
            request.session[VISITOR_SESSION_ID_KEY] = session_id
        return RedisSessionStore(session_id, ttl_seconds=config.SESSION_TTL_SECONDS)

    return DjangoSessionStore(request.session)


def build_backend_client(config: IntakeSettings | None = None) -> BackendClient:
    config = config or intake_settings()
    return BackendClient(HttpClientConfig(
        base_url=config.API_BASE_URL,
        timeout=config.API_TIMEOUT,
        max_retries=config.API_MAX_RETRIES,
    ))


def build_controller(request, source: str = FormSource.HERO_FORM) -> FormStateController:
    """Assemble a form controller bound to the visitor's session."""
    config = intake_settings()
    session = BrowsingSession(get_session_store(request, config), prefix=config.STORAGE_PREFIX)
    client = build_backend_client(config)

    provider = IpLookupProvider(
        primary_url=config.IP_LOOKUP_URL,
        fallback_url=config.IP_LOOKUP_FALLBACK_URL,
        client_ip=get_client_ip(request),
        timeout=config.TELEMETRY_TIMEOUT,
    )
    telemetry = TelemetryAcquisition(
        session,
        provider,
        user_agent=request.META.get("HTTP_USER_AGENT"),
        timeout=config.TELEMETRY_TIMEOUT,
        cache_seconds=config.IP_CACHE_SECONDS,
    )
    guard = DuplicateGuard(
        session,
        client,
        window_seconds=config.DEDUP_WINDOW_SECONDS,
        publisher=CeleryContactPublisher(),
    )
    drafts = DraftPersistence(
        session,
        debounce_seconds=config.DRAFT_DEBOUNCE_SECONDS,
        ttl_seconds=config.DRAFT_TTL_SECONDS,
    )

    return FormStateController(
        session=session,
        client=client,
        guard=guard,
        drafts=drafts,
        telemetry=telemetry,
        source=source,
        submit_lock_seconds=config.SUBMIT_LOCK_SECONDS,
    )

# apps/intake/dedupe.py

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol

from apps.common.enums import DuplicateSource
from apps.common.exceptions import DuplicateCheckUnavailable
from apps.common.storage import BrowsingSession
from .http_client import BackendClient

logger = logging.getLogger(__name__)


SUBMITTED_CONTACTS_KEY = "submitted_contacts"

INDIA_COUNTRY_CODE = "91"


def normalize_mobile(mobile: str | None) -> str:
    """Digits only, with a leading India country code dropped."""
    if not mobile:
        return ""
    cleaned = re.sub(r"\D", "", mobile)
    if len(cleaned) == 12 and cleaned.startswith(INDIA_COUNTRY_CODE):
        cleaned = cleaned[2:]
    return cleaned


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


@dataclass(frozen=True)
class Fingerprint:
    """Normalized (mobile, email) pair identifying a visitor's submission."""
    mobile: str
    email: str

    @classmethod
    def from_contact(cls, mobile: str | None, email: str | None) -> "Fingerprint":
        return cls(mobile=normalize_mobile(mobile), email=normalize_email(email))


@dataclass
class DuplicateCheckResult:
    exists: bool = False
    mobile_exists: bool = False
    email_exists: bool = False
    source: str = ""

    @property
    def message(self) -> str | None:
        if not self.exists:
            return None
        if self.mobile_exists and self.email_exists:
            return "This mobile number and email have already been registered. Our team will contact you soon."
        if self.mobile_exists:
            return "This mobile number has already been registered. Our team will contact you soon."
        if self.email_exists:
            return "This email address has already been registered. Our team will contact you soon."
        return "You have already submitted an inquiry. Our team will contact you soon."


class ContactPublisher(Protocol):
    """Pushes a recorded fingerprint somewhere other devices can see it."""

    def publish(self, fingerprint: Fingerprint, submitted_at: str) -> None:
        ...


class AsyncApiPublisher:
    """
    Registers contacts with the backend from a background task on the
    running event loop. Failures are logged, never raised.
    """

    def __init__(self, client: BackendClient):
        self.client = client
        self._tasks: set[asyncio.Task] = set()

    def publish(self, fingerprint: Fingerprint, submitted_at: str) -> None:
        task = asyncio.get_running_loop().create_task(
            self._register(fingerprint, submitted_at)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _register(self, fingerprint: Fingerprint, submitted_at: str) -> None:
        response = await self.client.register_contact(
            fingerprint.mobile, fingerprint.email, submitted_at
        )
        if not response.success:
            logger.warning(f"Could not register submitted contact: {response.error}")

    async def drain(self) -> None:
        """Wait for in-flight registrations."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


class DuplicateGuard:
    """
    Two-tier duplicate check: a local recency store, then the backend.

    The remote tier is authoritative when it answers, but an unreachable
    backend never blocks a lead: the check fails open.
    """

    def __init__(
        self,
        session: BrowsingSession,
        client: BackendClient,
        window_seconds: int = 60 * 60 * 24,
        publisher: ContactPublisher | None = None,
    ):
        self.session = session
        self.client = client
        self.window_seconds = window_seconds
        self.publisher = publisher

    @property
    def clock(self) -> Callable[[], float]:
        return self.session.clock

    def local_entries(self) -> list[dict]:
        """Recorded fingerprints still inside the window."""
        entries = self.session.get(SUBMITTED_CONTACTS_KEY, [])
        if not isinstance(entries, list):
            return []
        cutoff = self.clock() - self.window_seconds
        return [
            e for e in entries
            if isinstance(e, dict) and e.get("recorded_at", 0) >= cutoff
        ]

    def check_local(self, fingerprint: Fingerprint) -> DuplicateCheckResult:
        entries = self.local_entries()
        mobile_exists = bool(fingerprint.mobile) and any(
            e.get("mobile") == fingerprint.mobile for e in entries
        )
        email_exists = bool(fingerprint.email) and any(
            e.get("email") == fingerprint.email for e in entries
        )
        return DuplicateCheckResult(
            exists=mobile_exists or email_exists,
            mobile_exists=mobile_exists,
            email_exists=email_exists,
            source=DuplicateSource.LOCAL,
        )

    async def check_remote(self, fingerprint: Fingerprint) -> DuplicateCheckResult:
        """Query the backend by mobile, then by email."""
        mobile_response = await self.client.find_contacts(mobile=fingerprint.mobile)
        if not mobile_response.success:
            raise DuplicateCheckUnavailable(mobile_response.error or "Mobile lookup failed")

        email_response = await self.client.find_contacts(email=fingerprint.email)
        if not email_response.success:
            raise DuplicateCheckUnavailable(email_response.error or "Email lookup failed")

        mobile_exists = bool(mobile_response.data)
        email_exists = bool(email_response.data)
        return DuplicateCheckResult(
            exists=mobile_exists or email_exists,
            mobile_exists=mobile_exists,
            email_exists=email_exists,
            source=DuplicateSource.REMOTE,
        )

    async def check(self, fingerprint: Fingerprint) -> DuplicateCheckResult:
        local_result = self.check_local(fingerprint)
        if local_result.exists:
            logger.info("Duplicate submission caught by local check")
            return local_result

        try:
            return await self.check_remote(fingerprint)
        except DuplicateCheckUnavailable as e:
            # Fail open: allow the submission if the backend is unreachable
            logger.warning(f"Remote duplicate check unavailable, allowing submission: {e}")
            return DuplicateCheckResult(source=DuplicateSource.UNAVAILABLE)

    def record(self, fingerprint: Fingerprint) -> None:
        """Remember a confirmed submission locally, then publish it."""
        now = self.clock()
        entries = self.local_entries()

        already_known = any(
            e.get("mobile") == fingerprint.mobile and e.get("email") == fingerprint.email
            for e in entries
        )
        if not already_known:
            entries.append({
                "mobile": fingerprint.mobile,
                "email": fingerprint.email,
                "recorded_at": now,
            })
            self.session.set(SUBMITTED_CONTACTS_KEY, entries)

        if self.publisher is None:
            return

        submitted_at = datetime.fromtimestamp(now, tz=timezone.utc).isoformat()
        try:
            self.publisher.publish(fingerprint, submitted_at)
        except Exception as e:
            logger.warning(f"Failed to publish submitted contact: {e}")

    def clear_local(self) -> None:
        self.session.remove(SUBMITTED_CONTACTS_KEY)

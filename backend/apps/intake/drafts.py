# apps/intake/drafts.py

import asyncio
import logging

from apps.common.storage import BrowsingSession
from .schema import LeadDraft, FIELD_NAMES

logger = logging.getLogger(__name__)


LEAD_FORM_DRAFT_KEY = "lead_form_draft"

# Provenance comes from the page that mounts the form, not from storage
PERSISTED_FIELDS = FIELD_NAMES - {"source"}


class DraftPersistence:
    """
    Debounced snapshots of in-progress form values in session storage.

    A later ``schedule()`` supersedes a pending one. ``clear()`` cancels any
    pending write before removing the stored draft, so a cleared draft can
    never be resurrected by a late timer.
    """

    def __init__(
        self,
        session: BrowsingSession,
        debounce_seconds: float = 0.5,
        ttl_seconds: int | None = None,
    ):
        self.session = session
        self.debounce_seconds = debounce_seconds
        self.ttl_seconds = ttl_seconds
        self._pending: dict | None = None
        self._timer: asyncio.TimerHandle | None = None

    def _snapshot(self, draft: LeadDraft) -> dict:
        data = draft.to_dict()
        return {k: v for k, v in data.items() if k in PERSISTED_FIELDS}

    def save(self, draft: LeadDraft) -> None:
        """Write immediately, replacing any pending snapshot."""
        self.cancel()
        self._write(self._snapshot(draft))

    def schedule(self, draft: LeadDraft) -> None:
        """Write after the debounce delay, superseding a pending write."""
        self._pending = self._snapshot(draft)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Sync caller, write through
            self.flush()
            return

        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self.debounce_seconds, self.flush)

    def flush(self) -> None:
        """Write the pending snapshot now, if there is one."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if self._pending is None:
            return

        snapshot, self._pending = self._pending, None
        self._write(snapshot)

    def cancel(self) -> None:
        """Drop a pending write without storing it."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None

    def _write(self, snapshot: dict) -> None:
        self.session.set(LEAD_FORM_DRAFT_KEY, snapshot, expires_in=self.ttl_seconds)
        logger.debug(f"Saved form draft ({len(snapshot)} fields)")

    def load(self) -> dict | None:
        stored = self.session.get(LEAD_FORM_DRAFT_KEY)
        if not isinstance(stored, dict):
            return None
        return stored

    def restore(self, defaults: LeadDraft | None = None) -> LeadDraft:
        """
        Overlay stored values on schema defaults.
        Unknown stored keys are ignored; missing keys keep their defaults.
        """
        draft = defaults or LeadDraft()
        stored = self.load()
        if not stored:
            return draft

        values = draft.to_dict()
        restored = [k for k in stored if k in PERSISTED_FIELDS]
        for key in restored:
            values[key] = stored[key]

        logger.debug(f"Restored form draft fields: {', '.join(sorted(restored))}")
        return LeadDraft.from_mapping(values)

    def clear(self) -> None:
        self.cancel()
        self.session.remove(LEAD_FORM_DRAFT_KEY)

import asyncio

import pytest

from apps.common.enums import DuplicateSource
from apps.intake.dedupe import (
    SUBMITTED_CONTACTS_KEY,
    AsyncApiPublisher,
    DuplicateCheckResult,
    DuplicateGuard,
    Fingerprint,
    normalize_mobile,
)

RAHUL = Fingerprint.from_contact("9876543210", "rahul@x.com")


class TestNormalization:
    def test_equivalent_contacts_share_a_fingerprint(self):
        a = Fingerprint.from_contact("+91 98765-43210", "Jane@Example.com")
        b = Fingerprint.from_contact("9876543210", "jane@example.com ")
        assert a == b

    @pytest.mark.parametrize("raw,expected", [
        ("919876543210", "9876543210"),
        ("(987) 654-3210", "9876543210"),
        ("9198765432", "9198765432"),
        (None, ""),
    ])
    def test_normalize_mobile(self, raw, expected):
        assert normalize_mobile(raw) == expected


class TestDuplicateMessages:
    @pytest.mark.parametrize("mobile,email,fragment", [
        (True, True, "mobile number and email"),
        (True, False, "This mobile number has"),
        (False, True, "This email address has"),
    ])
    def test_message_names_the_matching_field(self, mobile, email, fragment):
        result = DuplicateCheckResult(exists=True, mobile_exists=mobile, email_exists=email)
        assert fragment in result.message

    def test_no_message_without_duplicate(self):
        assert DuplicateCheckResult().message is None


class TestLocalCheck:
    def test_recorded_contact_is_found(self, session, backend_client):
        guard = DuplicateGuard(session, backend_client)
        guard.record(RAHUL)

        result = guard.check_local(Fingerprint.from_contact("+91 98765 43210", "other@x.com"))

        assert result.exists
        assert result.mobile_exists
        assert not result.email_exists
        assert result.source == DuplicateSource.LOCAL

    def test_entries_expire_after_window(self, session, backend_client, clock):
        guard = DuplicateGuard(session, backend_client, window_seconds=60)
        guard.record(RAHUL)
        clock.advance(61)

        assert not guard.check_local(RAHUL).exists

    def test_recording_twice_keeps_one_entry(self, session, backend_client):
        guard = DuplicateGuard(session, backend_client)
        guard.record(RAHUL)
        guard.record(RAHUL)

        assert len(session.get(SUBMITTED_CONTACTS_KEY)) == 1

    def test_clear_local(self, session, backend_client):
        guard = DuplicateGuard(session, backend_client)
        guard.record(RAHUL)
        guard.clear_local()
        assert guard.local_entries() == []

    def test_record_publishes(self, session, backend_client, publisher):
        guard = DuplicateGuard(session, backend_client, publisher=publisher)
        guard.record(RAHUL)

        fingerprint, submitted_at = publisher.published[0]
        assert fingerprint == RAHUL
        assert submitted_at.endswith("+00:00")

    def test_publish_errors_are_swallowed(self, session, backend_client):
        class BrokenPublisher:
            def publish(self, fingerprint, submitted_at):
                raise ConnectionError("broker down")

        guard = DuplicateGuard(session, backend_client, publisher=BrokenPublisher())
        guard.record(RAHUL)

        assert guard.check_local(RAHUL).exists


class TestRemoteCheck:
    @pytest.mark.asyncio
    async def test_local_hit_skips_network(self, session, backend_client, backend):
        guard = DuplicateGuard(session, backend_client)
        guard.record(RAHUL)

        result = await guard.check(RAHUL)

        assert result.exists
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_remote_hit_on_email(self, session, backend_client, backend):
        backend.contacts.append({"mobile": "9000000000", "email": "rahul@x.com"})
        guard = DuplicateGuard(session, backend_client)

        result = await guard.check(RAHUL)

        assert result.exists
        assert result.email_exists
        assert not result.mobile_exists
        assert result.source == DuplicateSource.REMOTE
        assert len(backend.calls("GET", "/submittedContacts")) == 2

    @pytest.mark.asyncio
    async def test_no_duplicate(self, session, backend_client):
        result = await DuplicateGuard(session, backend_client).check(RAHUL)
        assert not result.exists
        assert result.source == DuplicateSource.REMOTE

    @pytest.mark.asyncio
    async def test_backend_failure_fails_open(self, session, backend_client, backend):
        backend.contacts_status = 503

        result = await DuplicateGuard(session, backend_client).check(RAHUL)

        assert not result.exists
        assert result.source == DuplicateSource.UNAVAILABLE


class TestAsyncApiPublisher:
    @pytest.mark.asyncio
    async def test_registers_contact_in_background(self, session, backend_client, backend):
        publisher = AsyncApiPublisher(backend_client)
        guard = DuplicateGuard(session, backend_client, publisher=publisher)

        guard.record(RAHUL)
        await publisher.drain()

        assert backend.contacts[0]["mobile"] == "9876543210"
        assert backend.contacts[0]["email"] == "rahul@x.com"
        assert "submittedAt" in backend.contacts[0]

    @pytest.mark.asyncio
    async def test_drain_without_tasks(self, backend_client):
        await asyncio.wait_for(AsyncApiPublisher(backend_client).drain(), timeout=1)

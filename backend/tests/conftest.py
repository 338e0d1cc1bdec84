import asyncio
import json
from datetime import date

import httpx
import pytest

from apps.common.storage import BrowsingSession, MemorySessionStore
from apps.intake.controller import FormStateController
from apps.intake.dedupe import DuplicateGuard
from apps.intake.drafts import DraftPersistence
from apps.intake.http_client import BackendClient, HttpClientConfig
from apps.intake.telemetry import IpLookup, TelemetryAcquisition

TODAY = date(2025, 2, 20)

DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    """In-memory lead backend served through httpx.MockTransport."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.leads: list[dict] = []
        self.contacts: list[dict] = []
        self.lead_status = 201
        self.contacts_status = 200
        self.latency = 0.0
        self.lead_timeout = False

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.latency:
            await asyncio.sleep(self.latency)
        path = request.url.path

        if path == "/leads" and request.method == "POST":
            if self.lead_timeout:
                raise httpx.ReadTimeout("backend did not answer", request=request)
            if self.lead_status >= 400:
                return httpx.Response(self.lead_status, json={"message": "backend down"})
            payload = json.loads(request.content)
            record = {"id": len(self.leads) + 1, **payload}
            self.leads.append(record)
            return httpx.Response(self.lead_status, json=record)

        if path == "/submittedContacts" and request.method == "GET":
            if self.contacts_status >= 400:
                return httpx.Response(self.contacts_status, json={"message": "unavailable"})
            filters = dict(request.url.params)
            matches = [
                c for c in self.contacts
                if all(c.get(k) == v for k, v in filters.items())
            ]
            return httpx.Response(200, json=matches)

        if path == "/submittedContacts" and request.method == "POST":
            if self.contacts_status >= 400:
                return httpx.Response(self.contacts_status, json={"message": "unavailable"})
            self.contacts.append(json.loads(request.content))
            return httpx.Response(201, json=self.contacts[-1])

        return httpx.Response(404, json={"message": "not found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


class StaticProvider:
    """Telemetry provider answering with a fixed lookup, an error, or slowly."""

    def __init__(self, lookup: IpLookup | None = None, error: Exception | None = None, delay: float = 0):
        self.lookup_result = lookup or IpLookup(
            ip="203.0.113.7", city="Pune", region="Maharashtra", country="India",
            country_code="IN", timezone="Asia/Kolkata",
        )
        self.error = error
        self.delay = delay
        self.calls = 0

    async def lookup(self) -> IpLookup:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.lookup_result


class RecordingPublisher:
    def __init__(self):
        self.published = []

    def publish(self, fingerprint, submitted_at):
        self.published.append((fingerprint, submitted_at))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemorySessionStore()


@pytest.fixture
def session(store, clock):
    return BrowsingSession(store, clock=clock)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def backend_client(backend):
    return BackendClient(
        HttpClientConfig(base_url="http://backend.test", max_retries=0),
        transport=backend.transport,
    )


@pytest.fixture
def provider():
    return StaticProvider()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def make_controller(session, backend_client, provider, publisher):
    """Build controllers sharing one browsing session."""

    def _make(source="hero_form", provider_override=None):
        telemetry = TelemetryAcquisition(
            session, provider_override or provider, user_agent=DESKTOP_UA, timeout=0.5,
        )
        guard = DuplicateGuard(session, backend_client, publisher=publisher)
        drafts = DraftPersistence(session, debounce_seconds=0.01)
        return FormStateController(
            session=session,
            client=backend_client,
            guard=guard,
            drafts=drafts,
            telemetry=telemetry,
            source=source,
            today=TODAY,
        )

    return _make


@pytest.fixture
def controller(make_controller):
    return make_controller()

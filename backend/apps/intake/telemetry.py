# apps/intake/telemetry.py

import asyncio
import logging
import re
from dataclasses import dataclass, field, asdict
from typing import Protocol

import httpx

from apps.common.enums import DeviceClass, TelemetryStatus
from apps.common.exceptions import TelemetryFailure
from apps.common.storage import BrowsingSession

logger = logging.getLogger(__name__)


IP_DATA_KEY = "ip_data"

UNKNOWN = "Unknown"

MOBILE_UA_PATTERN = re.compile(r"mobile|android|iphone|ipod|blackberry|opera mini|iemobile", re.I)
TABLET_UA_PATTERN = re.compile(r"ipad|tablet|playbook|silk", re.I)

# Order matters: Edge and Opera also advertise Chrome
BROWSER_PATTERNS = [
    ("Edge", re.compile(r"Edg/(\d+)")),
    ("Opera", re.compile(r"OPR/(\d+)")),
    ("Chrome", re.compile(r"Chrome/(\d+)")),
    ("Firefox", re.compile(r"Firefox/(\d+)")),
    ("Safari", re.compile(r"Version/(\d+).*Safari")),
    ("IE", re.compile(r"MSIE (\d+)")),
]


def classify_device(user_agent: str | None) -> str:
    if not user_agent:
        return DeviceClass.UNKNOWN
    if MOBILE_UA_PATTERN.search(user_agent):
        return DeviceClass.MOBILE
    if TABLET_UA_PATTERN.search(user_agent):
        return DeviceClass.TABLET
    return DeviceClass.DESKTOP


def browser_info(user_agent: str | None) -> dict[str, str]:
    ua = user_agent or UNKNOWN
    for name, pattern in BROWSER_PATTERNS:
        match = pattern.search(ua)
        if match:
            return {"name": name, "version": match.group(1)}
    return {"name": UNKNOWN, "version": UNKNOWN}


@dataclass
class Location:
    city: str = UNKNOWN
    state: str = UNKNOWN
    country: str = UNKNOWN


@dataclass
class TrackingContext:
    """Best-effort client metadata attached to a lead."""
    ip_address: str = UNKNOWN
    location: Location = field(default_factory=Location)
    user_agent: str = UNKNOWN
    device_class: str = DeviceClass.UNKNOWN

    @classmethod
    def fallback(cls, user_agent: str | None = None) -> "TrackingContext":
        return cls(
            user_agent=user_agent or UNKNOWN,
            device_class=classify_device(user_agent),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class IpLookup:
    """Network-derived location for the visitor's IP."""
    ip: str
    city: str | None = None
    region: str | None = None
    country: str | None = None
    country_code: str | None = None
    timezone: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


class TelemetryProvider(Protocol):
    async def lookup(self) -> IpLookup:
        ...


class IpLookupProvider:
    """
    Reverse geolocation by IP, trying a primary service then an
    alternative one. Raises TelemetryFailure when neither answers.
    """

    def __init__(
        self,
        primary_url: str = "https://ipapi.co/json/",
        fallback_url: str | None = "http://ip-api.com/json/",
        client_ip: str | None = None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.primary_url = primary_url
        self.fallback_url = fallback_url
        self.client_ip = client_ip
        self.timeout = timeout
        self.transport = transport

    async def lookup(self) -> IpLookup:
        try:
            return await self._fetch_primary()
        except TelemetryFailure as e:
            if not self.fallback_url:
                raise
            logger.info(f"Primary IP lookup failed, trying alternative: {e}")
        return await self._fetch_fallback()

    async def _get_json(self, url: str) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, headers={"Accept": "application/json"})
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TelemetryFailure(f"{url}: {e}") from e

        if not isinstance(data, dict):
            raise TelemetryFailure(f"{url}: unexpected response")
        return data

    async def _fetch_primary(self) -> IpLookup:
        url = self.primary_url
        if self.client_ip:
            url = f"{url.rstrip('/').removesuffix('/json')}/{self.client_ip}/json/"

        data = await self._get_json(url)
        if data.get("error"):
            raise TelemetryFailure(data.get("reason") or "API error")
        if not data.get("ip"):
            raise TelemetryFailure("No IP in response")

        return IpLookup(
            ip=data["ip"],
            city=data.get("city"),
            region=data.get("region"),
            country=data.get("country_name"),
            country_code=data.get("country_code"),
            timezone=data.get("timezone"),
        )

    async def _fetch_fallback(self) -> IpLookup:
        url = self.fallback_url
        if self.client_ip:
            url = f"{url.rstrip('/')}/{self.client_ip}"

        data = await self._get_json(url)
        if data.get("status") == "fail" or not data.get("query"):
            raise TelemetryFailure(data.get("message") or "Lookup failed")

        return IpLookup(
            ip=data["query"],
            city=data.get("city"),
            region=data.get("regionName"),
            country=data.get("country"),
            country_code=data.get("countryCode"),
            timezone=data.get("timezone"),
        )


class TelemetryAcquisition:
    """
    Holds the current best-known TrackingContext for one form mount.

    ``current`` never blocks: while a lookup is pending or after it failed,
    it returns the fallback context.
    """

    def __init__(
        self,
        session: BrowsingSession,
        provider: TelemetryProvider,
        user_agent: str | None = None,
        timeout: float = 5.0,
        cache_seconds: int = 60 * 60,
    ):
        self.session = session
        self.provider = provider
        self.user_agent = user_agent
        self.timeout = timeout
        self.cache_seconds = cache_seconds

        self.status: str = TelemetryStatus.PENDING
        self._context: TrackingContext | None = None
        self._task: asyncio.Task | None = None

    @property
    def current(self) -> TrackingContext:
        if self.status == TelemetryStatus.RESOLVED and self._context is not None:
            return self._context
        return TrackingContext.fallback(self.user_agent)

    @property
    def is_pending(self) -> bool:
        return self.status == TelemetryStatus.PENDING

    def _build_context(self, lookup: IpLookup) -> TrackingContext:
        return TrackingContext(
            ip_address=lookup.ip or UNKNOWN,
            location=Location(
                city=lookup.city or UNKNOWN,
                state=lookup.region or UNKNOWN,
                country=lookup.country or UNKNOWN,
            ),
            user_agent=self.user_agent or UNKNOWN,
            device_class=classify_device(self.user_agent),
        )

    def load_cached(self) -> bool:
        """Resolve from the session cache without any network call."""
        cached = self.session.get(IP_DATA_KEY)
        if not isinstance(cached, dict) or not cached.get("ip"):
            return False
        try:
            lookup = IpLookup(**cached)
        except TypeError:
            return False
        self._context = self._build_context(lookup)
        self.status = TelemetryStatus.RESOLVED
        return True

    async def acquire(self, use_cache: bool = True) -> TrackingContext:
        """Look up tracking data, bounded by the timeout. Never raises."""
        if use_cache and self.load_cached():
            return self.current

        try:
            lookup = await asyncio.wait_for(self.provider.lookup(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Tracking lookup timed out after {self.timeout}s, using fallback")
            self.status = TelemetryStatus.FALLBACK
            return self.current
        except Exception as e:
            logger.warning(f"Tracking lookup failed, using fallback: {e}")
            self.status = TelemetryStatus.FALLBACK
            return self.current

        self._context = self._build_context(lookup)
        self.status = TelemetryStatus.RESOLVED
        self.session.set(IP_DATA_KEY, lookup.to_dict(), expires_in=self.cache_seconds)
        return self.current

    def start(self) -> asyncio.Task | None:
        """Begin a background lookup once per mount."""
        if self._task is not None and not self._task.done():
            return self._task
        if self.status == TelemetryStatus.RESOLVED:
            return None
        self._task = asyncio.get_running_loop().create_task(self.acquire())
        return self._task

    def refresh(self) -> asyncio.Task:
        """Retry the lookup, ignoring the session cache."""
        self.close()
        self.status = TelemetryStatus.PENDING
        self._task = asyncio.get_running_loop().create_task(self.acquire(use_cache=False))
        return self._task

    def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

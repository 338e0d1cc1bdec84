# apps/intake/http_client.py

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


LEADS_PATH = "/leads"
CONTACTS_PATH = "/submittedContacts"

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


@dataclass
class ApiResponse:
    """Standardized ``{success, data | error}`` result of a backend call."""
    success: bool
    data: Any = None
    error: str | None = None
    status_code: int | None = None
    duration_ms: int = 0

    @property
    def timed_out(self) -> bool:
        return bool(self.error) and self.error.startswith("Timeout")


@dataclass
class HttpClientConfig:
    """Configuration for the backend client."""
    base_url: str = "http://localhost:3001"
    timeout: float = 30.0
    max_retries: int = 2
    retry_delay: float = 0.5
    retry_backoff: float = 2.0  # Exponential backoff multiplier

    default_headers: dict[str, str] | None = None


class BackendClient:
    """
    Async client for the lead backend (a REST collection store).

    Only idempotent requests are retried; a POST that times out may already
    have created a record, so it is reported as a failure instead.
    """

    def __init__(
        self,
        config: HttpClientConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or HttpClientConfig()
        self.transport = transport

    def _get_headers(self, extra_headers: dict | None = None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.config.default_headers:
            headers.update(self.config.default_headers)
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def _should_retry(self, method: str, status_code: int | None, attempt: int) -> bool:
        if method not in IDEMPOTENT_METHODS:
            return False
        if attempt >= self.config.max_retries:
            return False
        if status_code is None:  # Connection error
            return True
        return status_code >= 500 or status_code == 429

    def _retry_delay(self, attempt: int) -> float:
        return self.config.retry_delay * (self.config.retry_backoff ** (attempt - 1))

    async def request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: Any = None,
        headers: dict | None = None,
    ) -> ApiResponse:
        """Send a request and wrap the outcome in an ApiResponse."""
        method = method.upper()
        attempt = 0

        while True:
            start_time = time.monotonic()
            status_code = None

            try:
                async with httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=self.config.timeout,
                    transport=self.transport,
                ) as client:
                    response = await client.request(
                        method,
                        path,
                        params=params,
                        json=json,
                        headers=self._get_headers(headers),
                    )
                status_code = response.status_code
                duration_ms = int((time.monotonic() - start_time) * 1000)

                if response.is_success:
                    return self._wrap_body(response, duration_ms)

                error = self._error_message(response)
                logger.warning(f"{method} {path} failed with {status_code}: {error}")

            except httpx.TimeoutException as e:
                duration_ms = int((time.monotonic() - start_time) * 1000)
                error = f"Timeout: {e}"
                logger.warning(f"Timeout on {method} {path}: {e}")

            except httpx.HTTPError as e:
                duration_ms = int((time.monotonic() - start_time) * 1000)
                error = f"Connection error: {e}"
                logger.warning(f"Connection error on {method} {path}: {e}")

            if not self._should_retry(method, status_code, attempt):
                return ApiResponse(
                    success=False,
                    error=error,
                    status_code=status_code,
                    duration_ms=duration_ms,
                )

            attempt += 1
            delay = self._retry_delay(attempt)
            logger.info(f"Retrying {method} {path} in {delay:.1f}s (attempt {attempt})")
            await asyncio.sleep(delay)

    def _wrap_body(self, response: httpx.Response, duration_ms: int) -> ApiResponse:
        try:
            body = response.json() if response.content else None
        except ValueError:
            return ApiResponse(
                success=False,
                error="Invalid JSON in response",
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

        # Backends that already answer with an envelope are unwrapped
        if isinstance(body, dict) and isinstance(body.get("success"), bool):
            return ApiResponse(
                success=body["success"],
                data=body.get("data"),
                error=body.get("error") or (None if body["success"] else "Request failed"),
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

        return ApiResponse(
            success=True,
            data=body,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.reason_phrase or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            return str(body.get("message") or body.get("error") or f"HTTP {response.status_code}")
        return f"HTTP {response.status_code}"

    async def create_lead(self, payload: dict) -> ApiResponse:
        return await self.request("POST", LEADS_PATH, json=payload)

    async def find_contacts(self, **filters) -> ApiResponse:
        """Query submitted contacts, e.g. ``find_contacts(mobile="98...")``."""
        return await self.request("GET", CONTACTS_PATH, params=filters)

    async def register_contact(self, mobile: str, email: str, submitted_at: str) -> ApiResponse:
        return await self.request(
            "POST",
            CONTACTS_PATH,
            json={"mobile": mobile, "email": email, "submittedAt": submitted_at},
        )

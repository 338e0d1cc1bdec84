# apps/common/storage.py

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

import redis
from django.conf import settings

logger = logging.getLogger(__name__)


def get_redis_client() -> redis.Redis:
    """Get Redis client from Django settings."""
    redis_url = getattr(settings, "REDIS_URL", "redis://localhost:6379/0")
    return redis.from_url(redis_url, decode_responses=True)


class SessionStore(ABC):
    """
    String key-value storage scoped to one browsing session.
    Cleared when the session ends, not on reload.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        pass


class MemorySessionStore(SessionStore):
    """In-process store. Lives as long as the object does."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class DjangoSessionStore(SessionStore):
    """Adapter over a Django session (``request.session``)."""

    def __init__(self, session):
        self.session = session

    def get(self, key: str) -> str | None:
        return self.session.get(key)

    def set(self, key: str, value: str) -> None:
        self.session[key] = value

    def remove(self, key: str) -> None:
        self.session.pop(key, None)

    def keys(self) -> list[str]:
        return list(self.session.keys())


class RedisSessionStore(SessionStore):
    """
    One Redis hash per visitor session, expiring after ``ttl_seconds``
    of inactivity. Redis errors fail open: reads miss, writes are dropped.
    """

    def __init__(
        self,
        session_id: str,
        redis_client: redis.Redis | None = None,
        ttl_seconds: int = 60 * 60 * 24,
    ):
        self.session_id = session_id
        self.ttl_seconds = ttl_seconds
        self.redis = redis_client or get_redis_client()

    def _get_key(self) -> str:
        return f"session:{self.session_id}"

    def get(self, key: str) -> str | None:
        try:
            value = self.redis.hget(self._get_key(), key)
        except redis.RedisError as e:
            logger.error(f"Redis error reading {key}: {e}")
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        try:
            pipe = self.redis.pipeline()
            pipe.hset(self._get_key(), key, value)
            pipe.expire(self._get_key(), self.ttl_seconds)
            pipe.execute()
        except redis.RedisError as e:
            logger.error(f"Redis error writing {key}: {e}")

    def remove(self, key: str) -> None:
        try:
            self.redis.hdel(self._get_key(), key)
        except redis.RedisError as e:
            logger.error(f"Redis error removing {key}: {e}")

    def keys(self) -> list[str]:
        try:
            raw = self.redis.hkeys(self._get_key())
        except redis.RedisError as e:
            logger.error(f"Redis error listing keys: {e}")
            return []
        return [k.decode("utf-8") if isinstance(k, bytes) else k for k in raw]


class BrowsingSession:
    """
    Session-scoped state shared by the intake components.

    Wraps a SessionStore with a key prefix and JSON envelopes of the form
    ``{"value": ..., "timestamp": ..., "expires_at": ...}``. Each component
    owns its own keys; nothing else is shared.
    """

    SESSION_START_KEY = "session_start"

    def __init__(
        self,
        store: SessionStore,
        prefix: str = "lead_",
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.prefix = prefix
        self.clock = clock

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str, default: Any = None) -> Any:
        raw = self.store.get(self._key(key))
        if raw is None:
            return default

        try:
            item = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Discarding undecodable session value for {key}")
            self.store.remove(self._key(key))
            return default

        if not isinstance(item, dict) or "value" not in item:
            return default

        expires_at = item.get("expires_at")
        if expires_at is not None and self.clock() > expires_at:
            self.store.remove(self._key(key))
            return default

        return item["value"]

    def set(self, key: str, value: Any, expires_in: float | None = None) -> None:
        now = self.clock()
        item = {"value": value, "timestamp": now}
        if expires_in:
            item["expires_at"] = now + expires_in
        self.store.set(self._key(key), json.dumps(item))

    def remove(self, key: str) -> None:
        self.store.remove(self._key(key))

    def init(self) -> float:
        """Record the session start on first use. Returns the start time."""
        started = self.get(self.SESSION_START_KEY)
        if started is None:
            started = self.clock()
            self.set(self.SESSION_START_KEY, started)
        return started

    def teardown(self) -> None:
        """Remove every key this session wrote."""
        for key in self.store.keys():
            if key.startswith(self.prefix):
                self.store.remove(key)

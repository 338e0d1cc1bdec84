import json
from unittest.mock import MagicMock

import pytest
import redis

from apps.common.storage import BrowsingSession, DjangoSessionStore, MemorySessionStore, RedisSessionStore


class TestBrowsingSession:
    def test_values_are_stored_in_envelopes(self, session, store, clock):
        session.set("answer", {"a": 1})

        raw = json.loads(store.get("lead_answer"))
        assert raw == {"value": {"a": 1}, "timestamp": clock.now}
        assert session.get("answer") == {"a": 1}

    def test_missing_key_returns_default(self, session):
        assert session.get("nothing", "fallback") == "fallback"

    def test_expired_values_are_removed_on_read(self, session, store, clock):
        session.set("ip_data", {"ip": "1.2.3.4"}, expires_in=60)
        clock.advance(61)

        assert session.get("ip_data") is None
        assert store.get("lead_ip_data") is None

    def test_value_before_expiry_is_returned(self, session, clock):
        session.set("ip_data", "x", expires_in=60)
        clock.advance(59)
        assert session.get("ip_data") == "x"

    def test_undecodable_value_is_discarded(self, session, store):
        store.set("lead_broken", "{not json")
        assert session.get("broken", []) == []
        assert store.get("lead_broken") is None

    def test_init_is_idempotent(self, session, clock):
        started = session.init()
        clock.advance(100)
        assert session.init() == started

    def test_teardown_only_removes_prefixed_keys(self, session, store):
        store.set("other_app", "keep")
        session.set("a", 1)
        session.set("b", 2)

        session.teardown()

        assert store.keys() == ["other_app"]


class TestDjangoSessionStore:
    def test_adapts_a_session_mapping(self):
        backing = {}
        store = DjangoSessionStore(backing)

        store.set("k", "v")
        assert store.get("k") == "v"
        assert store.keys() == ["k"]

        store.remove("k")
        store.remove("k")
        assert backing == {}


class TestRedisSessionStore:
    def test_set_writes_hash_and_refreshes_ttl(self):
        client = MagicMock()
        pipe = client.pipeline.return_value
        store = RedisSessionStore("abc", redis_client=client, ttl_seconds=120)

        store.set("lead_x", "1")

        pipe.hset.assert_called_once_with("session:abc", "lead_x", "1")
        pipe.expire.assert_called_once_with("session:abc", 120)
        pipe.execute.assert_called_once()

    def test_get_decodes_bytes(self):
        client = MagicMock()
        client.hget.return_value = b"value"
        store = RedisSessionStore("abc", redis_client=client)
        assert store.get("lead_x") == "value"

    def test_redis_errors_fail_open(self):
        client = MagicMock()
        client.hget.side_effect = redis.ConnectionError("down")
        client.hkeys.side_effect = redis.ConnectionError("down")
        client.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")
        store = RedisSessionStore("abc", redis_client=client)

        assert store.get("lead_x") is None
        assert store.keys() == []
        store.set("lead_x", "1")

    def test_browsing_session_over_redis(self):
        client = MagicMock()
        client.hget.return_value = json.dumps({"value": 3, "timestamp": 0})
        session = BrowsingSession(RedisSessionStore("abc", redis_client=client))

        assert session.get("popup_shown_count") == 3
        client.hget.assert_called_once_with("session:abc", "lead_popup_shown_count")


class TestMemorySessionStore:
    @pytest.mark.parametrize("initial", [None, {"lead_a": "1"}])
    def test_initial_contents(self, initial):
        store = MemorySessionStore(initial)
        assert store.keys() == list(initial or {})

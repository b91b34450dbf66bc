# tests/test_rate_limiter.py - Sliding window limiter tests
from unittest.mock import MagicMock

import pytest
from starlette.requests import Request

from utils.rate_limiter import (
    InMemoryWindowStore,
    RateLimitDecision,
    RedisWindowStore,
    SLIDING_WINDOW_SCRIPT,
    SlidingWindowLimiter,
    build_limiter,
    get_client_ip,
)


def make_request(headers=None, client=("203.0.113.7", 5000)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


@pytest.fixture
def limiter(clock):
    return SlidingWindowLimiter(InMemoryWindowStore(), max_requests=5, window_seconds=10, clock=clock)


class TestSlidingWindow:
    def test_remaining_counts_down(self, limiter):
        remaining = [limiter.limit("1.2.3.4").remaining for _ in range(5)]
        assert remaining == [4, 3, 2, 1, 0]

    def test_sixth_request_denied(self, limiter):
        for _ in range(5):
            assert limiter.limit("1.2.3.4").allowed

        decision = limiter.limit("1.2.3.4")
        assert decision == RateLimitDecision(allowed=False, limit=5, remaining=0, reset=1_010_000)

    def test_oldest_hit_expires_first(self, limiter, clock):
        for _ in range(5):
            limiter.limit("ip")
            clock.advance(1)
        # t=5s: window still full
        assert not limiter.limit("ip").allowed

        # t=10.5s: only the hit at t=0 has left the window
        clock.advance(5.5)
        decision = limiter.limit("ip")
        assert decision.allowed
        assert decision.remaining == 0
        assert not limiter.limit("ip").allowed

    def test_denied_hits_do_not_extend_window(self, limiter, clock):
        for _ in range(5):
            limiter.limit("ip")
        for _ in range(20):
            limiter.limit("ip")
        clock.advance(10.001)
        assert limiter.limit("ip").remaining == 4

    def test_identifiers_are_independent(self, limiter):
        for _ in range(5):
            limiter.limit("a")
        assert not limiter.limit("a").allowed
        assert limiter.limit("b").allowed

    def test_reset_timestamp_tracks_oldest_hit(self, limiter, clock):
        limiter.limit("ip")
        clock.advance(3)
        assert limiter.limit("ip").reset == 1_000_000 + 10_000

    def test_store_reset(self, limiter):
        for _ in range(5):
            limiter.limit("ip")
        limiter.store.reset("ratelimit:ip")
        assert limiter.limit("ip").allowed


class TestDecisionHeaders:
    def test_headers(self):
        decision = RateLimitDecision(allowed=True, limit=5, remaining=3, reset=1700000000000)
        assert decision.headers() == {
            "X-RateLimit-Limit": "5",
            "X-RateLimit-Remaining": "3",
            "X-RateLimit-Reset": "1700000000000",
        }


class TestRedisWindowStore:
    def make_client(self, reply=None, error=None):
        client = MagicMock()
        script = client.register_script.return_value
        if error:
            script.side_effect = error
        else:
            script.return_value = reply
        return client, script

    def test_script_registered_once(self):
        client, _ = self.make_client([1, 1, 1_000_000])
        store = RedisWindowStore(client)
        store.hit("ratelimit:ip", 1_000_000, 10_000, 5)
        store.hit("ratelimit:ip", 1_000_500, 10_000, 5)

        client.register_script.assert_called_once_with(SLIDING_WINDOW_SCRIPT)

    def test_check_and_add_is_one_script_call(self):
        client, script = self.make_client([1, 2, 1_000_000])
        allowed, count, oldest = RedisWindowStore(client).hit("ratelimit:ip", 1_002_000, 10_000, 5)

        assert (allowed, count, oldest) == (True, 2, 1_000_000)
        _, kwargs = script.call_args
        assert kwargs["keys"] == ["ratelimit:ip"]
        now_ms, window_ms, limit, member = kwargs["args"]
        assert (now_ms, window_ms, limit) == (1_002_000, 10_000, 5)
        assert member.startswith("1002000-")
        # Nothing runs outside the script
        client.zrem.assert_not_called()
        client.pipeline.assert_not_called()

    def test_rejected_hit(self):
        client, _ = self.make_client([0, 5, 1_000_000])
        limiter = SlidingWindowLimiter(RedisWindowStore(client), clock=lambda: 1_002.0)

        decision = limiter.limit("ip")
        assert decision == RateLimitDecision(allowed=False, limit=5, remaining=0, reset=1_010_000)

    def test_script_denies_without_adding(self):
        assert "if count < limit then" in SLIDING_WINDOW_SCRIPT
        assert SLIDING_WINDOW_SCRIPT.index("ZCARD") < SLIDING_WINDOW_SCRIPT.index("ZADD")

    def test_errors_propagate(self):
        client, _ = self.make_client(error=ConnectionError("down"))
        limiter = SlidingWindowLimiter(RedisWindowStore(client))
        with pytest.raises(ConnectionError):
            limiter.limit("ip")


class TestInMemoryWindowStore:
    def test_expired_keys_are_dropped(self, clock):
        store = InMemoryWindowStore()
        limiter = SlidingWindowLimiter(store, clock=clock)
        for i in range(10_000):
            limiter.limit(f"10.{i // 256}.{i % 256}.1")
        assert len(store) == 10_000

        clock.advance(3600)
        limiter.limit("198.51.100.9")
        assert len(store) == 1

    def test_live_keys_survive_sweep(self, clock):
        store = InMemoryWindowStore()
        limiter = SlidingWindowLimiter(store, clock=clock)
        limiter.limit("old")
        clock.advance(6)
        limiter.limit("recent")
        clock.advance(6)
        # t=12s: "old" left the window at t=10s, "recent" is still inside
        limiter.limit("new")
        assert len(store) == 2
        assert limiter.limit("recent").remaining == 3


class TestBuildLimiter:
    def test_without_redis_url_uses_memory(self):
        limiter = build_limiter(None)
        assert isinstance(limiter.store, InMemoryWindowStore)
        assert (limiter.max_requests, limiter.window_seconds) == (5, 10)

    def test_with_redis_url_uses_redis(self):
        limiter = build_limiter("redis://localhost:6379/0", "secret")
        assert isinstance(limiter.store, RedisWindowStore)


class TestClientIp:
    PROXY = ("203.0.113.7",)

    def test_forwarded_for_from_trusted_proxy(self):
        request = make_request({"X-Forwarded-For": "198.51.100.1, 10.0.0.1"})
        assert get_client_ip(request, self.PROXY) == "198.51.100.1"

    def test_real_ip_from_trusted_proxy(self):
        request = make_request({"X-Real-IP": "198.51.100.2"})
        assert get_client_ip(request, self.PROXY) == "198.51.100.2"

    def test_wildcard_trusts_any_peer(self):
        request = make_request({"X-Forwarded-For": "198.51.100.3"})
        assert get_client_ip(request, ("*",)) == "198.51.100.3"

    def test_forwarded_headers_ignored_from_untrusted_peer(self):
        request = make_request({"X-Forwarded-For": "198.51.100.1", "X-Real-IP": "198.51.100.2"})
        assert get_client_ip(request, ()) == "203.0.113.7"
        assert get_client_ip(request, ("192.0.2.1",)) == "203.0.113.7"

    def test_peer_address(self):
        assert get_client_ip(make_request(), ()) == "203.0.113.7"

    def test_loopback_fallback(self):
        request = make_request({"X-Forwarded-For": "198.51.100.1"}, client=None)
        assert get_client_ip(request, ("*",)) == "127.0.0.1"

# Run tests with: pytest tests/test_rate_limiter.py -v
if __name__ == "__main__":
    pytest.main([__file__, "-v"])

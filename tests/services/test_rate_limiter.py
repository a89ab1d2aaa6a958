import time

import pytest
from limits.storage import MemoryStorage, RedisStorage

from pastebox.config import RateRule, Settings
from pastebox.services.rate_limiter import (
    MemoryRateLimiter,
    RedisRateLimiter,
    build_rate_limiter,
)

RULES = {
    "create": RateRule(3, 60),
    "view": RateRule(60, 60),
    "decrypt": RateRule(5, 300),
}

# nothing listens on port 1, so every command fails with a connection error
UNREACHABLE_REDIS = "redis://127.0.0.1:1/0"


def test_memory_limiter_blocks_after_limit():
    limiter = MemoryRateLimiter(RULES)
    before = time.time()

    results = [limiter.check("1.2.3.4", "create") for _ in range(4)]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert all(r.limit == 3 for r in results)
    assert before + 59 <= results[-1].reset_at <= time.time() + 61


def test_memory_limiter_resets_after_window():
    limiter = MemoryRateLimiter({"create": RateRule(1, 1)})
    assert limiter.allow("1.2.3.4", "create")
    assert not limiter.allow("1.2.3.4", "create")

    time.sleep(1.2)
    assert limiter.allow("1.2.3.4", "create")


def test_memory_limiter_keys_by_identity_and_action():
    limiter = MemoryRateLimiter(RULES)
    for _ in range(3):
        limiter.check("a", "create")

    assert not limiter.allow("a", "create")
    assert limiter.allow("b", "create")
    assert limiter.allow("a", "view")


def test_result_is_truthy_only_when_allowed():
    limiter = MemoryRateLimiter({"create": RateRule(1, 60)})
    assert limiter.check("a", "create")
    assert not limiter.check("a", "create")


def test_unknown_action_is_rejected():
    limiter = MemoryRateLimiter(RULES)
    with pytest.raises(ValueError):
        limiter.check("a", "delete")


def test_redis_limiter_uses_moving_window_over_given_storage():
    # MemoryStorage supports the moving window too, which stands in for Redis here
    limiter = RedisRateLimiter(MemoryStorage(), RULES)

    results = [limiter.check("1.2.3.4", "create") for _ in range(4)]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert results[0].remaining == 2
    assert results[-1].remaining == 0


def test_redis_limiter_fails_open_to_memory():
    storage = RedisStorage(UNREACHABLE_REDIS, socket_connect_timeout=0.5, socket_timeout=0.5)
    limiter = RedisRateLimiter(storage, RULES)

    results = [limiter.check("1.2.3.4", "create") for _ in range(4)]

    # the in-process approximation still enforces the rule
    assert [r.allowed for r in results] == [True, True, True, False]


def test_redis_limiter_rejects_unknown_action_even_when_down():
    storage = RedisStorage(UNREACHABLE_REDIS, socket_connect_timeout=0.5, socket_timeout=0.5)
    limiter = RedisRateLimiter(storage, RULES)
    with pytest.raises(ValueError):
        limiter.check("a", "delete")


def test_build_rate_limiter_selects_backend():
    assert isinstance(build_rate_limiter(Settings(rate_limit_backend="memory")), MemoryRateLimiter)

    limiter = build_rate_limiter(Settings(rate_limit_backend="redis", redis_url="redis://localhost:6399/0"))
    try:
        assert isinstance(limiter, RedisRateLimiter)
        assert isinstance(limiter.storage, RedisStorage)
    finally:
        limiter.close()

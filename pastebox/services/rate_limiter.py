from dataclasses import dataclass
from typing import Protocol

import redis
from limits import RateLimitItem, RateLimitItemPerSecond
from limits.storage import MemoryStorage, RedisStorage, Storage
from limits.strategies import FixedWindowRateLimiter, MovingWindowRateLimiter, RateLimiter as Strategy

from pastebox.config import RateRule, Settings
from pastebox.logger import logger


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # epoch seconds

    def __bool__(self) -> bool:
        return self.allowed


class RateLimiter(Protocol):
    def check(self, identity: str, action: str) -> RateLimitResult:
        ...

    def allow(self, identity: str, action: str) -> bool:
        ...


class _LimitsRateLimiter:
    # key layout in the storage: LIMITER/ratelimit/<action>/<identity>/<limit>/<window>/second
    NAMESPACE = "ratelimit"

    def __init__(self, storage: Storage, strategy: Strategy, rules: dict[str, RateRule]):
        self.storage = storage
        self.strategy = strategy
        self.items: dict[str, RateLimitItem] = {
            action: RateLimitItemPerSecond(rule.limit, rule.window_seconds)
            for action, rule in rules.items()
        }

    def _item(self, action: str) -> RateLimitItem:
        try:
            return self.items[action]
        except KeyError:
            raise ValueError(f"Unknown rate-limited action {action!r}")

    def check(self, identity: str, action: str) -> RateLimitResult:
        item = self._item(action)
        allowed = self.strategy.hit(item, self.NAMESPACE, action, identity)
        reset_at, remaining = self.strategy.get_window_stats(item, self.NAMESPACE, action, identity)
        return RateLimitResult(allowed, item.amount, max(0, remaining), float(reset_at))

    def allow(self, identity: str, action: str) -> bool:
        return self.check(identity, action).allowed

    def close(self) -> None:
        pass


class MemoryRateLimiter(_LimitsRateLimiter):
    """Fixed window per key, local to the process."""

    def __init__(self, rules: dict[str, RateRule]):
        storage = MemoryStorage()
        super().__init__(storage, FixedWindowRateLimiter(storage), rules)


class RedisRateLimiter(_LimitsRateLimiter):
    """Moving window shared through Redis; falls back to process-local counters when Redis is down."""

    def __init__(
        self,
        storage: Storage,
        rules: dict[str, RateRule],
        fallback: MemoryRateLimiter | None = None,
    ):
        super().__init__(storage, MovingWindowRateLimiter(storage), rules)
        self.fallback = fallback or MemoryRateLimiter(rules)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisRateLimiter":
        storage = RedisStorage(
            settings.redis_url,
            socket_timeout=settings.storage_timeout_seconds,
            socket_connect_timeout=settings.storage_timeout_seconds,
        )
        return cls(storage, settings.rate_limits)

    def check(self, identity: str, action: str) -> RateLimitResult:
        try:
            return super().check(identity, action)
        except redis.RedisError:
            logger.warning("Rate limit store unreachable, using in-process counters", exc_info=True)
            return self.fallback.check(identity, action)


def build_rate_limiter(settings: Settings) -> MemoryRateLimiter | RedisRateLimiter:
    if settings.rate_limit_backend == "redis":
        return RedisRateLimiter.from_settings(settings)
    return MemoryRateLimiter(settings.rate_limits)

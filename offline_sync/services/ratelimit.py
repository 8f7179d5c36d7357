"""
Sliding-window rate limiting for sync sessions, keyed by (user, device).

Built on DRF's :class:`SimpleRateThrottle`: the request history lives in
the Django cache, so the window is shared by every worker when the Redis
cache backend is configured.  The rate comes from the caller's role
rather than ``DEFAULT_THROTTLE_RATES``.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from rest_framework.throttling import SimpleRateThrottle

from ..config import RoleLimits, SyncConfig, get_sync_config


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    now: float

    @property
    def retry_after(self) -> int:
        return max(1, int(self.reset_at - self.now) + 1)


class SyncSessionThrottle(SimpleRateThrottle):
    scope = 'sync'
    cache_format = 'sync:rl:%(ident)s'

    def __init__(self, user_id, device_id: str, limits: RoleLimits, *, cache=None, timer=None):
        self.ident = f'{user_id}:{device_id}'
        self.num_requests = limits.rate_limit_requests
        self.duration = limits.rate_limit_duration
        self.rate = f'{self.num_requests}/{self.duration}s'
        if cache is not None:
            self.cache = cache
        if timer is not None:
            self.timer = timer

    def get_cache_key(self, request, view):
        return self.cache_format % {'scope': self.scope, 'ident': self.ident}

    @property
    def reset_at(self) -> float:
        # history is newest first
        oldest = self.history[-1] if self.history else self.now
        return oldest + self.duration


class RateLimiter:
    def __init__(self, config: Optional[SyncConfig] = None, cache=None, clock: Callable[[], float] = time.time):
        self._config = config
        self._cache = cache
        self._clock = clock

    @property
    def config(self) -> SyncConfig:
        return self._config or get_sync_config()

    @staticmethod
    def key(user_id, device_id: str) -> str:
        return SyncSessionThrottle.cache_format % {'ident': f'{user_id}:{device_id}'}

    def throttle_for(self, user_id, device_id: str, role: str) -> SyncSessionThrottle:
        return SyncSessionThrottle(
            user_id, device_id, self.config.limits_for(role), cache=self._cache, timer=self._clock,
        )

    def check(self, user_id, device_id: str, role: str) -> RateLimitDecision:
        """Record one request and report whether it fits in the window.

        Rejected requests are not recorded, so a device that backs off is
        admitted again as soon as the oldest request leaves the window.
        """
        throttle = self.throttle_for(user_id, device_id, role)
        allowed = throttle.allow_request(None, None)
        return RateLimitDecision(
            allowed=allowed,
            limit=throttle.num_requests,
            remaining=max(0, throttle.num_requests - len(throttle.history)),
            reset_at=throttle.reset_at,
            now=throttle.now,
        )

    def reset(self, user_id, device_id: str) -> None:
        throttle = self.throttle_for(user_id, device_id, '')
        throttle.cache.delete(throttle.get_cache_key(None, None))

from django.core.cache import cache

from offline_sync.services.ratelimit import RateLimiter


class Clock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_window_admits_up_to_the_role_limit():
    clock = Clock()
    limiter = RateLimiter(clock=clock)
    decisions = [limiter.check(7, 'dev-1', 'user') for _ in range(6)]
    assert [d.allowed for d in decisions] == [True] * 5 + [False]
    assert [d.remaining for d in decisions[:5]] == [4, 3, 2, 1, 0]
    assert decisions[-1].limit == 5


def test_window_slides():
    clock = Clock()
    limiter = RateLimiter(clock=clock)
    for _ in range(5):
        limiter.check(7, 'dev-1', 'user')
        clock.now += 60
    assert limiter.check(7, 'dev-1', 'user').allowed is False
    # first request leaves the hour window
    clock.now = 1_000_000.0 + 3600 + 1
    assert limiter.check(7, 'dev-1', 'user').allowed is True


def test_rejections_are_not_counted():
    clock = Clock()
    limiter = RateLimiter(clock=clock)
    for _ in range(5):
        limiter.check(7, 'dev-1', 'user')
    for _ in range(20):
        limiter.check(7, 'dev-1', 'user')
    assert len(cache.get(RateLimiter.key(7, 'dev-1'))) == 5


def test_windows_are_keyed_by_user_and_device():
    limiter = RateLimiter(clock=Clock())
    for _ in range(5):
        limiter.check(7, 'dev-1', 'user')
    assert limiter.check(7, 'dev-2', 'user').allowed is True
    assert limiter.check(8, 'dev-1', 'user').allowed is True
    limiter.reset(7, 'dev-1')
    assert limiter.check(7, 'dev-1', 'user').allowed is True


def test_unknown_role_gets_least_privileged_limit():
    limiter = RateLimiter(clock=Clock())
    assert limiter.check(1, 'd', 'intern').limit == 5
    assert limiter.check(2, 'd', 'administrator').limit == 50


def test_retry_after_follows_the_injected_clock():
    clock = Clock()
    limiter = RateLimiter(clock=clock)
    limiter.check(7, 'dev-1', 'user')
    clock.now += 600
    for _ in range(4):
        limiter.check(7, 'dev-1', 'user')
    denied = limiter.check(7, 'dev-1', 'user')
    assert denied.allowed is False
    assert denied.now == clock.now
    assert denied.reset_at == 1_000_000.0 + 3600
    assert denied.retry_after == 3001


def test_history_is_stored_under_the_user_device_key():
    limiter = RateLimiter(clock=Clock())
    throttle = limiter.throttle_for(7, 'dev-1', 'doctor')
    assert throttle.get_cache_key(None, None) == RateLimiter.key(7, 'dev-1') == 'sync:rl:7:dev-1'
    assert throttle.num_requests == 10

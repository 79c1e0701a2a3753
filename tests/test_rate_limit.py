from cfp_api.rate_limit import RateLimiter


class FakeClock:
    def __init__(self, t=1000.0):
        self.t = t

    def __call__(self):
        return self.t


def test_limit_per_key():
    limiter = RateLimiter(2, clock=FakeClock())
    assert limiter.allow("a")
    assert limiter.allow("a")
    assert not limiter.allow("a")
    assert limiter.allow("b")


def test_window_slides():
    clock = FakeClock()
    limiter = RateLimiter(1, window_seconds=60, clock=clock)
    assert limiter.allow("a")

    clock.t += 30
    result = limiter.check("a")
    assert not result.allowed
    assert result.retry_after == 30
    assert result.retry_after_header == "30"

    clock.t += 30
    assert limiter.allow("a")


def test_remaining_and_reset():
    limiter = RateLimiter(3, clock=FakeClock())
    assert limiter.check("a").remaining == 2
    limiter.check("a")
    limiter.check("a")
    assert not limiter.allow("a")
    limiter.reset("a")
    assert limiter.allow("a")
    limiter.reset()
    assert limiter.check("a").remaining == 2


def test_rpm_floor():
    assert RateLimiter(0).limit == 1


def test_idle_keys_are_evicted():
    clock = FakeClock()
    limiter = RateLimiter(2, window_seconds=60, clock=clock)
    limiter.allow("a")
    limiter.allow("b")

    clock.t += 30
    limiter.allow("b")
    clock.t += 31
    limiter.allow("c")
    assert set(limiter._hits) == {"b", "c"}

    clock.t += 61
    limiter.allow("c")
    assert set(limiter._hits) == {"c"}
    assert limiter.check("c").remaining == 0

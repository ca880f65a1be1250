from portfolio_engine.cache.ttl_cache import CandleCache, TTLCache
from portfolio_engine.portfolio.models import CandleSeries
from portfolio_engine.utils.rate_limit import RateLimiterRegistry


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_ttl_cache_expires_entries() -> None:
    clock = FakeClock()
    cache = TTLCache(default_ttl_seconds=10, clock=clock)
    cache.set("k", "v")
    assert cache.get("k") == "v"
    clock.now += 10
    assert cache.get("k") is None


def test_candle_cache_hit_and_wider_range_miss() -> None:
    clock = FakeClock()
    candles = CandleCache(ttl_seconds=4 * 60 * 60, cache=TTLCache(clock=clock))
    series = CandleSeries(symbol="SPY", timestamps=[1, 2], closes=[1.0, 2.0])
    candles.put("spy", 500, series)
    assert candles.get("SPY", 500) is series
    assert candles.get("SPY", 800) is series
    assert candles.get("SPY", 100) is None
    clock.now += 4 * 60 * 60
    assert candles.get("SPY", 500) is None


def test_candle_cache_invalidate() -> None:
    candles = CandleCache()
    candles.put("QQQ", 1, CandleSeries(symbol="QQQ", timestamps=[1], closes=[1.0]))
    candles.invalidate("qqq")
    assert candles.get("QQQ", 1) is None


def test_rate_limiter_spaces_calls_per_provider() -> None:
    clock = FakeClock(0.0)
    slept: list[float] = []

    def fake_sleep(seconds: float) -> None:
        slept.append(seconds)

    limiter = RateLimiterRegistry(min_interval_seconds=1.0, provider_intervals={"finnhub": 2.0}, sleep=fake_sleep, clock=clock)
    assert limiter.wait("yahoo") == 0.0
    assert limiter.wait("yahoo") == 1.0
    assert limiter.wait("finnhub") == 0.0
    assert limiter.wait("finnhub") == 2.0
    assert slept == [1.0, 2.0]


def test_rate_limiter_zero_interval_never_sleeps() -> None:
    limiter = RateLimiterRegistry(0.0, sleep=lambda _: (_ for _ in ()).throw(AssertionError("slept")))
    assert limiter.wait("yahoo") == 0.0
    assert limiter.wait("yahoo") == 0.0

"""
Fake market-cap providers and a fake clock for tests: deterministic data,
fail-N-then-succeed, always-fail, empty. No live network.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from mcap_aggregator.providers.base import DataSource, FetchResult, MarketCapPoint, Token

# Deterministic base timestamp (2026-01-01T00:00:00Z) for reproducible tests.
FAKE_T0_MS = 1_767_225_600_000
HOUR_MS = 3_600_000


def make_token(
    symbol: str = "AAA",
    *,
    id: Optional[str] = None,
    platform: str = "base",
    contract: Optional[str] = None,
    name: Optional[str] = None,
) -> Token:
    return Token(
        id=id or symbol.lower(),
        symbol=symbol,
        name=name or symbol.title(),
        platform=platform,
        contract=contract or f"0x{symbol.lower():0>40}",
        enabled=True,
        color="#000000",
    )


def make_points(n: int, *, start_ms: int = FAKE_T0_MS, step_ms: int = HOUR_MS, base: int = 1_000_000) -> List[MarketCapPoint]:
    return [MarketCapPoint(x=start_ms + i * step_ms, y=base + i * 1000) for i in range(n)]


def make_result(token: Token, n_points: int, source: DataSource = DataSource.GECKOTERMINAL) -> FetchResult:
    data = make_points(n_points)
    return FetchResult(
        token=token,
        data=data,
        current_market_cap=float(data[-1].y) if data else 0.0,
        source=source,
        error=not data,
    )


class FakeClock:
    """Monotonic clock whose sleep() advances time instantly and records each call."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class _FakeBase:
    def __init__(self, name: str):
        self._name = name
        self.call_count = 0
        self.calls: List[tuple] = []
        self.cleared = 0
        self.closed = False

    @property
    def provider_name(self) -> str:
        return self._name

    def clear_cache(self) -> None:
        self.cleared += 1

    def close(self) -> None:
        self.closed = True


class FakeMarketCapProvider(_FakeBase):
    """Always returns `points` points per symbol (default 5). No network."""

    def __init__(
        self,
        name: str,
        points: Optional[Dict[str, int]] = None,
        *,
        default_points: int = 5,
        source: DataSource = DataSource.GECKOTERMINAL,
    ):
        super().__init__(name)
        self._points = points or {}
        self._default_points = default_points
        self._source = source

    def fetch_market_cap(self, token: Token, days: Optional[int]) -> Optional[FetchResult]:
        self.call_count += 1
        self.calls.append((token.id, days))
        n = self._points.get(token.symbol, self._default_points)
        return make_result(token, n, self._source)


class FakeMarketCapProviderEmpty(_FakeBase):
    """Answers every call with None (provider knows nothing about the token)."""

    def fetch_market_cap(self, token: Token, days: Optional[int]) -> Optional[FetchResult]:
        self.call_count += 1
        self.calls.append((token.id, days))
        return None


class FakeMarketCapProviderAlwaysFail(_FakeBase):
    """Raises on every call."""

    def fetch_market_cap(self, token: Token, days: Optional[int]) -> Optional[FetchResult]:
        self.call_count += 1
        self.calls.append((token.id, days))
        raise RuntimeError(f"{self._name} is down")


class FakeMarketCapProviderFailNThenSucceed(FakeMarketCapProvider):
    """Raises on the first N calls, then behaves like FakeMarketCapProvider."""

    def __init__(self, name: str, fail_times: int, **kwargs):
        super().__init__(name, **kwargs)
        self._fail_times = fail_times

    def fetch_market_cap(self, token: Token, days: Optional[int]) -> Optional[FetchResult]:
        if self.call_count < self._fail_times:
            self.call_count += 1
            self.calls.append((token.id, days))
            raise RuntimeError(f"{self._name} simulated failure #{self.call_count}")
        return super().fetch_market_cap(token, days)

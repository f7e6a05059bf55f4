"""
Provider interfaces and data contracts.

Every provider implements MarketCapProvider: given a Token and a day range it
returns a FetchResult carrying a normalized market-cap series, or None when it
has nothing to offer. The chain treats None and an empty series the same way.

Points are frozen dataclasses; Token keeps `enabled` mutable because the
preference store toggles it between sessions.
"""

from __future__ import annotations

import enum
import math
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol, runtime_checkable


class Platform(str, enum.Enum):
    """Chains the token roster knows about. Other platform strings are passed through as-is."""

    ETHEREUM = "ethereum"
    BASE = "base"
    SOLANA = "solana"


class DataSource(str, enum.Enum):
    """Which provider produced a FetchResult."""

    GECKOTERMINAL = "geckoterminal"
    COINGECKO = "coingecko"
    DEXSCREENER = "dexscreener"
    NONE = "none"
    # Reserved for results built from a fallback token roster rather than a provider.
    FALLBACK = "fallback"


def now_ms() -> int:
    return int(time.time() * 1000)


def round_usd(value: float) -> int:
    """Round half up to whole USD (matches how upstream dashboards display caps)."""
    return int(math.floor(value + 0.5))


def network_for(platform: str, network_map: dict) -> str:
    """Map a platform to a provider network id; unknown platforms are used verbatim."""
    key = platform.value if isinstance(platform, Platform) else str(platform)
    return network_map.get(key, key)


@dataclass
class Token:
    """One on-chain contract of a tracked project."""

    id: str
    symbol: str
    name: str
    platform: str
    contract: str
    enabled: bool = True
    color: str = ""


@dataclass(frozen=True)
class MarketCapPoint:
    """x: epoch milliseconds, y: market cap in whole USD."""

    x: int
    y: int


def normalize_series(points: Iterable[MarketCapPoint]) -> List[MarketCapPoint]:
    """
    Sort ascending by timestamp, drop negative values, and collapse duplicate
    timestamps (last one wins) so x is strictly increasing.
    """
    by_ts = {}
    for p in points:
        if p.y < 0:
            continue
        by_ts[p.x] = p
    return [by_ts[x] for x in sorted(by_ts)]


@dataclass
class FetchResult:
    """Outcome of fetching one token for one day range."""

    token: Token
    data: List[MarketCapPoint] = field(default_factory=list)
    current_market_cap: float = 0.0
    current_price: float = 0.0
    source: DataSource = DataSource.NONE
    error: bool = False
    last_updated: int = field(default_factory=now_ms)
    pool_address: Optional[str] = None
    liquidity_usd: Optional[float] = None
    coin_id: Optional[str] = None

    @property
    def has_data(self) -> bool:
        return len(self.data) > 0

    @classmethod
    def failed(cls, token: Token) -> "FetchResult":
        """Terminal result when no provider produced data."""
        return cls(token=token, data=[], error=True, source=DataSource.NONE)


@runtime_checkable
class MarketCapProvider(Protocol):
    """Protocol for market-cap history providers."""

    @property
    def provider_name(self) -> str: ...

    def fetch_market_cap(self, token: Token, days: Optional[int]) -> Optional[FetchResult]:
        """Fetch a market-cap series for a token over the last `days` days (None = max)."""
        ...

    def clear_cache(self) -> None: ...

    def close(self) -> None: ...

"""
GeckoTerminal market-cap provider (primary: historical OHLCV, up to 6 months).

Uses the public GeckoTerminal API (no authentication, ~30 calls/min):
  GET {base}/networks/{network}/tokens/{address}
  GET {base}/networks/{network}/tokens/{address}/pools?page=1
  GET {base}/networks/{network}/pools/{pool}/ohlcv/{timeframe}?aggregate=&limit=&currency=usd

Market cap per candle is close * (fdv / spot price), i.e. a supply estimate
taken once from the token's current FDV.
"""
from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence, Tuple, Union

import requests

from ..core.errors import MarketDataError, ThrottledError
from .base import DataSource, FetchResult, MarketCapPoint, Token, network_for, normalize_series, now_ms, round_usd
from .http import HTTP_TIMEOUT_S, MAX_THROTTLE_RETRIES, ProviderClient, RateLimitedHttpClient
from .payloads import (
    GeckoPool,
    GeckoTokenInfo,
    OhlcvCandle,
    parse_gecko_ohlcv,
    parse_gecko_pools,
    parse_gecko_token,
)
from .resilience import RateLimiter, TTLCache

logger = logging.getLogger(__name__)

GECKOTERMINAL_BASE_URL = "https://api.geckoterminal.com/api/v2"
MIN_REQUEST_INTERVAL_S = 2.1  # ~28 requests/min, under the free-tier 30

NETWORK_MAP = {
    "ethereum": "eth",
    "base": "base",
    "solana": "solana",
}

MAX_HISTORY_DAYS = 180
# Used when no supply estimate is available (spot price or FDV is zero).
FALLBACK_SUPPLY_ESTIMATE = 1e9


def days_to_api_param(days: Union[int, str, None]) -> int:
    """Clamp a requested range to what the API serves; None or 'max' means the full 180 days."""
    if days is None or days == "max":
        return MAX_HISTORY_DAYS
    return min(int(days), MAX_HISTORY_DAYS)


def candle_params(days: Optional[int]) -> Tuple[str, int, int]:
    """Map a day range to (timeframe, aggregate, limit)."""
    d = days_to_api_param(days)
    if d <= 1:
        return "minute", 15, 96
    if d <= 7:
        return "hour", 1, min(d * 24, 168)
    if d <= 30:
        return "hour", 4, min(d * 6, 180)
    return "day", 1, min(d, MAX_HISTORY_DAYS)


def select_best_pool(pools: Sequence[GeckoPool]) -> Optional[GeckoPool]:
    """Highest USD liquidity wins; on a tie the first pool seen is kept."""
    best: Optional[GeckoPool] = None
    for pool in pools:
        if best is None or pool.reserve_in_usd > best.reserve_in_usd:
            best = pool
    return best


def candles_to_points(candles: Sequence[OhlcvCandle], supply: float) -> List[MarketCapPoint]:
    points = []
    for c in candles:
        market_cap = c.close * supply if supply > 0 else c.close * FALLBACK_SUPPLY_ESTIMATE
        if not math.isfinite(market_cap):
            continue
        points.append(MarketCapPoint(x=c.timestamp_s * 1000, y=round_usd(market_cap)))
    return normalize_series(points)


class GeckoTerminalProvider(ProviderClient):
    """Fetch market-cap history from GeckoTerminal pool OHLCV."""

    display_name = "GeckoTerminal"

    def __init__(
        self,
        base_url: str = GECKOTERMINAL_BASE_URL,
        *,
        limiter: Optional[RateLimiter] = None,
        cache: Optional[TTLCache] = None,
        session: Optional[requests.Session] = None,
        timeout_s: float = HTTP_TIMEOUT_S,
        max_retries: int = MAX_THROTTLE_RETRIES,
    ) -> None:
        limiter = limiter if limiter is not None else RateLimiter(self.display_name, MIN_REQUEST_INTERVAL_S)
        http = RateLimitedHttpClient(
            self.provider_name, limiter, timeout_s=timeout_s, max_retries=max_retries, session=session
        )
        super().__init__(http, cache if cache is not None else TTLCache())
        self.base_url = base_url.rstrip("/")

    @property
    def provider_name(self) -> str:
        return "geckoterminal"

    def get_token_info(self, platform: str, contract: str) -> Optional[GeckoTokenInfo]:
        network = network_for(platform, NETWORK_MAP)
        return self._fetch(
            f"token info for {contract}",
            f"token_info_{network}_{contract}",
            f"{self.base_url}/networks/{network}/tokens/{contract}",
            parse_gecko_token,
        )

    def get_token_pools(self, platform: str, contract: str) -> Optional[List[GeckoPool]]:
        network = network_for(platform, NETWORK_MAP)
        return self._fetch(
            f"pools for {contract}",
            f"token_pools_{network}_{contract}",
            f"{self.base_url}/networks/{network}/tokens/{contract}/pools",
            parse_gecko_pools,
            params={"page": 1},
        )

    def get_pool_ohlcv(
        self,
        network: str,
        pool_address: str,
        timeframe: str = "day",
        aggregate: int = 1,
        limit: int = 180,
    ) -> Optional[List[OhlcvCandle]]:
        return self._fetch(
            f"OHLCV for pool {pool_address}",
            f"ohlcv_{network}_{pool_address}_{timeframe}_{aggregate}_{limit}",
            f"{self.base_url}/networks/{network}/pools/{pool_address}/ohlcv/{timeframe}",
            parse_gecko_ohlcv,
            params={"aggregate": aggregate, "limit": limit, "currency": "usd"},
        )

    def fetch_market_cap(self, token: Token, days: Optional[int] = 30) -> Optional[FetchResult]:
        """
        1. Token info (FDV, market cap, price) and pool list; a persistent 429 on
           either ends the attempt.
        2. Best pool by liquidity, candles sized to the day range.
        3. Close price -> market cap; single current point if candles are unavailable.
        """
        network = network_for(token.platform, NETWORK_MAP)
        try:
            info = self.get_token_info(token.platform, token.contract)
            pools = self.get_token_pools(token.platform, token.contract)
            if not pools:
                logger.warning("GeckoTerminal: no pools found for %s", token.symbol)
                return None

            best = select_best_pool(pools)
            timeframe, aggregate, limit = candle_params(days)
            try:
                candles = self.get_pool_ohlcv(network, best.address, timeframe, aggregate, limit)
            except ThrottledError:
                candles = None

            fdv = (info.fdv_usd if info else None) or 0.0
            current_price = (info.price_usd if info else None) or best.base_token_price_usd or 0.0

            if not candles:
                logger.warning("GeckoTerminal: no OHLCV data for %s", token.symbol)
                return self._current_only(token, info, best, current_price)

            supply = fdv / current_price if current_price > 0 else 0.0
            return FetchResult(
                token=token,
                data=candles_to_points(candles, supply),
                current_market_cap=fdv or current_price * supply,
                current_price=current_price,
                source=DataSource.GECKOTERMINAL,
                pool_address=best.address,
                liquidity_usd=best.reserve_in_usd,
            )
        except MarketDataError as exc:
            logger.warning("GeckoTerminal error for %s: %s", token.symbol, exc)
            return None

    def _current_only(
        self,
        token: Token,
        info: Optional[GeckoTokenInfo],
        pool: GeckoPool,
        current_price: float,
    ) -> Optional[FetchResult]:
        if info is None:
            return None
        market_cap = info.market_cap_usd or info.fdv_usd
        if not market_cap or not math.isfinite(market_cap) or market_cap <= 0:
            return None
        return FetchResult(
            token=token,
            data=[MarketCapPoint(x=now_ms(), y=round_usd(market_cap))],
            current_market_cap=market_cap,
            current_price=current_price,
            source=DataSource.GECKOTERMINAL,
            pool_address=pool.address,
            liquidity_usd=pool.reserve_in_usd,
        )

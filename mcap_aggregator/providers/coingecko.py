"""
CoinGecko market-cap provider (secondary: historical market cap by coin id).

Uses the public CoinGecko API (no key, ~10-30 calls/min):
  GET {base}/search?query={symbol}
  GET {base}/coins/{id}/market_chart?vs_currency=usd&days={days}

Coins are found by symbol rather than contract, so this works best for
tokens CoinGecko already lists.
"""
from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence

import requests

from ..core.errors import MarketDataError
from .base import DataSource, FetchResult, MarketCapPoint, Token, normalize_series, round_usd
from .http import HTTP_TIMEOUT_S, MAX_THROTTLE_RETRIES, ProviderClient, RateLimitedHttpClient
from .payloads import CoinSearchHit, MarketChart, parse_coin_search, parse_market_chart
from .resilience import RateLimiter, TTLCache

logger = logging.getLogger(__name__)

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
MIN_REQUEST_INTERVAL_S = 3.0


def pick_search_match(
    hits: Sequence[CoinSearchHit], symbol: str, name: Optional[str] = None
) -> Optional[CoinSearchHit]:
    """Exact symbol, then exact name, then the top hit if its symbol shares the first two letters."""
    sym = symbol.lower()
    for c in hits:
        if c.symbol.lower() == sym:
            return c
    if name:
        for c in hits:
            if c.name.lower() == name.lower():
                return c
    if hits and hits[0].symbol.lower().startswith(sym[:2]):
        return hits[0]
    return None


def chart_to_points(chart: MarketChart) -> List[MarketCapPoint]:
    points = [
        MarketCapPoint(x=ts, y=round_usd(cap))
        for ts, cap in chart.market_caps
        if math.isfinite(cap) and round_usd(cap) > 0
    ]
    return normalize_series(points)


class CoinGeckoProvider(ProviderClient):
    """Fetch market-cap history from CoinGecko's market_chart endpoint."""

    display_name = "CoinGecko"

    def __init__(
        self,
        base_url: str = COINGECKO_BASE_URL,
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
        return "coingecko"

    def search_coin(self, symbol: str, name: Optional[str] = None) -> Optional[CoinSearchHit]:
        cache_key = f"coingecko_search_{symbol}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached
        try:
            hits = parse_coin_search(
                self.provider_name,
                self._http.get_json(f"{self.base_url}/search", params={"query": symbol}),
            )
        except MarketDataError as exc:
            logger.warning("CoinGecko: search failed for %s (%s)", symbol, exc)
            return None
        match = pick_search_match(hits, symbol, name)
        # Misses are not cached so a later listing is picked up.
        if match is not None:
            self._cache.set(cache_key, match)
        return match

    def get_market_chart(self, coin_id: str, days: Optional[int] = 30) -> Optional[MarketChart]:
        days_param = "max" if days is None else days
        return self._fetch(
            f"market chart for {coin_id}",
            f"coingecko_chart_{coin_id}_{days_param}",
            f"{self.base_url}/coins/{coin_id}/market_chart",
            parse_market_chart,
            params={"vs_currency": "usd", "days": days_param},
        )

    def fetch_market_cap(self, token: Token, days: Optional[int] = 30) -> Optional[FetchResult]:
        try:
            coin = self.search_coin(token.symbol, token.name)
            if coin is None:
                logger.warning("CoinGecko: coin not found for %s", token.symbol)
                return None

            chart = self.get_market_chart(coin.id, days)
            if chart is None or not chart.market_caps:
                logger.warning("CoinGecko: no market data for %s", token.symbol)
                return None

            data = chart_to_points(chart)
            if not data:
                return None

            current_price = chart.prices[-1][1] if chart.prices else 0.0
            return FetchResult(
                token=token,
                data=data,
                current_market_cap=float(data[-1].y),
                current_price=current_price,
                source=DataSource.COINGECKO,
                coin_id=coin.id,
            )
        except MarketDataError as exc:
            logger.warning("CoinGecko error for %s: %s", token.symbol, exc)
            return None

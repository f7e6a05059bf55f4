"""
Dexscreener market-cap provider (last resort: current data only, no history).

Uses the public Dexscreener API (no authentication required):
  GET https://api.dexscreener.com/latest/dex/tokens/{address}
"""
from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence

import requests

from ..core.errors import MarketDataError
from .base import DataSource, FetchResult, MarketCapPoint, Token, network_for, now_ms, round_usd
from .http import HTTP_TIMEOUT_S, MAX_THROTTLE_RETRIES, ProviderClient, RateLimitedHttpClient
from .payloads import DexPair, parse_dex_pairs
from .resilience import RateLimiter, TTLCache

logger = logging.getLogger(__name__)

DEX_BASE_URL = "https://api.dexscreener.com"
MIN_REQUEST_INTERVAL_S = 0.2

CHAIN_MAP = {
    "ethereum": "ethereum",
    "base": "base",
    "solana": "solana",
}


def select_pair(pairs: Sequence[DexPair], chain_id: str) -> Optional[DexPair]:
    """Most liquid pair on the token's chain; any chain if none match. Ties keep the first."""
    chain_lower = chain_id.lower()
    candidates = [p for p in pairs if p.chain_id == chain_lower] or list(pairs)
    best: Optional[DexPair] = None
    for p in candidates:
        if best is None or p.liquidity_usd > best.liquidity_usd:
            best = p
    return best


class DexscreenerProvider(ProviderClient):
    """Synthesize a one-point series from Dexscreener's current pair data."""

    display_name = "DexScreener"

    def __init__(
        self,
        base_url: str = DEX_BASE_URL,
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
        return "dexscreener"

    def get_token_pairs(self, contract: str) -> Optional[List[DexPair]]:
        return self._fetch(
            f"pairs for {contract}",
            f"dex_pairs_{contract}",
            f"{self.base_url}/latest/dex/tokens/{contract}",
            parse_dex_pairs,
        )

    def fetch_market_cap(self, token: Token, days: Optional[int] = None) -> Optional[FetchResult]:
        """`days` is accepted for interface parity; the result is always a single current point."""
        try:
            pairs = self.get_token_pairs(token.contract)
            if not pairs:
                logger.warning("DexScreener: no pairs for %s", token.symbol)
                return None
            pair = select_pair(pairs, network_for(token.platform, CHAIN_MAP))
            market_cap = pair.market_cap or pair.fdv
            if not market_cap or not math.isfinite(market_cap) or market_cap <= 0:
                logger.warning("DexScreener: no market cap for %s", token.symbol)
                return None
            return FetchResult(
                token=token,
                data=[MarketCapPoint(x=now_ms(), y=round_usd(market_cap))],
                current_market_cap=market_cap,
                current_price=pair.price_usd or 0.0,
                source=DataSource.DEXSCREENER,
                pool_address=pair.pair_address or None,
                liquidity_usd=pair.liquidity_usd,
            )
        except MarketDataError as exc:
            logger.warning("DexScreener error for %s: %s", token.symbol, exc)
            return None

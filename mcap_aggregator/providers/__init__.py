"""
Provider architecture for market-cap history.

Three upstream providers (GeckoTerminal, CoinGecko, Dexscreener) each normalize
one API into a FetchResult. A config-driven priority chain tries them in order,
with per-provider rate limiting, throttle cooldowns and TTL caches.
"""

from __future__ import annotations

from .base import (
    DataSource,
    FetchResult,
    MarketCapPoint,
    MarketCapProvider,
    Platform,
    Token,
    normalize_series,
)
from .chain import FetchProgress, MarketCapChain
from .coingecko import CoinGeckoProvider
from .defaults import create_default_registry, create_market_cap_chain
from .dexscreener import DexscreenerProvider
from .geckoterminal import GeckoTerminalProvider
from .registry import ProviderRegistry
from .resilience import RateLimiter, RateLimitNotifier, RateLimitState, TTLCache

__all__ = [
    "CoinGeckoProvider",
    "DataSource",
    "DexscreenerProvider",
    "FetchProgress",
    "FetchResult",
    "GeckoTerminalProvider",
    "MarketCapChain",
    "MarketCapPoint",
    "MarketCapProvider",
    "Platform",
    "ProviderRegistry",
    "RateLimitNotifier",
    "RateLimitState",
    "RateLimiter",
    "TTLCache",
    "Token",
    "create_default_registry",
    "create_market_cap_chain",
    "normalize_series",
]

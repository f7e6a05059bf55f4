"""
Default provider registry configuration.

Registers built-in providers and builds the chain from config.yaml settings.
Every provider gets its own RateLimiter and TTLCache; all limiters publish to
one RateLimitNotifier so a UI can subscribe once.
To add a new provider, register it here and add it to the priority list.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Type

from .. import config
from .chain import MarketCapChain
from .coingecko import CoinGeckoProvider
from .dexscreener import DexscreenerProvider
from .geckoterminal import GeckoTerminalProvider
from .http import ProviderClient
from .registry import ProviderRegistry
from .resilience import RateLimiter, RateLimitNotifier, TTLCache

logger = logging.getLogger(__name__)

BUILTIN_PROVIDERS: Dict[str, Type[ProviderClient]] = {
    "geckoterminal": GeckoTerminalProvider,
    "coingecko": CoinGeckoProvider,
    "dexscreener": DexscreenerProvider,
}


def _provider_factory(
    name: str,
    cls: Type[ProviderClient],
    notifier: RateLimitNotifier,
) -> Callable[[], ProviderClient]:
    def build() -> ProviderClient:
        settings = config.provider_settings(name)
        limiter = RateLimiter(
            cls.display_name,
            float(settings.get("min_interval_s", 1.0)),
            cooldown_s=config.cooldown_seconds(),
            notifier=notifier,
        )
        kwargs = {}
        if settings.get("base_url"):
            kwargs["base_url"] = settings["base_url"]
        return cls(
            limiter=limiter,
            cache=TTLCache(float(settings.get("cache_ttl_s", 300))),
            timeout_s=config.http_timeout_s(),
            max_retries=config.max_throttle_retries(),
            **kwargs,
        )

    return build


def create_default_registry(notifier: Optional[RateLimitNotifier] = None) -> ProviderRegistry:
    """Create a registry with all built-in providers wired to one notifier."""
    notifier = notifier if notifier is not None else RateLimitNotifier()
    registry = ProviderRegistry()
    for name, cls in BUILTIN_PROVIDERS.items():
        registry.register(name, _provider_factory(name, cls, notifier))
    return registry


def create_market_cap_chain(
    registry: Optional[ProviderRegistry] = None,
    priority: Optional[List[str]] = None,
    notifier: Optional[RateLimitNotifier] = None,
) -> MarketCapChain:
    """Build the fallback chain (GeckoTerminal -> CoinGecko -> DexScreener by default)."""
    notifier = notifier if notifier is not None else RateLimitNotifier()
    reg = registry or create_default_registry(notifier)
    order = priority or config.provider_priority()
    providers = reg.build_chain(order)
    logger.debug("Market-cap chain: %s", [p.provider_name for p in providers])
    return MarketCapChain(
        providers,
        notifier=notifier,
        cache_ttl_s=config.result_cache_ttl_s(),
    )

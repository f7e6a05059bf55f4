"""
Provider registry: central catalog of available market-cap providers.

The registry is config-driven: the `providers.priority` list in config.yaml
decides which providers make up the chain and in what order they are tried.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from .base import MarketCapProvider

logger = logging.getLogger(__name__)

ProviderFactory = Union[Callable[[], MarketCapProvider], MarketCapProvider]


class ProviderRegistry:
    """
    Maps provider names to factories (zero-argument callables) or ready instances.

    Usage:
        registry = ProviderRegistry()
        registry.register("geckoterminal", GeckoTerminalProvider)
        registry.register("coingecko", lambda: CoinGeckoProvider(limiter=my_limiter))

        providers = registry.build_chain(["geckoterminal", "coingecko"])
    """

    def __init__(self) -> None:
        self._factories: Dict[str, Any] = {}
        self._instances: Dict[str, MarketCapProvider] = {}

    def register(self, name: str, factory: ProviderFactory) -> None:
        """Register a provider by name. Re-registering drops any built instance."""
        self._factories[name] = factory
        self._instances.pop(name, None)
        logger.debug("Registered market-cap provider: %s", name)

    def get(self, name: str) -> MarketCapProvider:
        """Get or instantiate a provider by name."""
        if name not in self._instances:
            factory = self._factories.get(name)
            if factory is None:
                raise KeyError(
                    f"Unknown provider '{name}'. "
                    f"Available: {list(self._factories)}"
                )
            if isinstance(factory, type) or not hasattr(factory, "fetch_market_cap"):
                self._instances[name] = factory()
            else:
                self._instances[name] = factory
        return self._instances[name]

    @property
    def names(self) -> List[str]:
        return list(self._factories)

    def build_chain(self, priority: Optional[List[str]] = None) -> List[MarketCapProvider]:
        """Ordered providers for a priority list; unknown names are skipped with a warning."""
        names = priority or list(self._factories)
        providers = []
        for n in names:
            if n not in self._factories:
                logger.warning("Provider '%s' in priority list is not registered; skipping", n)
                continue
            providers.append(self.get(n))
        return providers

"""
Provider chain: ordered fallback across market-cap providers.

For each token the chain tries providers in priority order and keeps the
first result that carries at least one point. Results are memoized per
(token, day range) for the cache TTL, independent of which provider answered.
Tokens are fetched one at a time so each provider's limiter stays accurate.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Optional

from .base import FetchResult, MarketCapProvider, Token
from .resilience import DEFAULT_CACHE_TTL_S, RateLimitNotifier, RateLimitState, TTLCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchProgress:
    """
    One step of a batch fetch. Emitted with result=None right before a token
    is fetched and again with the result once it is done.
    """

    current: int
    total: int
    token: Token
    result: Optional[FetchResult] = None

    @property
    def done(self) -> bool:
        return self.result is not None


class MarketCapChain:
    """
    Ordered chain of market-cap providers with a shared result cache.

    Provider exceptions are logged and treated as "no result"; when every
    provider comes up empty the token gets a FetchResult with error=True.
    """

    def __init__(
        self,
        providers: List[MarketCapProvider],
        *,
        cache: Optional[TTLCache] = None,
        notifier: Optional[RateLimitNotifier] = None,
        cache_ttl_s: float = DEFAULT_CACHE_TTL_S,
    ) -> None:
        self._providers = list(providers)
        self._cache = cache if cache is not None else TTLCache(cache_ttl_s)
        self._notifier = notifier if notifier is not None else RateLimitNotifier()
        self._forwarders: List[Callable[[], None]] = []
        self._link_provider_notifiers()
        self._closed = False

    @property
    def providers(self) -> List[MarketCapProvider]:
        return list(self._providers)

    @property
    def provider_names(self) -> List[str]:
        return [p.provider_name for p in self._providers]

    @property
    def cache(self) -> TTLCache:
        return self._cache

    def _link_provider_notifiers(self) -> None:
        """Relay every provider limiter's notifier into the chain's own channel (once per notifier)."""
        linked = {id(self._notifier)}
        for provider in self._providers:
            limiter = getattr(provider, "limiter", None)
            source = getattr(limiter, "notifier", None)
            if not isinstance(source, RateLimitNotifier) or id(source) in linked:
                continue
            linked.add(id(source))
            for state in source.get_states().values():
                self._notifier.publish(state)
            self._forwarders.append(source.subscribe(self._notifier.publish))

    @staticmethod
    def cache_key(token: Token, days: Optional[int]) -> str:
        return f"token_{token.id}_{days}"

    def fetch_one(self, token: Token, days: Optional[int] = 30) -> FetchResult:
        key = self.cache_key(token, days)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("%s: result cache hit (%s)", token.symbol, key)
            return cached

        for provider in self._providers:
            name = provider.provider_name
            logger.debug("Fetching %s from %s...", token.symbol, name)
            try:
                result = provider.fetch_market_cap(token, days)
            except Exception as exc:
                logger.warning("%s failed for %s: %s: %s", name, token.symbol, type(exc).__name__, exc)
                continue
            if result is not None and result.has_data:
                logger.info("%s: %d data points from %s", token.symbol, len(result.data), name)
                self._cache.set(key, result)
                return result

        logger.warning("%s: no data from any source", token.symbol)
        return FetchResult.failed(token)

    def iter_fetch(
        self,
        tokens: Iterable[Token],
        days: Optional[int] = 30,
        cancel: Optional[threading.Event] = None,
    ) -> Iterator[FetchProgress]:
        """
        Fetch tokens sequentially, yielding progress as a stream.

        Stop consuming the iterator (or set `cancel`) to stop before the next
        token; a token already being fetched is always finished.
        """
        token_list = list(tokens)
        total = len(token_list)
        for i, token in enumerate(token_list, start=1):
            if cancel is not None and cancel.is_set():
                logger.info("Fetch cancelled after %d/%d tokens", i - 1, total)
                return
            yield FetchProgress(current=i, total=total, token=token)
            yield FetchProgress(current=i, total=total, token=token, result=self.fetch_one(token, days))

    def fetch_many(
        self,
        tokens: Iterable[Token],
        days: Optional[int] = 30,
        on_progress: Optional[Callable[[FetchProgress], Any]] = None,
    ) -> List[FetchResult]:
        """Fetch every token in order; returns one FetchResult per input token."""
        results: List[FetchResult] = []
        for event in self.iter_fetch(tokens, days):
            if event.result is None:
                if on_progress is not None:
                    on_progress(event)
            else:
                results.append(event.result)
        return results

    def clear_all_caches(self) -> None:
        """Drop the result cache and every provider cache (manual refresh)."""
        self._cache.clear()
        for provider in self._providers:
            provider.clear_cache()

    def subscribe(self, callback: Callable[[RateLimitState], None]) -> Callable[[], None]:
        """Observe rate-limit countdowns from every provider. Returns an unsubscribe function."""
        return self._notifier.subscribe(callback)

    def get_rate_limit_state(self, source: str) -> RateLimitState:
        return self._notifier.get_state(source)

    def get_token_info(self, platform: str, contract: str) -> Any:
        """Token metadata lookup by contract, from the first provider that supports it."""
        for provider in self._providers:
            lookup = getattr(provider, "get_token_info", None)
            if callable(lookup):
                return lookup(platform, contract)
        return None

    def close(self) -> None:
        """Release provider HTTP sessions. Idempotent: safe to call multiple times."""
        if self._closed:
            return
        try:
            for unsubscribe in self._forwarders:
                unsubscribe()
            for provider in self._providers:
                provider.close()
        finally:
            self._forwarders = []
            self._closed = True

    def __enter__(self) -> "MarketCapChain":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

"""
Rate-limited JSON GET shared by all provider clients.

HTTP 429 puts the provider's limiter into cooldown and retries the same URL,
at most `max_retries` times per call. Every other failure is classified into
the core.errors taxonomy and raised to the provider, which absorbs it.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import requests

from ..core.errors import (
    MarketDataError,
    NoDataError,
    ParseAnomalyError,
    ThrottledError,
    TransientNetworkError,
)
from .resilience import RateLimiter, TTLCache

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_S = 15.0
MAX_THROTTLE_RETRIES = 2


class RateLimitedHttpClient:
    """One requests.Session plus the provider's RateLimiter."""

    def __init__(
        self,
        provider_name: str,
        limiter: RateLimiter,
        *,
        timeout_s: float = HTTP_TIMEOUT_S,
        max_retries: int = MAX_THROTTLE_RETRIES,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.provider_name = provider_name
        self.limiter = limiter
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        retries = 0
        while True:
            self.limiter.acquire()
            try:
                resp = self._session.get(url, params=params, timeout=self.timeout_s)
            except requests.RequestException as exc:
                raise TransientNetworkError(
                    self.provider_name, f"{type(exc).__name__}: {exc}", url=url
                ) from exc

            if resp.status_code == 429:
                if retries >= self.max_retries:
                    logger.warning("%s: max retries reached after rate limiting", self.provider_name)
                    raise ThrottledError(
                        self.provider_name, f"rate limited after {retries} retries", url=url
                    )
                retries += 1
                logger.warning(
                    "%s rate limited (retry %d/%d)", self.provider_name, retries, self.max_retries
                )
                self.limiter.report_throttled()
                continue

            if not 200 <= resp.status_code < 300:
                raise NoDataError(
                    self.provider_name,
                    f"HTTP {resp.status_code}",
                    url=url,
                    status_code=resp.status_code,
                )

            try:
                return resp.json()
            except ValueError as exc:
                raise ParseAnomalyError(self.provider_name, f"invalid JSON: {exc}", url=url) from exc

    def close(self) -> None:
        self._session.close()


class ProviderClient:
    """
    Shared plumbing for provider implementations: one rate-limited HTTP client
    and one TTL cache of parsed responses, neither shared with other providers.
    """

    display_name = "provider"

    def __init__(self, http: RateLimitedHttpClient, cache: TTLCache) -> None:
        self._http = http
        self._cache = cache

    @property
    def limiter(self) -> RateLimiter:
        return self._http.limiter

    @property
    def cache(self) -> TTLCache:
        return self._cache

    def _fetch(
        self,
        what: str,
        cache_key: str,
        url: str,
        parse: Callable[[str, Any], Any],
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        GET + parse with caching. Returns None (and logs) on any classified failure
        except ThrottledError, which is raised so the provider stops for this token.
        """
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("%s cache hit: %s", self.display_name, cache_key)
            return cached
        try:
            payload = self._http.get_json(url, params=params)
            parsed = parse(self._http.provider_name, payload)
        except ThrottledError:
            logger.warning("%s: still rate limited fetching %s", self.display_name, what)
            raise
        except MarketDataError as exc:
            logger.warning("%s: no %s (%s)", self.display_name, what, exc)
            return None
        self._cache.set(cache_key, parsed)
        return parsed

    def clear_cache(self) -> None:
        self._cache.clear()

    def close(self) -> None:
        self._http.close()

"""
Shared exception types for mcap_aggregator.

Provider failures are classified so callers can decide what to do next:
- TransientNetworkError: connection/timeout failure; move to the next provider.
- ThrottledError: HTTP 429 persisted past the retry cap.
- NoDataError: non-2xx response or a well-formed empty payload.
- ParseAnomalyError: payload did not match the expected shape.

None of these escape the provider chain; they are logged and absorbed.
"""

from __future__ import annotations

from typing import Optional


class MarketDataError(Exception):
    """Base exception for mcap_aggregator; catch this for any package-raised error."""

    pass


class ProviderError(MarketDataError):
    """Failure attributed to a single upstream provider."""

    def __init__(self, provider: str, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.url = url


class TransientNetworkError(ProviderError):
    pass


class ThrottledError(ProviderError):
    pass


class NoDataError(ProviderError):
    def __init__(
        self,
        provider: str,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(provider, message, url=url)
        self.status_code = status_code


class ParseAnomalyError(ProviderError):
    pass


__all__ = [
    "MarketDataError",
    "NoDataError",
    "ParseAnomalyError",
    "ProviderError",
    "ThrottledError",
    "TransientNetworkError",
]

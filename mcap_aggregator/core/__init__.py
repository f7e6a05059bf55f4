"""
Stable facade: exception taxonomy only. Do not add exports without updating __all__.
"""

from __future__ import annotations

from .errors import (
    MarketDataError,
    NoDataError,
    ParseAnomalyError,
    ProviderError,
    ThrottledError,
    TransientNetworkError,
)

__all__ = [
    "MarketDataError",
    "NoDataError",
    "ParseAnomalyError",
    "ProviderError",
    "ThrottledError",
    "TransientNetworkError",
]

"""
Top-level public API surface.

Canonical entrypoints:
    from mcap_aggregator import create_market_cap_chain, merge_token_variants, get_display_tokens
Does not import cli.
"""

from __future__ import annotations

from ._version import __version__
from .merge import MergedToken, VariantInfo, get_display_tokens, merge_token_variants
from .providers import (
    DataSource,
    FetchProgress,
    FetchResult,
    MarketCapChain,
    MarketCapPoint,
    RateLimitState,
    Token,
    create_market_cap_chain,
)

# Do not add exports without updating __all__.
__all__ = [
    "DataSource",
    "FetchProgress",
    "FetchResult",
    "MarketCapChain",
    "MarketCapPoint",
    "MergedToken",
    "RateLimitState",
    "Token",
    "VariantInfo",
    "__version__",
    "create_market_cap_chain",
    "get_display_tokens",
    "merge_token_variants",
]

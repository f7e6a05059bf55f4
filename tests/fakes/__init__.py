"""Fake market-cap providers and a fake clock for chain and provider tests (no live network)."""

from .providers import (
    FakeClock,
    FakeMarketCapProvider,
    FakeMarketCapProviderAlwaysFail,
    FakeMarketCapProviderEmpty,
    FakeMarketCapProviderFailNThenSucceed,
    make_points,
    make_result,
    make_token,
)

__all__ = [
    "FakeClock",
    "FakeMarketCapProvider",
    "FakeMarketCapProviderAlwaysFail",
    "FakeMarketCapProviderEmpty",
    "FakeMarketCapProviderFailNThenSucceed",
    "make_points",
    "make_result",
    "make_token",
]

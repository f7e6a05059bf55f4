"""
Tests for the market-cap provider chain.

Verifies that:
- The first provider with data wins and later providers are not called
- Fallback providers are tried when earlier ones fail or come back empty
- Total exhaustion yields an error result instead of raising
- Results are cached per (token, days) within the TTL
- Batch fetches are sequential, ordered, and report progress first
"""
from __future__ import annotations

import threading

from mcap_aggregator.providers.base import DataSource
from mcap_aggregator.providers.chain import FetchProgress, MarketCapChain
from mcap_aggregator.providers.geckoterminal import GeckoTerminalProvider
from mcap_aggregator.providers.resilience import RateLimitNotifier, RateLimitState, TTLCache
from tests.fakes.http import fast_limiter, routed_session
from tests.fakes.providers import (
    FakeClock,
    FakeMarketCapProvider,
    FakeMarketCapProviderAlwaysFail,
    FakeMarketCapProviderEmpty,
    FakeMarketCapProviderFailNThenSucceed,
    make_token,
)

# ---------------------------------------------------------------------------
# fetch_one
# ---------------------------------------------------------------------------


class TestFetchOne:
    def test_primary_used_when_it_has_data(self):
        primary = FakeMarketCapProvider("geckoterminal", source=DataSource.GECKOTERMINAL)
        secondary = FakeMarketCapProvider("coingecko", source=DataSource.COINGECKO)
        tertiary = FakeMarketCapProvider("dexscreener", source=DataSource.DEXSCREENER)
        chain = MarketCapChain([primary, secondary, tertiary])

        result = chain.fetch_one(make_token("AAA"), 30)
        assert result.source == DataSource.GECKOTERMINAL
        assert not result.error
        assert primary.call_count == 1
        assert secondary.call_count == 0
        assert tertiary.call_count == 0

    def test_fallback_when_primary_returns_nothing(self):
        primary = FakeMarketCapProviderEmpty("geckoterminal")
        secondary = FakeMarketCapProvider("coingecko", {"AAA": 3}, source=DataSource.COINGECKO)
        chain = MarketCapChain([primary, secondary])

        result = chain.fetch_one(make_token("AAA"), 30)
        assert result.source == DataSource.COINGECKO
        assert len(result.data) == 3

    def test_empty_series_falls_through(self):
        primary = FakeMarketCapProvider("geckoterminal", {"AAA": 0})
        secondary = FakeMarketCapProvider("coingecko", {"AAA": 4}, source=DataSource.COINGECKO)
        chain = MarketCapChain([primary, secondary])

        result = chain.fetch_one(make_token("AAA"), 7)
        assert result.source == DataSource.COINGECKO
        assert primary.call_count == 1

    def test_raising_provider_is_skipped(self):
        primary = FakeMarketCapProviderAlwaysFail("geckoterminal")
        secondary = FakeMarketCapProvider("coingecko", source=DataSource.COINGECKO)
        chain = MarketCapChain([primary, secondary])

        result = chain.fetch_one(make_token("AAA"), 30)
        assert result.source == DataSource.COINGECKO
        assert primary.call_count == 1

    def test_all_fail_returns_error_result(self):
        token = make_token("AAA")
        chain = MarketCapChain([
            FakeMarketCapProviderAlwaysFail("p1"),
            FakeMarketCapProviderEmpty("p2"),
            FakeMarketCapProvider("p3", {"AAA": 0}),
        ])

        result = chain.fetch_one(token, 30)
        assert result.error is True
        assert result.data == []
        assert result.source == DataSource.NONE
        assert result.token is token

    def test_failures_are_not_cached(self):
        flaky = FakeMarketCapProviderFailNThenSucceed("p1", fail_times=1)
        chain = MarketCapChain([flaky])
        token = make_token("AAA")

        first = chain.fetch_one(token, 30)
        assert first.error
        second = chain.fetch_one(token, 30)
        assert not second.error
        assert flaky.call_count == 2

    def test_days_are_forwarded(self):
        primary = FakeMarketCapProvider("p1")
        chain = MarketCapChain([primary])
        chain.fetch_one(make_token("AAA"), None)
        assert primary.calls == [("aaa", None)]


# ---------------------------------------------------------------------------
# Result cache
# ---------------------------------------------------------------------------


class TestResultCache:
    def test_repeat_within_ttl_returns_same_object(self):
        primary = FakeMarketCapProvider("p1")
        chain = MarketCapChain([primary])
        token = make_token("AAA")

        first = chain.fetch_one(token, 30)
        second = chain.fetch_one(token, 30)
        assert second is first
        assert primary.call_count == 1

    def test_cache_is_keyed_by_days(self):
        primary = FakeMarketCapProvider("p1")
        chain = MarketCapChain([primary])
        token = make_token("AAA")

        chain.fetch_one(token, 30)
        chain.fetch_one(token, 7)
        assert primary.call_count == 2

    def test_expired_entry_refetches(self):
        clock = FakeClock()
        primary = FakeMarketCapProvider("p1")
        chain = MarketCapChain([primary], cache=TTLCache(300, clock=clock))
        token = make_token("AAA")

        chain.fetch_one(token, 30)
        clock.now += 299
        chain.fetch_one(token, 30)
        assert primary.call_count == 1
        clock.now += 1
        chain.fetch_one(token, 30)
        assert primary.call_count == 2

    def test_clear_all_caches(self):
        p1 = FakeMarketCapProvider("p1")
        p2 = FakeMarketCapProvider("p2")
        chain = MarketCapChain([p1, p2])
        token = make_token("AAA")

        chain.fetch_one(token, 30)
        chain.clear_all_caches()
        chain.fetch_one(token, 30)
        assert p1.call_count == 2
        assert p1.cleared == 1
        assert p2.cleared == 1


# ---------------------------------------------------------------------------
# Batch fetch
# ---------------------------------------------------------------------------


class TestFetchMany:
    def test_results_preserve_input_order(self):
        tokens = [make_token("CCC"), make_token("AAA"), make_token("BBB")]
        chain = MarketCapChain([FakeMarketCapProvider("p1", {"AAA": 0})])

        results = chain.fetch_many(tokens, 30)
        assert [r.token.symbol for r in results] == ["CCC", "AAA", "BBB"]
        assert [r.error for r in results] == [False, True, False]

    def test_progress_reported_before_each_fetch(self):
        log = []

        class RecordingProvider(FakeMarketCapProvider):
            def fetch_market_cap(self, token, days):
                log.append(("fetch", token.symbol))
                return super().fetch_market_cap(token, days)

        tokens = [make_token("AAA"), make_token("BBB")]
        chain = MarketCapChain([RecordingProvider("p1")])

        def on_progress(p: FetchProgress):
            log.append(("progress", p.token.symbol, p.current, p.total))

        chain.fetch_many(tokens, 30, on_progress=on_progress)
        assert log == [
            ("progress", "AAA", 1, 2),
            ("fetch", "AAA"),
            ("progress", "BBB", 2, 2),
            ("fetch", "BBB"),
        ]

    def test_empty_token_list(self):
        chain = MarketCapChain([FakeMarketCapProvider("p1")])
        assert chain.fetch_many([], 30) == []

    def test_iter_fetch_stops_when_consumer_stops(self):
        primary = FakeMarketCapProvider("p1")
        chain = MarketCapChain([primary])
        tokens = [make_token("AAA"), make_token("BBB"), make_token("CCC")]

        done = []
        for event in chain.iter_fetch(tokens, 30):
            if event.done:
                done.append(event.result)
                break
        assert len(done) == 1
        assert primary.call_count == 1

    def test_iter_fetch_honours_cancel_event(self):
        primary = FakeMarketCapProvider("p1")
        chain = MarketCapChain([primary])
        cancel = threading.Event()
        tokens = [make_token("AAA"), make_token("BBB")]

        events = []
        for event in chain.iter_fetch(tokens, 30, cancel=cancel):
            events.append(event)
            if event.done:
                cancel.set()
        assert [e.done for e in events] == [False, True]
        assert primary.call_count == 1


# ---------------------------------------------------------------------------
# Lifecycle and collaborators
# ---------------------------------------------------------------------------


class TestChainServices:
    def test_subscribe_and_unsubscribe(self):
        notifier = RateLimitNotifier()
        chain = MarketCapChain([FakeMarketCapProvider("p1")], notifier=notifier)
        seen = []

        unsubscribe = chain.subscribe(seen.append)
        notifier.publish(RateLimitState.waiting("GeckoTerminal", 60))
        unsubscribe()
        notifier.publish(RateLimitState.idle("GeckoTerminal"))

        assert len(seen) == 1
        assert seen[0].is_waiting
        assert chain.get_rate_limit_state("GeckoTerminal").is_waiting is False

    def test_close_is_idempotent(self):
        p1 = FakeMarketCapProvider("p1")
        with MarketCapChain([p1]) as chain:
            pass
        assert p1.closed
        chain.close()

    def test_get_token_info_uses_first_capable_provider(self):
        class WithInfo(FakeMarketCapProvider):
            def get_token_info(self, platform, contract):
                return {"platform": platform, "contract": contract}

        chain = MarketCapChain([FakeMarketCapProvider("p0"), WithInfo("p1")])
        assert chain.get_token_info("base", "0xabc") == {"platform": "base", "contract": "0xabc"}
        assert MarketCapChain([FakeMarketCapProvider("p0")]).get_token_info("base", "0xabc") is None

    def test_provider_names(self):
        chain = MarketCapChain([FakeMarketCapProvider("a"), FakeMarketCapProvider("b")])
        assert chain.provider_names == ["a", "b"]

    def test_injected_empty_cache_is_used(self):
        cache = TTLCache(10)
        chain = MarketCapChain([FakeMarketCapProvider("p1")], cache=cache)
        assert chain.cache is cache
        chain.fetch_one(make_token("AAA"), 30)
        assert len(cache) == 1

    def test_direct_chain_relays_provider_limiter_states(self):
        clock = FakeClock()
        limiter = fast_limiter("GeckoTerminal", clock)
        provider = GeckoTerminalProvider(limiter=limiter, session=routed_session([]))
        chain = MarketCapChain([provider])
        seen = []
        chain.subscribe(seen.append)

        limiter.report_throttled()
        assert seen[-1].source == "GeckoTerminal"
        assert seen[-1].seconds_remaining == 60
        assert chain.get_rate_limit_state("GeckoTerminal").is_waiting

        chain.close()
        limiter.reset()
        assert seen[-1].is_waiting

"""
Tests for the Market Data Client

Exercises the full stack (cache, scheduler, fetcher, provider) against a
mock Coingecko transport.
"""

import pytest

from corrdash.cache import TTLCache
from corrdash.core.errors import InvalidWindowError, RateLimitExceededError, UpstreamStatusError
from corrdash.providers.coingecko import CoingeckoProvider
from corrdash.services.fetcher import RetryingFetcher
from corrdash.services.market_data import MarketDataClient, history_cache_key, snapshot_cache_key
from corrdash.services.scheduler import RequestScheduler

from conftest import chart


@pytest.fixture
def make_client(upstream, clock, recording_sleep):
    def factory(**kwargs):
        fetcher = RetryingFetcher(client=upstream.client(), sleep=recording_sleep)
        provider = CoingeckoProvider(fetcher)
        scheduler = RequestScheduler(1.1, clock=clock, sleep=recording_sleep)
        cache = TTLCache(60, clock=clock)
        return MarketDataClient(provider, scheduler, cache, **kwargs)
    return factory


def seed(upstream, *coin_ids):
    for i, coin_id in enumerate(coin_ids, 1):
        upstream.add_coin(coin_id, price=100.0 * i, volume=1e6 * i, market_cap=1e9 * i, rank=i)


# =============================================================================
# Snapshots
# =============================================================================

class TestSnapshots:
    @pytest.mark.asyncio
    async def test_partial_batch_tolerance(self, upstream, make_client):
        seed(upstream, "a", "b", "c")
        upstream.failing_ids.add("b")
        client = make_client()

        result = await client.get_current_snapshots(["a", "b", "c"], "usd")

        assert set(result) == {"a", "c"}
        assert result["c"].price_in("usd") == 300.0

    @pytest.mark.asyncio
    async def test_unknown_coin_is_omitted(self, upstream, make_client):
        seed(upstream, "bitcoin")
        client = make_client()

        result = await client.get_current_snapshots(["bitcoin", "does-not-exist"])

        assert list(result) == ["bitcoin"]
        assert client.cache.get(snapshot_cache_key("does-not-exist", "usd")) is None

    @pytest.mark.asyncio
    async def test_rate_limited_then_cached(self, upstream, make_client, recording_sleep):
        seed(upstream, "bitcoin")
        upstream.script("/simple/price", 429)
        client = make_client()

        first = await client.get_current_snapshots(["bitcoin"], "usd")
        requests_after_first = len(upstream.requests)
        second = await client.get_current_snapshots(["bitcoin"], "usd")

        assert requests_after_first == 2
        assert recording_sleep.delays == [1.0]
        assert len(upstream.requests) == requests_after_first
        assert first["bitcoin"] is second["bitcoin"]

    @pytest.mark.asyncio
    async def test_cache_expires(self, upstream, make_client, clock):
        seed(upstream, "bitcoin")
        client = make_client()

        await client.get_current_snapshot("bitcoin")
        clock.advance(61)
        await client.get_current_snapshot("bitcoin")

        assert len(upstream.requests_for("/simple/price")) == 2

    @pytest.mark.asyncio
    async def test_cache_is_per_currency(self, upstream, make_client):
        seed(upstream, "bitcoin")
        client = make_client()

        await client.get_current_snapshot("bitcoin", "usd")
        await client.get_current_snapshot("bitcoin", "USD")
        await client.get_current_snapshot("bitcoin", "eur")

        assert [r.url.params["vs_currencies"] for r in upstream.requests] == ["usd", "eur"]

    @pytest.mark.asyncio
    async def test_duplicates_fetched_once(self, upstream, make_client):
        seed(upstream, "bitcoin", "ethereum")
        client = make_client()

        result = await client.get_current_snapshots(["bitcoin", "ethereum", "bitcoin"])

        assert set(result) == {"bitcoin", "ethereum"}
        assert len(upstream.requests) == 2

    @pytest.mark.asyncio
    async def test_requests_are_paced(self, upstream, make_client, clock):
        coins = [f"coin-{i}" for i in range(7)]
        seed(upstream, *coins)
        client = make_client(snapshot_batch_size=5)
        start = clock()

        result = await client.get_current_snapshots(coins)

        assert len(result) == 7
        assert client.scheduler.dispatched == 7
        assert clock() - start == pytest.approx(6 * 1.1)

    @pytest.mark.asyncio
    async def test_single_snapshot_propagates_failure(self, upstream, make_client):
        upstream.script("/simple/price", 429, 429, 429, 429)
        client = make_client()

        with pytest.raises(RateLimitExceededError):
            await client.get_current_snapshot("bitcoin")


# =============================================================================
# History
# =============================================================================

class TestHistory:
    @pytest.mark.asyncio
    async def test_history_preserves_order_with_gaps(self, upstream, make_client):
        upstream.charts["bitcoin"] = chart([1, 2, 3])
        upstream.charts["solana"] = chart([7, 8])
        upstream.failing_ids.add("ethereum")
        client = make_client()

        histories = await client.get_history(["bitcoin", "ethereum", "solana", "cardano"], "7d", "usd")

        assert len(histories) == 4
        assert histories[0].prices == [1, 2, 3]
        assert histories[1] is None
        assert histories[2].prices == [7, 8]
        assert histories[3].prices == []

    @pytest.mark.asyncio
    async def test_window_maps_to_days_and_interval(self, upstream, make_client):
        upstream.charts["bitcoin"] = chart([1, 2])
        client = make_client()

        await client.get_history_series("bitcoin", "24h")
        await client.get_history_series("bitcoin", "30d", "eur")

        params = [dict(r.url.params) for r in upstream.requests]
        assert params == [
            {"vs_currency": "usd", "days": "1", "interval": "minute"},
            {"vs_currency": "eur", "days": "30", "interval": "day"},
        ]

    @pytest.mark.asyncio
    async def test_history_is_cached_per_window(self, upstream, make_client):
        upstream.charts["bitcoin"] = chart([1, 2])
        client = make_client()

        await client.get_history(["bitcoin"], "7d")
        await client.get_history(["bitcoin"], "7d")

        assert len(upstream.requests) == 1
        assert client.cache.get(history_cache_key("bitcoin", "7", "usd")) is not None
        assert client.cache.get(history_cache_key("bitcoin", "1", "usd")) is None

    @pytest.mark.asyncio
    async def test_invalid_window_raises_before_any_request(self, upstream, make_client):
        client = make_client()

        with pytest.raises(InvalidWindowError):
            await client.get_history(["bitcoin"], "1y")
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_empty_coin_list(self, make_client):
        assert await make_client().get_history([], "24h") == []


# =============================================================================
# Search and listing
# =============================================================================

class TestSearch:
    @pytest.mark.asyncio
    async def test_search_is_cached_and_capped(self, upstream, make_client):
        upstream.search_results["sol"] = [{"id": f"sol-{i}", "symbol": "sol", "name": "Sol"} for i in range(12)]
        client = make_client()

        first = await client.search("sol")
        second = await client.search("sol")

        assert len(first) == 10
        assert first == second
        assert len(upstream.requests) == 1

    @pytest.mark.asyncio
    async def test_empty_results_are_cached(self, upstream, make_client):
        client = make_client()

        assert await client.search("zzz") == []
        assert await client.search("zzz") == []
        assert len(upstream.requests) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   "])
    async def test_blank_query_short_circuits(self, upstream, make_client, query):
        assert await make_client().search(query) == []
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_search_failure_propagates(self, upstream, make_client):
        upstream.script("/search", 500, 500, 500, 500)
        client = make_client()

        with pytest.raises(UpstreamStatusError):
            await client.search("btc")


class TestListTokenIds:
    @pytest.mark.asyncio
    async def test_sorted_by_market_cap_rank(self, upstream, make_client):
        upstream.coin_list = [
            {"id": "unranked-a"},
            {"id": "ethereum", "market_cap_rank": 2},
            {"id": "unranked-b", "market_cap_rank": None},
            {"id": "bitcoin", "market_cap_rank": 1},
            {"id": "solana", "market_cap_rank": 5},
            {"id": "bitcoin", "market_cap_rank": 1},
        ]
        client = make_client()

        ids = await client.list_token_ids()

        assert ids == ["bitcoin", "ethereum", "solana", "unranked-a", "unranked-b"]

    @pytest.mark.asyncio
    async def test_ranking_comes_from_markets_endpoint(self, upstream, make_client):
        upstream.coin_list = [
            {"id": "aave", "market_cap_rank": 40},
            {"id": "bitcoin", "market_cap_rank": 1},
            {"id": "zzz-obscure"},
        ]
        client = make_client(default_currency="eur", ranked_page_size=100)

        ids = await client.list_token_ids()

        assert ids == ["bitcoin", "aave", "zzz-obscure"]
        markets = upstream.requests_for("/coins/markets")
        assert len(markets) == 1
        params = markets[0].url.params
        assert (params["vs_currency"], params["order"], params["per_page"], params["page"]) == (
            "eur", "market_cap_desc", "100", "1",
        )
        assert upstream.requests[0].url.path.endswith("/coins/markets")
        assert upstream.requests[1].url.path.endswith("/coins/list")

    @pytest.mark.asyncio
    async def test_markets_failure_falls_back_to_plain_listing(self, upstream, make_client):
        upstream.coin_list = [{"id": "ethereum", "market_cap_rank": 2}, {"id": "bitcoin", "market_cap_rank": 1}]
        upstream.script("/coins/markets", 500, 500, 500, 500)
        client = make_client()

        ids = await client.list_token_ids()

        assert ids == ["ethereum", "bitcoin"]

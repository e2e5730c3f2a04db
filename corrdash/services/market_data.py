"""
Market Data Client

Cache-first accessors for the dashboard: current snapshots, historical
series, token search and the full token listing. Every upstream call is
queued on the shared request scheduler so the rate-limit pacing holds no
matter how many callers are active.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from ..cache import TTLCache
from ..core.errors import MarketDataError
from ..providers.base import MarketDataProvider
from ..types.market import (
    HistorySeries,
    MarketData,
    Token,
    normalize_currency,
    resolve_window,
)
from .scheduler import RequestScheduler

logger = logging.getLogger(__name__)


def snapshot_cache_key(coin_id: str, currency: str) -> str:
    return f"data:{coin_id}:{currency}"


def history_cache_key(coin_id: str, days: str, currency: str) -> str:
    return f"history:{coin_id}:{days}:{currency}"


def search_cache_key(query: str) -> str:
    return f"search:{query}"


def _unique(items: Sequence[str]) -> List[str]:
    seen: set[str] = set()
    ordered: List[str] = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


def _rank_key(entry: Dict) -> float:
    rank = entry.get("market_cap_rank")
    if isinstance(rank, (int, float)) and not isinstance(rank, bool) and rank > 0:
        return float(rank)
    return float("inf")


class MarketDataClient:
    """Compose cache, scheduler and provider for each logical request."""

    def __init__(
        self,
        provider: MarketDataProvider,
        scheduler: RequestScheduler,
        cache: TTLCache,
        *,
        snapshot_batch_size: int = 5,
        history_batch_size: int = 3,
        search_limit: int = 10,
        ranked_page_size: int = 250,
        default_currency: str = "usd",
    ) -> None:
        self._provider = provider
        self._scheduler = scheduler
        self._cache = cache
        self.snapshot_batch_size = max(1, snapshot_batch_size)
        self.history_batch_size = max(1, history_batch_size)
        self.search_limit = search_limit
        self.ranked_page_size = ranked_page_size
        self.default_currency = normalize_currency(default_currency)

    @property
    def cache(self) -> TTLCache:
        return self._cache

    @property
    def scheduler(self) -> RequestScheduler:
        return self._scheduler

    # =========================================================================
    # Current snapshots
    # =========================================================================

    async def get_current_snapshot(self, coin_id: str, currency: Optional[str] = None) -> Optional[MarketData]:
        """Fetch one coin's snapshot. Raises when the upstream call fails."""
        vs = normalize_currency(currency, self.default_currency)
        key = snapshot_cache_key(coin_id, vs)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        data = await self._scheduler.enqueue(lambda: self._provider.get_simple_price(coin_id, vs))
        if data is not None:
            self._cache.set(key, data)
        return data

    async def get_current_snapshots(
        self,
        coins: Sequence[str],
        currency: Optional[str] = None,
    ) -> Dict[str, MarketData]:
        """Snapshot several coins. Coins that fail are left out of the result."""
        vs = normalize_currency(currency, self.default_currency)
        result: Dict[str, MarketData] = {}
        misses: List[str] = []

        for coin_id in _unique(coins):
            cached = self._cache.get(snapshot_cache_key(coin_id, vs))
            if cached is not None:
                result[coin_id] = cached
            else:
                misses.append(coin_id)

        for start in range(0, len(misses), self.snapshot_batch_size):
            batch = misses[start:start + self.snapshot_batch_size]
            outcomes = await asyncio.gather(
                *[self.get_current_snapshot(coin_id, vs) for coin_id in batch],
                return_exceptions=True,
            )
            for coin_id, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    logger.warning("Error fetching data for %s: %s", coin_id, outcome)
                    continue
                if outcome is None:
                    logger.info("No market data returned for %s/%s", coin_id, vs)
                    continue
                result[coin_id] = outcome

        return result

    # =========================================================================
    # Historical series
    # =========================================================================

    async def get_history_series(
        self,
        coin_id: str,
        window: str = "24h",
        currency: Optional[str] = None,
    ) -> HistorySeries:
        """Fetch one coin's price history. Raises when the upstream call fails."""
        setting = resolve_window(window)
        vs = normalize_currency(currency, self.default_currency)
        key = history_cache_key(coin_id, setting.days, vs)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        series = await self._scheduler.enqueue(
            lambda: self._provider.get_market_chart(
                coin_id,
                vs_currency=vs,
                days=setting.days,
                interval=setting.interval,
            )
        )
        self._cache.set(key, series)
        return series

    async def get_history(
        self,
        coin_ids: Sequence[str],
        window: str = "24h",
        currency: Optional[str] = None,
    ) -> List[Optional[HistorySeries]]:
        """History for every coin, aligned with ``coin_ids``.

        A coin whose fetch fails yields ``None`` at its position.
        """
        resolve_window(window)
        vs = normalize_currency(currency, self.default_currency)
        results: List[Optional[HistorySeries]] = []

        for start in range(0, len(coin_ids), self.history_batch_size):
            batch = list(coin_ids[start:start + self.history_batch_size])
            outcomes = await asyncio.gather(
                *[self.get_history_series(coin_id, window, vs) for coin_id in batch],
                return_exceptions=True,
            )
            for coin_id, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    logger.warning("Error fetching history for %s: %s", coin_id, outcome)
                    results.append(None)
                else:
                    results.append(outcome)

        return results

    # =========================================================================
    # Search and listing
    # =========================================================================

    async def search(self, query: str) -> List[Token]:
        if not query or not query.strip():
            return []

        key = search_cache_key(query)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        tokens = await self._scheduler.enqueue(
            lambda: self._provider.search_coins(query, limit=self.search_limit)
        )
        tokens = list(tokens)[: self.search_limit]
        self._cache.set(key, tuple(tokens))
        return tokens

    async def list_token_ids(self) -> List[str]:
        """Every known coin id, largest market cap first; unranked ids last.

        The ranked head comes from the markets page. The plain coin list has
        no rank, so it only appends the long tail.
        """
        try:
            ranked = await self._scheduler.enqueue(
                lambda: self._provider.list_top_coins(self.default_currency, per_page=self.ranked_page_size)
            )
        except MarketDataError as e:
            logger.warning("Ranked coin listing unavailable, falling back to unordered list: %s", e)
            ranked = []

        entries = await self._scheduler.enqueue(self._provider.list_coins)
        ordered = sorted(ranked, key=_rank_key) + sorted(entries, key=_rank_key)
        return _unique([str(entry["id"]) for entry in ordered])

"""
Token Directory Service

Keeps a broad, continuously refreshed snapshot of the token universe.

Features:
- Background batch polling of every known token id
- Fuzzy search over the accumulated set, topped up by live search
- Similarity ranking by price, volume and market cap
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import structlog

from ...types.market import Token, TokenSnapshot, normalize_currency
from ..market_data import MarketDataClient
from .models import FALLBACK_TOKEN_IDS, DirectoryCursor, SimilarToken, similarity

logger = structlog.stdlib.get_logger("token_directory")


class TokenDirectory:
    """
    One per process, owned by the service bundle.

    ``start()`` spawns a supervised background task that walks the token list
    in fixed-size batches; ``stop()`` cancels it. Entries are created or
    refreshed in place and never removed.
    """

    def __init__(
        self,
        market_data: MarketDataClient,
        *,
        currency: str = "usd",
        batch_size: int = 10,
        batch_delay_seconds: float = 1.5,
        cycle_pause_seconds: float = 300.0,
        restart_delay_seconds: float = 1.0,
        local_search_limit: int = 5,
        search_limit: int = 10,
        fallback_token_ids: Optional[Sequence[str]] = None,
    ) -> None:
        self._market_data = market_data
        self.currency = normalize_currency(currency)
        self.batch_delay_seconds = batch_delay_seconds
        self.cycle_pause_seconds = cycle_pause_seconds
        self.restart_delay_seconds = restart_delay_seconds
        self.local_search_limit = local_search_limit
        self.search_limit = search_limit
        self._fallback_ids = list(fallback_token_ids or FALLBACK_TOKEN_IDS)

        self._entries: Dict[str, TokenSnapshot] = {}
        self._cursor = DirectoryCursor(batch_size=max(1, batch_size))
        self._initialized = False
        self._used_fallback = False

        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._lock = asyncio.Lock()
        self._cycles_completed = 0
        self._error_count = 0
        self._last_error: Optional[str] = None

    # ---------------------------
    # Lifecycle
    # ---------------------------
    async def initialize(self) -> None:
        """Load the ordered token id list, degrading to the seed list on failure."""
        try:
            token_ids = await self._market_data.list_token_ids()
        except Exception as exc:  # noqa: BLE001
            self._record_error(exc)
            logger.warning("token_list_unavailable", error=exc, fallback=len(self._fallback_ids))
            token_ids = []

        if token_ids:
            self._used_fallback = False
        else:
            token_ids = list(self._fallback_ids)
            self._used_fallback = True

        self._cursor.reset(token_ids)
        self._initialized = True
        logger.info("token_list_loaded", tokens=len(token_ids), fallback=self._used_fallback)

    async def start(self) -> None:
        async with self._lock:
            if self.is_running:
                return
            self._stop_event = asyncio.Event()
            self._task = asyncio.create_task(self._run(), name="token-directory-loop")
            logger.info("token_directory_started")

    async def stop(self) -> None:
        async with self._lock:
            task = self._task
            if task is None:
                return
            self._stop_event.set()
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("token_directory_stopped", entries=len(self._entries))

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cursor(self) -> DirectoryCursor:
        return self._cursor

    # ---------------------------
    # Background refresh
    # ---------------------------
    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                if not self._initialized:
                    await self.initialize()
                wrapped = await self.refresh_next_batch()
                delay = self.cycle_pause_seconds if wrapped else self.batch_delay_seconds
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                self._record_error(exc)
                logger.error("token_directory_step_failed", error=exc, exc_info=True)
                delay = self.restart_delay_seconds
            await self._wait(delay)

    async def refresh_next_batch(self) -> bool:
        """Refresh the batch at the cursor and advance it.

        Returns True when this batch finished a full pass over the token list.
        """
        if not self._initialized:
            await self.initialize()

        batch = self._cursor.current_batch()
        if batch:
            await self._load_batch(batch)

        wrapped = self._cursor.advance()
        if wrapped:
            self._cycles_completed += 1
            logger.info("token_directory_cycle_complete", cycles=self._cycles_completed, entries=len(self._entries))
        return wrapped

    async def _load_batch(self, token_ids: List[str]) -> None:
        snapshots = await self._market_data.get_current_snapshots(token_ids, self.currency)
        now = datetime.now(timezone.utc)

        for token_id in token_ids:
            data = snapshots.get(token_id)
            entry = self._entries.get(token_id)
            if entry is None:
                self._entries[token_id] = TokenSnapshot(
                    token=Token.from_id(token_id),
                    market_data=data,
                    last_updated=now if data is not None else None,
                )
            elif data is not None:
                entry.market_data = data
                entry.last_updated = now

        logger.debug("token_batch_loaded", requested=len(token_ids), received=len(snapshots))

    async def _wait(self, seconds: float) -> None:
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _record_error(self, exc: BaseException) -> None:
        self._error_count += 1
        self._last_error = str(exc) or exc.__class__.__name__

    # ---------------------------
    # Queries
    # ---------------------------
    async def get_token(self, token_id: str) -> Optional[TokenSnapshot]:
        """Directory entry if fresh, otherwise fetched on demand and stored."""
        entry = self._entries.get(token_id)
        now = datetime.now(timezone.utc)
        ttl = timedelta(seconds=self.cycle_pause_seconds)
        if entry and entry.market_data is not None and entry.last_updated and now - entry.last_updated < ttl:
            return entry

        try:
            data = await self._market_data.get_current_snapshot(token_id, self.currency)
        except Exception as exc:  # noqa: BLE001
            logger.warning("token_fetch_failed", token_id=token_id, error=exc)
            return entry

        if data is None:
            return entry

        if entry is None:
            entry = TokenSnapshot(token=Token.from_id(token_id))
            self._entries[token_id] = entry
        entry.market_data = data
        entry.last_updated = now
        return entry

    def get_cached(self, token_id: str) -> Optional[TokenSnapshot]:
        return self._entries.get(token_id)

    def all_tokens(self) -> List[TokenSnapshot]:
        return list(self._entries.values())

    def popular_tokens(self) -> List[TokenSnapshot]:
        return [entry for entry in self._entries.values() if entry.market_data is not None]

    async def search(self, query: str) -> List[Token]:
        needle = (query or "").strip().lower()
        if not needle:
            return []

        local = [
            entry.token
            for entry in self._entries.values()
            if needle in entry.token.name.lower() or needle in entry.token.symbol.lower()
        ][: self.local_search_limit]

        if len(local) >= self.local_search_limit:
            return local

        try:
            remote = await self._market_data.search(query)
        except Exception as exc:  # noqa: BLE001
            logger.warning("token_search_upstream_failed", query=query, error=exc)
            remote = []

        combined = list(local)
        seen = {token.id for token in combined}
        for token in remote:
            if token.id not in seen:
                seen.add(token.id)
                combined.append(token)

        return combined[: self.search_limit]

    def rank_similar(self, token_id: str, limit: int = 5) -> List[SimilarToken]:
        reference = self._entries.get(token_id)
        if reference is None or reference.market_data is None:
            return []

        scored = [
            SimilarToken(
                token=entry.token,
                score=similarity(reference.market_data, entry.market_data, self.currency),
                market_data=entry.market_data,
            )
            for entry in self._entries.values()
            if entry.token.id != token_id and entry.market_data is not None
        ]
        scored.sort(key=lambda item: item.score, reverse=True)
        return scored[: max(0, limit)]

    def similar_tokens(self, token_id: str, limit: int = 5) -> List[Token]:
        return [item.token for item in self.rank_similar(token_id, limit)]

    # ---------------------------
    # Introspection
    # ---------------------------
    def status(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "currency": self.currency,
            "entries": len(self._entries),
            "populated": len(self.popular_tokens()),
            "cursor_position": self._cursor.position,
            "total_ids": len(self._cursor.token_ids),
            "using_fallback_list": self._used_fallback,
            "cycles_completed": self._cycles_completed,
            "error_count": self._error_count,
            "last_error": self._last_error,
        }

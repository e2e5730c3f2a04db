from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..cache import TTLCache
from ..config import Settings, settings as default_settings
from ..providers.coingecko import CoingeckoProvider
from .fetcher import RetryingFetcher, RetryPolicy
from .market_data import MarketDataClient
from .scheduler import RequestScheduler
from .token_directory import TokenDirectory

logger = logging.getLogger(__name__)


@dataclass
class MarketDataServices:
    """Everything that shares one upstream rate limit, wired together."""

    fetcher: RetryingFetcher
    scheduler: RequestScheduler
    cache: TTLCache
    provider: CoingeckoProvider
    market_data: MarketDataClient
    directory: TokenDirectory

    async def aclose(self) -> None:
        await self.directory.stop()
        await self.scheduler.close()
        await self.fetcher.close()

    def status(self) -> Dict[str, Any]:
        return {
            "scheduler": self.scheduler.status(),
            "cache_entries": self.cache.size(),
            "directory": self.directory.status(),
        }


def build_services(
    config: Optional[Settings] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> MarketDataServices:
    """Build the service bundle from settings.

    ``client`` lets tests inject an ``httpx.AsyncClient`` backed by a mock
    transport.
    """
    cfg = config or default_settings

    headers: Dict[str, str] = {}
    if cfg.has_coingecko_key:
        headers["X-CG-Demo-API-Key"] = cfg.coingecko_api_key

    fetcher = RetryingFetcher(
        client=client,
        policy=RetryPolicy(
            max_retries=cfg.max_retries,
            initial_delay_seconds=cfg.retry_initial_delay_seconds,
            max_delay_seconds=cfg.retry_max_delay_seconds,
        ),
        timeout_s=cfg.request_timeout_seconds,
        headers=headers,
    )
    scheduler = RequestScheduler(cfg.request_min_interval_seconds)
    cache = TTLCache(cfg.cache_ttl_seconds)
    provider = CoingeckoProvider(fetcher, base_url=cfg.coingecko_base_url)
    market_data = MarketDataClient(
        provider,
        scheduler,
        cache,
        snapshot_batch_size=cfg.snapshot_batch_size,
        history_batch_size=cfg.history_batch_size,
        search_limit=cfg.search_result_limit,
        ranked_page_size=cfg.listing_ranked_page_size,
        default_currency=cfg.default_currency,
    )
    directory = TokenDirectory(
        market_data,
        currency=cfg.directory_currency,
        batch_size=cfg.directory_batch_size,
        batch_delay_seconds=cfg.directory_batch_delay_seconds,
        cycle_pause_seconds=cfg.directory_cycle_pause_seconds,
        restart_delay_seconds=cfg.directory_restart_delay_seconds,
        local_search_limit=cfg.directory_local_search_limit,
        search_limit=cfg.directory_search_limit,
    )
    logger.debug("Built market data services (base_url=%s)", cfg.coingecko_base_url)
    return MarketDataServices(
        fetcher=fetcher,
        scheduler=scheduler,
        cache=cache,
        provider=provider,
        market_data=market_data,
        directory=directory,
    )

"""
Shared fixtures: a controllable clock, a recording sleep and a fake
Coingecko upstream served through ``httpx.MockTransport``.
"""

import asyncio
from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Optional, Union

import httpx
import pytest
import structlog
from fastapi.testclient import TestClient

from corrdash.config import Settings
from corrdash.main import create_app
from corrdash.services.bundle import build_services

BASE_URL = "https://api.coingecko.com/api/v3"


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records delays and advances a fake clock."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)
        await asyncio.sleep(0)


Scripted = Union[int, httpx.Response, Exception]


class FakeCoingecko:
    """In-memory stand-in for the upstream endpoints we use."""

    def __init__(self):
        self.prices: Dict[str, Dict[str, Any]] = {}
        self.charts: Dict[str, List[List[float]]] = {}
        self.search_results: Dict[str, List[Dict[str, Any]]] = {}
        self.coin_list: List[Dict[str, Any]] = []
        self.failing_ids: set = set()
        self.scripted: Dict[str, Deque[Scripted]] = defaultdict(deque)
        self.requests: List[httpx.Request] = []
        # request_id bound in the calling context when each upstream call went out
        self.request_ids: List[Optional[str]] = []

    # Scripted responses are consumed first, keyed by path
    def script(self, path: str, *outcomes: Scripted) -> None:
        self.scripted[path].extend(outcomes)

    def add_coin(self, coin_id: str, *, price: float, volume: float, market_cap: float,
                 change: float = 0.0, currency: str = "usd", rank: Optional[int] = None) -> None:
        self.prices[coin_id] = {
            currency: price,
            f"{currency}_24h_change": change,
            f"{currency}_24h_vol": volume,
            f"{currency}_market_cap": market_cap,
            "last_updated_at": 1_700_000_000,
        }
        self.coin_list.append({"id": coin_id, "symbol": coin_id[:3], "name": coin_id.title(), "market_cap_rank": rank})

    def requests_for(self, path: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path.endswith(path)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.request_ids.append(structlog.contextvars.get_contextvars().get("request_id"))
        path = request.url.path.replace("/api/v3", "", 1)

        queue = self.scripted.get(path)
        if queue:
            outcome = queue.popleft()
            if isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, int):
                return httpx.Response(outcome, json={"error": "scripted"})
            return outcome

        params = request.url.params
        if path == "/simple/price":
            coin_id = params["ids"]
            if coin_id in self.failing_ids:
                return httpx.Response(500, json={"error": "boom"})
            return httpx.Response(200, json={coin_id: self.prices[coin_id]} if coin_id in self.prices else {})
        if path == "/search":
            return httpx.Response(200, json={"coins": self.search_results.get(params["query"], [])})
        if path == "/coins/list":
            # The real listing carries no rank
            unranked = [
                {k: v for k, v in coin.items() if k != "market_cap_rank"} if isinstance(coin, dict) else coin
                for coin in self.coin_list
            ]
            return httpx.Response(200, json=unranked)
        if path == "/coins/markets":
            ranked = [coin for coin in self.coin_list
                      if isinstance(coin, dict) and isinstance(coin.get("market_cap_rank"), int)]
            ranked.sort(key=lambda coin: coin["market_cap_rank"])
            return httpx.Response(200, json=ranked[: int(params.get("per_page", 250))])
        if path.startswith("/coins/") and path.endswith("/market_chart"):
            coin_id = path.split("/")[2]
            if coin_id in self.failing_ids:
                return httpx.Response(500, json={"error": "boom"})
            return httpx.Response(200, json={"prices": self.charts.get(coin_id, [])})
        if path == "/ping":
            return httpx.Response(200, json={"gecko_says": "(V3) To the Moon!"})
        return httpx.Response(404, json={"error": "not found"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep(clock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def upstream() -> FakeCoingecko:
    return FakeCoingecko()


def chart(prices: List[float], start_ms: int = 1_700_000_000_000, step_ms: int = 60_000) -> List[List[float]]:
    return [[start_ms + i * step_ms, price] for i, price in enumerate(prices)]


@pytest.fixture
def services(upstream):
    """Service bundle wired to the fake upstream with pacing and backoff disabled."""
    config = Settings(
        request_min_interval_seconds=0,
        retry_initial_delay_seconds=0,
        retry_max_delay_seconds=0,
        directory_enabled=False,
        coingecko_base_url=BASE_URL,
    )
    return build_services(config, client=upstream.client())


@pytest.fixture
def api_client(services):
    with TestClient(create_app(services, start_directory=False)) as client:
        yield client

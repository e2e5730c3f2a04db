import logging
import time
from typing import Any, Dict, List, Optional

from ..core.errors import InvalidResponseError
from ..services.fetcher import RetryingFetcher
from ..types.market import HistorySeries, MarketData, Token, normalize_currency
from .base import MarketDataProvider

logger = logging.getLogger(__name__)

COINGECKO_API = "https://api.coingecko.com/api/v3"


class CoingeckoProvider(MarketDataProvider):
    """Coingecko API provider for prices, history and token search.

    Every call goes through the retrying fetcher. Pacing is the caller's job:
    the market data client wraps each call in a scheduled task.
    """

    name = "coingecko"

    def __init__(self, fetcher: RetryingFetcher, *, base_url: str = COINGECKO_API):
        self._fetcher = fetcher
        self.base_url = base_url.rstrip("/")

    async def ready(self) -> bool:
        return True  # API key is optional for basic tier

    async def health_check(self) -> Dict[str, Any]:
        try:
            started = time.perf_counter()
            result = await self._fetcher.fetch(f"{self.base_url}/ping")
            latency_ms = int((time.perf_counter() - started) * 1000)
        except Exception as e:
            return {"status": "error", "reason": str(e)}

        if result.ok:
            return {"status": "healthy", "latency_ms": latency_ms}
        return {"status": "error", "reason": str(result.error)}

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        response = (await self._fetcher.fetch(url, params=params)).unwrap()
        try:
            return response.json()
        except ValueError as exc:
            raise InvalidResponseError(f"Non-JSON body from {path}: {exc}", url=url) from exc

    async def search_coins(self, query: str, *, limit: int = 10) -> List[Token]:
        if not query:
            return []

        payload = await self._get_json("/search", {"query": query})
        if not isinstance(payload, dict):
            raise InvalidResponseError("Search response is not an object", url=f"{self.base_url}/search")

        coins = payload.get("coins") or []
        tokens = [Token.from_payload(coin) for coin in coins if isinstance(coin, dict) and coin.get("id")]
        if limit and limit > 0:
            return tokens[:limit]
        return tokens

    async def get_simple_price(self, coin_id: str, vs_currency: str = "usd") -> Optional[MarketData]:
        """Get price, 24h change, volume and market cap for one coin.

        Returns ``None`` when upstream does not know the coin.
        """
        currency = normalize_currency(vs_currency)
        params = {
            "ids": coin_id,
            "vs_currencies": currency,
            "include_24hr_change": "true",
            "include_24hr_vol": "true",
            "include_market_cap": "true",
            "include_last_updated_at": "true",
        }
        data = await self._get_json("/simple/price", params)
        if not isinstance(data, dict):
            raise InvalidResponseError("Price response is not an object", url=f"{self.base_url}/simple/price")

        coin_data = data.get(coin_id)
        if not isinstance(coin_data, dict) or not coin_data:
            return None
        return MarketData.from_simple_price(coin_data)

    async def get_market_chart(
        self,
        coin_id: str,
        *,
        vs_currency: str = "usd",
        days: str = "1",
        interval: Optional[str] = None,
    ) -> HistorySeries:
        currency = normalize_currency(vs_currency)
        params: Dict[str, Any] = {
            "vs_currency": currency,
            "days": days,
        }
        if interval:
            params["interval"] = interval

        path = f"/coins/{coin_id}/market_chart"
        payload = await self._get_json(path, params)
        if not isinstance(payload, dict):
            raise InvalidResponseError("Market chart response is not an object", url=f"{self.base_url}{path}")
        return HistorySeries.from_market_chart(coin_id, days, currency, payload)

    async def list_coins(self) -> List[Dict[str, Any]]:
        payload = await self._get_json("/coins/list")
        if not isinstance(payload, list):
            raise InvalidResponseError("Coin list response is not an array", url=f"{self.base_url}/coins/list")
        return [entry for entry in payload if isinstance(entry, dict) and entry.get("id")]

    async def list_top_coins(self, vs_currency: str = "usd", *, per_page: int = 250) -> List[Dict[str, Any]]:
        """First page of ``/coins/markets`` ordered by market cap, largest first.

        ``/coins/list`` carries no rank, so this is the only source of ordering.
        """
        params = {
            "vs_currency": normalize_currency(vs_currency),
            "order": "market_cap_desc",
            "per_page": per_page,
            "page": 1,
        }
        payload = await self._get_json("/coins/markets", params)
        if not isinstance(payload, list):
            raise InvalidResponseError("Coin markets response is not an array", url=f"{self.base_url}/coins/markets")
        return [entry for entry in payload if isinstance(entry, dict) and entry.get("id")]

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..types.market import HistorySeries, MarketData, Token


class Provider(ABC):
    """Base provider interface"""

    name: str

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class MarketDataProvider(Provider):
    """Provider for prices, history and the token universe"""

    @abstractmethod
    async def search_coins(self, query: str, *, limit: int = 10) -> List[Token]:
        """Free-text token search"""
        pass

    @abstractmethod
    async def get_simple_price(self, coin_id: str, vs_currency: str = "usd") -> Optional[MarketData]:
        """Current price, 24h change, volume and market cap for one coin"""
        pass

    @abstractmethod
    async def get_market_chart(
        self,
        coin_id: str,
        *,
        vs_currency: str = "usd",
        days: str = "1",
        interval: Optional[str] = None,
    ) -> HistorySeries:
        """Historical price series for one coin"""
        pass

    @abstractmethod
    async def list_coins(self) -> List[Dict[str, Any]]:
        """Every known coin id, unordered"""
        pass

    @abstractmethod
    async def list_top_coins(self, vs_currency: str = "usd", *, per_page: int = 250) -> List[Dict[str, Any]]:
        """Largest coins by market cap, carrying ``market_cap_rank``"""
        pass

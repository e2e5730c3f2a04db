from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .market import HistorySeries, MarketData, Token


class TokenModel(BaseModel):
    id: str = Field(description="Upstream coin id")
    symbol: str = Field(description="Ticker symbol, upper-cased")
    name: str = Field(description="Display name")

    @classmethod
    def from_token(cls, token: Token) -> "TokenModel":
        return cls(id=token.id, symbol=token.symbol, name=token.name)


class MarketDataModel(BaseModel):
    price: Optional[float] = Field(default=None, description="Spot price in the requested currency")
    change_24h: Optional[float] = Field(default=None, description="24h price change in percent")
    volume_24h: Optional[float] = Field(default=None, description="24h traded volume")
    market_cap: Optional[float] = Field(default=None, description="Market capitalization")
    last_updated_at: Optional[datetime] = Field(default=None, description="Upstream update time")

    @classmethod
    def from_market_data(cls, data: MarketData, currency: str) -> "MarketDataModel":
        return cls(
            price=data.price_in(currency),
            change_24h=data.change_24h_in(currency),
            volume_24h=data.volume_24h_in(currency),
            market_cap=data.market_cap_in(currency),
            last_updated_at=data.last_updated_at,
        )


class CurrencyModel(BaseModel):
    code: str
    label: str
    symbol: str


class PricesResponse(BaseModel):
    currency: str
    data: Dict[str, MarketDataModel] = Field(default_factory=dict)
    missing: List[str] = Field(default_factory=list, description="Coins with no data available right now")


class HistorySeriesModel(BaseModel):
    coin_id: str
    available: bool = Field(description="False when the history could not be fetched")
    points: List[List[float]] = Field(default_factory=list, description="[timestamp_ms, price] pairs")

    @classmethod
    def from_series(cls, coin_id: str, series: Optional[HistorySeries]) -> "HistorySeriesModel":
        if series is None:
            return cls(coin_id=coin_id, available=False)
        return cls(
            coin_id=coin_id,
            available=True,
            points=[[point.timestamp_ms, point.price] for point in series.points],
        )


class HistoryResponse(BaseModel):
    window: str
    days: str
    interval: str
    currency: str
    series: List[HistorySeriesModel]


class CorrelationsResponse(BaseModel):
    main: str
    window: str
    currency: str
    correlations: Dict[str, float]


class TokenSnapshotModel(BaseModel):
    token: TokenModel
    currency: str
    market_data: Optional[MarketDataModel] = None
    last_updated: Optional[datetime] = None


class SimilarTokenModel(BaseModel):
    token: TokenModel
    score: float
    market_data: MarketDataModel


class CorrelatedTokenModel(BaseModel):
    coin_id: str
    correlation: float

"""
Market Data Models

Domain entities shared by the provider, the market data client and the
token directory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..core.errors import InvalidWindowError


@dataclass(frozen=True)
class CurrencyOption:
    code: str
    label: str
    symbol: str


SUPPORTED_CURRENCIES: Tuple[CurrencyOption, ...] = (
    CurrencyOption(code="usd", label="USD ($)", symbol="$"),
    CurrencyOption(code="eur", label="EUR (€)", symbol="€"),
    CurrencyOption(code="gbp", label="GBP (£)", symbol="£"),
    CurrencyOption(code="jpy", label="JPY (¥)", symbol="¥"),
    CurrencyOption(code="aud", label="AUD ($)", symbol="A$"),
    CurrencyOption(code="cad", label="CAD ($)", symbol="C$"),
)

_CURRENCY_BY_CODE = {option.code: option for option in SUPPORTED_CURRENCIES}


def normalize_currency(currency: Optional[str], default: str = "usd") -> str:
    """Lowercase a currency code. Unknown codes are passed through untouched."""
    cleaned = (currency or "").strip().lower()
    return cleaned or default


def currency_symbol(currency: str) -> str:
    option = _CURRENCY_BY_CODE.get(normalize_currency(currency))
    if option:
        return option.symbol
    return currency.upper()


@dataclass(frozen=True)
class WindowSetting:
    key: str
    days: str
    interval: str


_WINDOW_SETTINGS: Dict[str, WindowSetting] = {
    "24h": WindowSetting(key="24h", days="1", interval="minute"),
    "7d": WindowSetting(key="7d", days="7", interval="hour"),
    "30d": WindowSetting(key="30d", days="30", interval="day"),
}

# Day-count strings used by older dashboard builds
_WINDOW_ALIASES = {setting.days: setting for setting in _WINDOW_SETTINGS.values()}


def resolve_window(window: str) -> WindowSetting:
    normalized = (window or "").strip().lower()
    setting = _WINDOW_SETTINGS.get(normalized) or _WINDOW_ALIASES.get(normalized)
    if setting is None:
        raise InvalidWindowError(window)
    return setting


def title_from_id(token_id: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in token_id.split("-"))


@dataclass(frozen=True)
class Token:
    id: str
    symbol: str
    name: str

    @classmethod
    def from_id(cls, token_id: str) -> "Token":
        return cls(id=token_id, symbol=token_id.upper(), name=title_from_id(token_id))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Token":
        token_id = str(payload.get("id") or "")
        fallback = cls.from_id(token_id)
        symbol = str(payload.get("symbol") or "").upper() or fallback.symbol
        name = str(payload.get("name") or "") or fallback.name
        return cls(id=token_id, symbol=symbol, name=name)

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "symbol": self.symbol, "name": self.name}


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


@dataclass(frozen=True)
class MarketData:
    """Price/volume/market-cap snapshot keyed by lowercase currency code."""

    price: Mapping[str, float] = field(default_factory=dict)
    change_24h: Mapping[str, float] = field(default_factory=dict)
    volume_24h: Mapping[str, float] = field(default_factory=dict)
    market_cap: Mapping[str, float] = field(default_factory=dict)
    last_updated_at: Optional[datetime] = None

    def price_in(self, currency: str) -> Optional[float]:
        return self.price.get(normalize_currency(currency))

    def change_24h_in(self, currency: str) -> Optional[float]:
        return self.change_24h.get(normalize_currency(currency))

    def volume_24h_in(self, currency: str) -> Optional[float]:
        return self.volume_24h.get(normalize_currency(currency))

    def market_cap_in(self, currency: str) -> Optional[float]:
        return self.market_cap.get(normalize_currency(currency))

    @property
    def currencies(self) -> List[str]:
        return sorted(self.price)

    @classmethod
    def from_simple_price(cls, payload: Mapping[str, Any]) -> "MarketData":
        """Parse one coin entry of a ``/simple/price`` response.

        Upstream flattens every currency into suffixed keys
        (``usd``, ``usd_24h_change``, ``usd_24h_vol``, ``usd_market_cap``).
        """
        price: Dict[str, float] = {}
        change: Dict[str, float] = {}
        volume: Dict[str, float] = {}
        market_cap: Dict[str, float] = {}

        for key, raw in payload.items():
            value = _as_float(raw)
            if value is None or key == "last_updated_at":
                continue
            if key.endswith("_24h_change"):
                change[key[: -len("_24h_change")]] = value
            elif key.endswith("_24h_vol"):
                volume[key[: -len("_24h_vol")]] = value
            elif key.endswith("_market_cap"):
                market_cap[key[: -len("_market_cap")]] = value
            elif "_" not in key:
                price[key] = value

        updated_raw = _as_float(payload.get("last_updated_at"))
        last_updated_at = (
            datetime.fromtimestamp(updated_raw, tz=timezone.utc) if updated_raw is not None else None
        )
        return cls(
            price=price,
            change_24h=change,
            volume_24h=volume,
            market_cap=market_cap,
            last_updated_at=last_updated_at,
        )


@dataclass(frozen=True)
class PricePoint:
    timestamp_ms: int
    price: float


@dataclass(frozen=True)
class HistorySeries:
    coin_id: str
    days: str
    currency: str
    points: Tuple[PricePoint, ...] = ()

    @property
    def prices(self) -> List[float]:
        return [point.price for point in self.points]

    @classmethod
    def from_market_chart(
        cls,
        coin_id: str,
        days: str,
        currency: str,
        payload: Mapping[str, Any],
    ) -> "HistorySeries":
        points: List[PricePoint] = []
        for entry in payload.get("prices") or []:
            if not isinstance(entry, (list, tuple)) or len(entry) < 2:
                continue
            timestamp, value = entry[0], entry[1]
            try:
                ts = int(timestamp)
                val = float(value)
            except (TypeError, ValueError):
                continue
            points.append(PricePoint(timestamp_ms=ts, price=val))
        points.sort(key=lambda point: point.timestamp_ms)
        return cls(coin_id=coin_id, days=days, currency=currency, points=tuple(points))


@dataclass(slots=True)
class TokenSnapshot:
    token: Token
    market_data: Optional[MarketData] = None
    last_updated: Optional[datetime] = None

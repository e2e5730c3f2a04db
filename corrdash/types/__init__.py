from .market import (
    SUPPORTED_CURRENCIES,
    CurrencyOption,
    HistorySeries,
    MarketData,
    PricePoint,
    Token,
    TokenSnapshot,
    WindowSetting,
    currency_symbol,
    normalize_currency,
    resolve_window,
)

__all__ = [
    "SUPPORTED_CURRENCIES",
    "CurrencyOption",
    "HistorySeries",
    "MarketData",
    "PricePoint",
    "Token",
    "TokenSnapshot",
    "WindowSetting",
    "currency_symbol",
    "normalize_currency",
    "resolve_window",
]

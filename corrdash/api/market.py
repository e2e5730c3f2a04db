"""
Market API Endpoints

Prices, price history, search and group correlations for the dashboard.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.errors import MarketDataError
from ..services.bundle import MarketDataServices
from ..services.correlation import correlate_group
from ..types.market import SUPPORTED_CURRENCIES, normalize_currency, resolve_window
from ..types.responses import (
    CorrelationsResponse,
    CurrencyModel,
    HistoryResponse,
    HistorySeriesModel,
    MarketDataModel,
    PricesResponse,
    TokenModel,
)
from .deps import get_services, parse_coins, to_http_error

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/market")


@router.get("/currencies", response_model=List[CurrencyModel])
async def list_currencies():
    """Display currencies offered by the currency selector."""
    return [CurrencyModel(code=c.code, label=c.label, symbol=c.symbol) for c in SUPPORTED_CURRENCIES]


@router.get("/prices", response_model=PricesResponse)
async def get_prices(
    coins: str = Query(..., description="Comma-separated coin ids"),
    currency: str = "usd",
    services: MarketDataServices = Depends(get_services),
):
    coin_ids = parse_coins(coins)
    if not coin_ids:
        raise HTTPException(status_code=400, detail="At least one coin id is required")

    vs = normalize_currency(currency)
    data = await services.market_data.get_current_snapshots(coin_ids, vs)
    return PricesResponse(
        currency=vs,
        data={coin_id: MarketDataModel.from_market_data(item, vs) for coin_id, item in data.items()},
        missing=[coin_id for coin_id in coin_ids if coin_id not in data],
    )


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    coins: str = Query(..., description="Comma-separated coin ids"),
    window: str = "24h",
    currency: str = "usd",
    services: MarketDataServices = Depends(get_services),
):
    coin_ids = parse_coins(coins)
    if not coin_ids:
        raise HTTPException(status_code=400, detail="At least one coin id is required")

    vs = normalize_currency(currency)
    try:
        setting = resolve_window(window)
        histories = await services.market_data.get_history(coin_ids, window, vs)
    except MarketDataError as exc:
        raise to_http_error(exc)

    return HistoryResponse(
        window=setting.key,
        days=setting.days,
        interval=setting.interval,
        currency=vs,
        series=[HistorySeriesModel.from_series(coin_id, series) for coin_id, series in zip(coin_ids, histories)],
    )


@router.get("/search", response_model=List[TokenModel])
async def search_tokens(
    q: str = "",
    services: MarketDataServices = Depends(get_services),
):
    try:
        tokens = await services.market_data.search(q)
    except MarketDataError as exc:
        logger.warning("Token search failed for %r: %s", q, exc)
        raise to_http_error(exc)
    return [TokenModel.from_token(token) for token in tokens]


@router.get("/correlations", response_model=CorrelationsResponse)
async def get_correlations(
    coins: str = Query(..., description="Main coin first, then the coins to compare"),
    window: str = "24h",
    currency: str = "usd",
    services: MarketDataServices = Depends(get_services),
):
    coin_ids = parse_coins(coins)
    if len(coin_ids) < 2:
        raise HTTPException(status_code=400, detail="Provide a main coin and at least one other coin")

    vs = normalize_currency(currency)
    try:
        setting = resolve_window(window)
        correlations = await correlate_group(services.market_data, coin_ids, window, vs)
    except MarketDataError as exc:
        raise to_http_error(exc)

    return CorrelationsResponse(
        main=coin_ids[0],
        window=setting.key,
        currency=vs,
        correlations=correlations,
    )

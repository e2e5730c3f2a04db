"""
Token Directory API Endpoints

Popular tokens, fuzzy search, similarity and correlation lookups backed by
the background token directory.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.errors import MarketDataError
from ..services.bundle import MarketDataServices
from ..services.correlation import find_correlated_tokens
from ..types.market import TokenSnapshot
from ..types.responses import (
    CorrelatedTokenModel,
    MarketDataModel,
    SimilarTokenModel,
    TokenModel,
    TokenSnapshotModel,
)
from .deps import get_services, parse_coins, to_http_error

router = APIRouter(prefix="/tokens")

DEFAULT_CORRELATION_CANDIDATES = 20


def _snapshot_model(entry: TokenSnapshot, currency: str) -> TokenSnapshotModel:
    return TokenSnapshotModel(
        token=TokenModel.from_token(entry.token),
        currency=currency,
        market_data=(
            MarketDataModel.from_market_data(entry.market_data, currency)
            if entry.market_data is not None
            else None
        ),
        last_updated=entry.last_updated,
    )


def _by_market_cap(entries: List[TokenSnapshot], currency: str) -> List[TokenSnapshot]:
    return sorted(
        entries,
        key=lambda entry: (entry.market_data.market_cap_in(currency) or 0.0) if entry.market_data else 0.0,
        reverse=True,
    )


@router.get("/popular", response_model=List[TokenSnapshotModel])
async def popular_tokens(
    limit: int = Query(default=50, ge=1, le=500),
    services: MarketDataServices = Depends(get_services),
):
    directory = services.directory
    ranked = _by_market_cap(directory.popular_tokens(), directory.currency)
    return [_snapshot_model(entry, directory.currency) for entry in ranked[:limit]]


@router.get("/search", response_model=List[TokenModel])
async def search_directory(
    q: str = "",
    services: MarketDataServices = Depends(get_services),
):
    tokens = await services.directory.search(q)
    return [TokenModel.from_token(token) for token in tokens]


@router.get("/{token_id}", response_model=TokenSnapshotModel)
async def get_token(
    token_id: str,
    services: MarketDataServices = Depends(get_services),
):
    entry = await services.directory.get_token(token_id.lower())
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Token '{token_id}' not found")
    return _snapshot_model(entry, services.directory.currency)


@router.get("/{token_id}/similar", response_model=List[SimilarTokenModel])
async def similar_tokens(
    token_id: str,
    limit: int = Query(default=5, ge=1, le=50),
    services: MarketDataServices = Depends(get_services),
):
    directory = services.directory
    ranked = directory.rank_similar(token_id.lower(), limit)
    return [
        SimilarTokenModel(
            token=TokenModel.from_token(item.token),
            score=item.score,
            market_data=MarketDataModel.from_market_data(item.market_data, directory.currency),
        )
        for item in ranked
    ]


@router.get("/{token_id}/correlated", response_model=List[CorrelatedTokenModel])
async def correlated_tokens(
    token_id: str,
    window: str = "30d",
    limit: int = Query(default=5, ge=1, le=50),
    candidates: Optional[str] = Query(default=None, description="Comma-separated coin ids to compare"),
    services: MarketDataServices = Depends(get_services),
):
    directory = services.directory
    main = token_id.lower()
    pool = parse_coins(candidates)
    if not pool:
        ranked = _by_market_cap(directory.popular_tokens(), directory.currency)
        pool = [entry.token.id for entry in ranked if entry.token.id != main][:DEFAULT_CORRELATION_CANDIDATES]

    try:
        results = await find_correlated_tokens(
            services.market_data,
            main,
            pool,
            window=window,
            currency=directory.currency,
            limit=limit,
        )
    except MarketDataError as exc:
        raise to_http_error(exc)

    return [CorrelatedTokenModel(coin_id=item.coin_id, correlation=item.correlation) for item in results]

from typing import List, Optional

from fastapi import HTTPException, Request

from ..core.errors import InvalidWindowError, MarketDataError, RateLimitExceededError
from ..services.bundle import MarketDataServices


def get_services(request: Request) -> MarketDataServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Market data services not started")
    return services


def parse_coins(raw: Optional[str]) -> List[str]:
    coins = [part.strip().lower() for part in (raw or "").split(",")]
    return [coin for coin in coins if coin]


def to_http_error(exc: MarketDataError) -> HTTPException:
    if isinstance(exc, InvalidWindowError):
        return HTTPException(status_code=400, detail=exc.message)
    if isinstance(exc, RateLimitExceededError):
        return HTTPException(status_code=429, detail=exc.message)
    return HTTPException(status_code=502, detail=exc.message)

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..services.bundle import MarketDataServices
from .deps import get_services

router = APIRouter()


@router.get("/healthz")
async def health_check(
    probe: bool = False,
    services: MarketDataServices = Depends(get_services),
) -> Dict[str, Any]:
    """Health check with scheduler and directory status.

    ``probe=true`` also pings the upstream through the request queue.
    """
    status = services.status()

    provider_status: Dict[str, Any] = {"status": "unchecked"}
    if probe:
        provider_status = await services.scheduler.enqueue(services.provider.health_check)

    directory = status["directory"]
    degraded = (
        provider_status.get("status") == "error"
        or directory["using_fallback_list"]
        or (directory["running"] is False and directory["entries"] == 0)
    )

    return {
        "status": "degraded" if degraded else "healthy",
        "providers": {services.provider.name: provider_status},
        **status,
    }

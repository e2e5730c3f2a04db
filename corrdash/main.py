from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import health, market, tokens
from .config import settings
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware
from .services.bundle import MarketDataServices, build_services


def create_app(
    services: Optional[MarketDataServices] = None,
    *,
    start_directory: Optional[bool] = None,
) -> FastAPI:
    """Build the dashboard API.

    When ``services`` is given the caller owns it; otherwise a bundle is built
    from settings on startup and closed on shutdown.
    """
    run_directory = settings.directory_enabled if start_directory is None else start_directory

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        bundle = services or build_services(settings)
        app.state.services = bundle
        if run_directory:
            await bundle.directory.start()
        try:
            yield
        finally:
            if services is None:
                await bundle.aclose()
            else:
                await bundle.directory.stop()
            app.state.services = None

    app = FastAPI(
        title="Correlation Dashboard API",
        description="Rate-limited market data feed for the crypto correlation dashboard",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(market.router, tags=["Market"])
    app.include_router(tokens.router, tags=["Tokens"])

    @app.get("/")
    async def root():
        """Root endpoint with basic info"""
        return {
            "name": "Correlation Dashboard API",
            "version": "0.1.0",
            "docs": "/docs",
            "health": "/healthz",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "corrdash.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )

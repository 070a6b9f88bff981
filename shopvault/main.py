"""
ShopVault — FastAPI entrypoint

Serve with an ASGI server in factory mode, e.g.

    uvicorn --factory shopvault.main:build

``build`` configures logging from settings; ``create_app`` leaves logging
alone and accepts a ready container (tests).
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from shopvault.api import health, inventory, orders, products, stock, users
from shopvault.api.deps import register_error_handlers
from shopvault.core.config import get_settings
from shopvault.core.logging import configure_logging
from shopvault.db.container import ShopVault


def create_app(vault: ShopVault | None = None) -> FastAPI:
    """
    Build the application. Passing ``vault`` lets the caller own the
    container (tests); otherwise one is built from settings on startup
    and closed on shutdown.
    """
    settings = vault.settings if vault is not None else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = vault is None
        app.state.vault = ShopVault.from_settings(settings) if owned else vault
        await app.state.vault.init_db()
        yield
        if owned:
            await app.state.vault.close()

    app = FastAPI(
        title="ShopVault",
        description="Inventory ledger and order lifecycle with atomic stock reservation.",
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url=None,
    )
    if vault is not None:
        app.state.vault = vault

    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True,
                       allow_methods=["*"], allow_headers=["*"])

    if settings.METRICS_ENABLED:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics")

    register_error_handlers(app)
    app.include_router(products.router)
    app.include_router(stock.router)
    app.include_router(orders.router)
    app.include_router(users.router)
    app.include_router(inventory.router)
    app.include_router(health.router)

    @app.get("/")
    async def root():
        return {"service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}

    return app


def build() -> FastAPI:
    """ASGI application factory with logging configured from settings."""
    configure_logging(get_settings().LOG_LEVEL)
    return create_app()

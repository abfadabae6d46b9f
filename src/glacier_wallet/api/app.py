"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest
from starlette.responses import Response

from glacier_wallet import __version__
from glacier_wallet.api.routes import router
from glacier_wallet.chain.mempool.client import MempoolClient
from glacier_wallet.config.settings import AppConfig
from glacier_wallet.errors.glacier_errors import GlacierError
from glacier_wallet.glacier.account import GlacierAccount
from glacier_wallet.glacier.service import GlacierService
from glacier_wallet.metrics.collector import GlacierMetrics

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


def _load_account(config: AppConfig) -> GlacierAccount:
    return GlacierAccount.from_mnemonic(
        config.mnemonic, config.network_params, passphrase=config.passphrase
    )


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle hooks.

    Opens the chain-data client and derives the account on startup. A
    missing or invalid mnemonic does not stop the server; requests report
    it instead.
    """
    config: AppConfig = app.state.config
    chain: MempoolClient | None = app.state.chain
    owns_chain = chain is None
    if chain is None:
        chain = MempoolClient(config.explorer_url, timeout=config.chain.timeout)
        await chain.connect()

    try:
        try:
            account = _load_account(config)
        except GlacierError as exc:
            logger.error("Wallet account unavailable: %s", exc.message)
            app.state.account_error = exc
        else:
            app.state.service = GlacierService.from_config(
                config, account, chain, metrics=app.state.metrics
            )
            logger.info(
                "Glacier wallet ready on %s (chain data: %s)",
                config.network,
                config.explorer_url,
            )
        yield
    finally:
        if owns_chain:
            await chain.close()
        logger.info("Glacier wallet shut down")


def create_app(
    *, config: AppConfig | None = None, chain: MempoolClient | None = None
) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        config: Optional AppConfig. If *None*, a default config is created
            from environment variables.
        chain: Optional pre-built chain client. When given, the app uses it
            as is and leaves closing it to the caller.
    """
    if config is None:
        config = AppConfig()

    app = FastAPI(
        title="glacier-wallet",
        version=__version__,
        description="Bitcoin CLTV time-lock wallet",
        lifespan=_lifespan,
    )

    app.state.config = config
    app.state.chain = chain
    app.state.service = None
    app.state.account_error = None
    app.state.metrics = GlacierMetrics() if config.metrics.enabled else None

    # -- Error handler --
    @app.exception_handler(GlacierError)
    async def _glacier_error_handler(request: Request, exc: GlacierError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "message": exc.message},
        )

    # -- Base routes --
    @app.get("/health", tags=["base"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/metrics", tags=["base"], include_in_schema=False)
    async def metrics_endpoint() -> Response:
        """Prometheus metrics endpoint."""
        metrics = app.state.metrics
        body = generate_latest(metrics.registry) if metrics else b""
        return Response(
            content=body,
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    app.include_router(router)

    return app

"""FastAPI dependency injection helpers."""

from __future__ import annotations

from fastapi import Request

from glacier_wallet.config.settings import AppConfig  # noqa: TC001
from glacier_wallet.errors.definitions import ErrMissingMnemonic
from glacier_wallet.glacier.service import GlacierService  # noqa: TC001


def get_config(request: Request) -> AppConfig:
    """Retrieve the config stored on ``app.state`` by the app factory."""
    return request.app.state.config


def get_service(request: Request) -> GlacierService:
    """Retrieve the lock service built during lifespan startup.

    Raises:
        GlacierError: The account error recorded at startup, or
            ``ErrMissingMnemonic`` if no account was configured.
    """
    service: GlacierService | None = getattr(request.app.state, "service", None)
    if service is None:
        raise getattr(request.app.state, "account_error", None) or ErrMissingMnemonic
    return service

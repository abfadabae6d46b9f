"""Application entry point for the Glacier wallet server."""

from __future__ import annotations

import os

import uvicorn

from glacier_wallet.config.settings import AppConfig


def main() -> None:
    """Start the Glacier wallet server."""
    config = AppConfig()
    reload = os.getenv("GLACIER_RELOAD", "false").lower() in ("1", "true", "yes")
    uvicorn.run(
        "glacier_wallet.api.app:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        reload=reload,
        log_level="debug" if config.debug else "info",
    )


if __name__ == "__main__":
    main()

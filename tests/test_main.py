"""Tests for glacier_wallet.main entry point."""

from __future__ import annotations

from unittest.mock import patch

import pytest


def test_main_calls_uvicorn_run(monkeypatch: pytest.MonkeyPatch) -> None:
    """Verify that main() delegates to uvicorn.run with expected args."""
    monkeypatch.delenv("GLACIER_RELOAD", raising=False)
    monkeypatch.delenv("GLACIER_SERVER__PORT", raising=False)
    monkeypatch.setenv("GLACIER_DEBUG", "false")
    with patch("glacier_wallet.main.uvicorn.run") as mock_run:
        from glacier_wallet.main import main

        main()
        mock_run.assert_called_once()
        call_kwargs = mock_run.call_args
        assert call_kwargs[0][0] == "glacier_wallet.api.app:create_app"
        assert call_kwargs[1]["factory"] is True
        assert call_kwargs[1]["port"] == 3000
        assert call_kwargs[1]["reload"] is False
        assert call_kwargs[1]["log_level"] == "info"


def test_debug_raises_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GLACIER_DEBUG", "true")
    monkeypatch.setenv("GLACIER_RELOAD", "yes")
    with patch("glacier_wallet.main.uvicorn.run") as mock_run:
        from glacier_wallet.main import main

        main()
        assert mock_run.call_args[1]["log_level"] == "debug"
        assert mock_run.call_args[1]["reload"] is True

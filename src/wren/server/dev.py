"""Serve a wren App with pounce.

pounce's ``run()`` takes an import string (e.g., ``"myapp:app"``), but
wren has a live ``App`` object, so ``pounce.Server`` is used directly
with the ASGI callable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wren.app import App


def run_server(
    app: App,
    host: str,
    port: int,
    *,
    reload: bool = False,
    workers: int = 1,
) -> None:
    """Start a pounce server for *app*.

    Args:
        app: ASGI callable (wren App instance).
        host: Bind host address.
        port: Bind port number.
        reload: Enable auto-reload on file changes (development mode).
        workers: Worker count. Reload requires a single worker.
    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    config = ServerConfig(
        host=host,
        port=port,
        workers=1 if reload else workers,
        reload=reload,
        # The app answers its own health checks (see HealthCheck)
        health_check_path=None,
    )
    server = Server(config, app)
    server.run()

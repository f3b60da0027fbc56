"""Clubsync receiver runtime entrypoint.

This module provides the ASGI application factory used by Granian. It
delegates to :func:`clubsync.api.app.create_app` for application
construction while keeping the ``clubsync.runtime:create_app`` Granian
entrypoint stable.

Configuration is driven by environment variables:

- ``CLUBSYNC_HOST``: Bind address (default ``0.0.0.0``)
- ``CLUBSYNC_RECEIVER_PORT``: Listen port (default ``8080``)
- ``CLUBSYNC_LOG_LEVEL``: Log level (default ``INFO``)
- ``CLUBSYNC_WEBHOOK_API_KEY`` / ``CLUBSYNC_WEBHOOK_HMAC_SECRET``: Enable
  API key and signature checks when set
- ``CLUBSYNC_RECEIVER_WORKERS`` / ``CLUBSYNC_RECEIVER_BACKPRESSURE``: Worker
  processes and per-worker concurrent request bound

Run the service directly with ``python -m clubsync.runtime``.
"""

from __future__ import annotations

import dataclasses as dc
import os
import typing as typ

from clubsync.api.config import DEFAULT_PORT, ReceiverConfig
from clubsync.logging import configure_logging_from_env, get_logger, log_error, log_info

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "load_receiver_config", "main"]

logger = get_logger(__name__)

# TCP port number range limits
_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid CLUBSYNC_RECEIVER_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def load_receiver_config() -> ReceiverConfig:
    """Return the receiver configuration including the validated port."""
    port = _parse_port(os.environ.get("CLUBSYNC_RECEIVER_PORT", str(DEFAULT_PORT)))
    return dc.replace(ReceiverConfig.from_env(), port=port)


def create_app() -> falcon.asgi.App:
    """Create the receiver application from environment configuration.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    from clubsync.api.app import ReceiverDependencies
    from clubsync.api.app import create_app as _create_api_app

    return _create_api_app(ReceiverDependencies(config=load_receiver_config()))


def main() -> None:
    """Start the receiver using Granian.

    Reads ``CLUBSYNC_HOST``, ``CLUBSYNC_RECEIVER_PORT`` and
    ``CLUBSYNC_LOG_LEVEL`` from the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("CLUBSYNC_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    normalized_level = configure_logging_from_env()

    config = load_receiver_config()
    log_info(
        logger,
        "Starting clubsync receiver on %s:%d (workers=%d, backpressure=%d, log_level=%s)",
        host,
        config.port,
        config.workers,
        config.backpressure,
        normalized_level,
    )

    server = Granian(
        "clubsync.runtime:create_app",
        address=host,
        port=config.port,
        interface=Interfaces.ASGI,
        factory=True,
        workers=config.workers,
        backpressure=config.backpressure,
    )
    server.serve()


if __name__ == "__main__":
    main()

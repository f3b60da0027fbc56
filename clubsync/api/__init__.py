"""Clubsync inbound webhook receiver.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application that accepts change events pushed by a producer,
authenticates them, suppresses replays, and forwards them to a listener.

Usage
-----
Create and run the application::

    from clubsync.api import create_app

    app = create_app()              # logging listener, no authentication
    app = create_app(dependencies)  # configured listener and secrets

Public API
----------
create_app
    Application factory registering ``/webhook``, ``/webhook/retry``,
    ``/health`` and ``/metrics``.
"""

from clubsync.api.app import ReceiverDependencies, create_app
from clubsync.api.config import ReceiverConfig
from clubsync.api.listener import WebhookListener

__all__ = ["ReceiverConfig", "ReceiverDependencies", "WebhookListener", "create_app"]

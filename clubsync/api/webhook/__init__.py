"""Webhook intake resources.

Usage
-----
Import the resource for route registration::

    from clubsync.api.webhook.resources import WebhookResource
"""

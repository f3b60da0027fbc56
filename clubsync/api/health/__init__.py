"""Health and metrics resources for the webhook receiver.

Usage
-----
Import the resources for route registration::

    from clubsync.api.health.resources import HealthResource, MetricsResource
"""

"""Route modules exposed by the API package."""

from . import metrics, ping, service_requests, tickets

__all__ = ["metrics", "ping", "service_requests", "tickets"]

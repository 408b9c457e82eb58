"""Async platform API client with server-sent event streaming, retry policies, HAR rotation and preauth cookie storage."""

__version__ = "0.1.0"
__all__ = [
    "api",
    "endpoints",
    "errors",
    "eventsource",
    "har",
    "preauth",
    "resources",
    "retry",
    "util",
]
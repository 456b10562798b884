"""Observability package.

Structured logging, request-scoped context, in-process metrics and the ASGI
middleware that ties them together for the HTTP service.
"""

__all__ = [
    "middleware",
    "metrics",
    "logger",
    "context",
]

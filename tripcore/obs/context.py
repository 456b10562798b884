"""Request context helpers using ContextVars."""

from contextvars import ContextVar
from typing import Optional


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
operation_var: ContextVar[Optional[str]] = ContextVar("operation", default=None)


def clear_context() -> None:
    """Reset context variables to defaults."""
    request_id_var.set(None)
    operation_var.set(None)

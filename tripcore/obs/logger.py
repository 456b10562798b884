"""Structured JSON logging to stdout.

One JSON object per line so stdout collectors can index by event name.
"""

from typing import Any, Dict
from datetime import date, datetime, timezone
import json

from tripcore.obs.context import request_id_var, operation_var


def _default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def log_event(event: str, **fields: Any) -> None:
    payload: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "level": fields.pop("level", "INFO"),
        "event": event,
        "request_id": request_id_var.get(),
    }
    operation = operation_var.get()
    if operation and "operation" not in fields:
        payload["operation"] = operation
    payload.update(fields)

    try:
        print(json.dumps(payload, separators=(",", ":"), default=_default))
    except (TypeError, ValueError):
        # Unserialisable payloads must not break request handling
        print(json.dumps({"ts": payload["ts"], "level": "ERROR", "event": "log_encoding_failed",
                          "original_event": event}))

"""Structured logging helper.

Log lines are single JSON objects so the broker-side log collector can index
incident and org ids without parsing free text.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from nics_api.core.request_context import get_remote_user, get_request_id


def _jsonable(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return str(value)


def log_json(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """Emit one JSON log line tagged with the request ID and requesting user."""

    payload: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "event": event,
    }
    request_id = get_request_id()
    if request_id:
        payload["request_id"] = request_id
    remote_user = get_remote_user()
    if remote_user:
        payload["remote_user"] = remote_user

    payload.update(fields)
    logger.log(level, json.dumps(payload, default=_jsonable))

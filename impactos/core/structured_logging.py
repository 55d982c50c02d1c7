"""Small structured logging helper.

Every line is a JSON object so it can be shipped to any log collector. The
request correlation ID and the acting user/organization are attached
automatically when known.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from impactos.core.request_context import get_actor, get_request_id


def log_json(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """Emit a single JSON log line for ``event``."""

    payload: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "event": event,
    }
    request_id = get_request_id()
    if request_id:
        payload["request_id"] = request_id

    user_id, organization_id = get_actor()
    if user_id is not None:
        payload.setdefault("actor_user_id", str(user_id))
    if organization_id is not None:
        payload.setdefault("actor_organization_id", str(organization_id))

    payload.update(fields)
    logger.log(level, json.dumps(payload, default=str))

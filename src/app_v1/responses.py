"""
JSON response helper.
"""
import json
import logging
from typing import Any, Optional

from fastapi.responses import Response, PlainTextResponse

_logger = logging.getLogger(__name__)


def json_response(status_code: int, payload: Any, logger: Optional[logging.Logger] = None) -> Response:
    """
    Encode payload as a JSON response body.

    The body is compact JSON terminated by a newline. If the payload cannot be
    encoded, a plain-text 500 carrying the encoder's error message is returned
    instead; this never raises. Encoding failures go to logger when given.
    """
    try:
        body = json.dumps(
            payload,
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
        ) + "\n"
    except (TypeError, ValueError) as e:
        (logger or _logger).error(f"Failed to encode JSON response: {e}")
        return PlainTextResponse(
            content=str(e),
            status_code=500,
            headers={"X-Content-Type-Options": "nosniff"}
        )

    return Response(
        content=body,
        status_code=status_code,
        media_type="application/json"
    )

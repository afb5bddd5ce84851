"""Response helpers and error codes for the dashboard API.

Routes return data through wrap_response() and signal failures with
raise_api_error(); the exception handlers in app.py render both into the
standard envelopes.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException

from versus.api.models import MetaModel

API_VERSION = "1.0"

# Error codes returned in ErrorEnvelope.error.code
VALIDATION_ERROR = "VALIDATION_ERROR"  # Invalid filter or query parameter (422)
NOT_FOUND = "NOT_FOUND"  # Unknown route or id (404)
ADMIN_MODE_REQUIRED = "ADMIN_MODE_REQUIRED"  # Ignore controls outside admin mode (403)
RESULTS_UNAVAILABLE = "RESULTS_UNAVAILABLE"  # Results file could not be read (503)
INTERNAL_ERROR = "INTERNAL_ERROR"  # Anything unexpected (500)


ERROR_STATUS_CODES: Dict[str, int] = {
    VALIDATION_ERROR: 422,
    NOT_FOUND: 404,
    ADMIN_MODE_REQUIRED: 403,
    RESULTS_UNAVAILABLE: 503,
    INTERNAL_ERROR: 500,
}


def wrap_response(data: Any, total: Optional[int] = None) -> Dict[str, Any]:
    """Wrap data in the standard response envelope.

    Example:
        >>> wrap_response([{"commentId": "abc"}], total=120)
        {"data": [...], "meta": {"timestamp": "...", "version": "1.0", "total": 120}}
    """
    meta = MetaModel(
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=API_VERSION,
        total=total
    )

    return {
        "data": data,
        "meta": meta.model_dump(exclude_none=True)
    }


def raise_api_error(code: str, message: str, status_code: Optional[int] = None) -> None:
    """Raise an HTTPException carrying an error code for the envelope handler.

    Raises:
        HTTPException: With ``status_code`` (default: the code's mapped status)
    """
    if status_code is None:
        status_code = ERROR_STATUS_CODES.get(code, 500)

    raise HTTPException(
        status_code=status_code,
        detail={"code": code, "message": message}
    )

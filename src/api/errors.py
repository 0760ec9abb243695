"""API error handling and response helpers."""

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.services.errors import (
    BillingError,
    BillingValidationError,
    InconsistentStateError,
    NotFoundError,
    ProtectedTransactionError,
    StaleWriteError,
    StoreError,
)

logger = logging.getLogger(__name__)

# Most specific first: StaleWriteError is a StoreError
_STATUS_BY_ERROR: list[tuple[type[BillingError], int, str]] = [
    (BillingValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY, "validation_error"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "not_found"),
    (ProtectedTransactionError, status.HTTP_409_CONFLICT, "protected_transaction"),
    (StaleWriteError, status.HTTP_409_CONFLICT, "stale_write"),
    (InconsistentStateError, status.HTTP_409_CONFLICT, "inconsistent_state"),
    (StoreError, status.HTTP_503_SERVICE_UNAVAILABLE, "store_unavailable"),
]


def classify_error(error: BillingError) -> tuple[int, str]:
    """HTTP status and error code for a billing error."""
    for error_type, http_status, code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return http_status, code
    return status.HTTP_400_BAD_REQUEST, "billing_error"


def error_response(code: str, message: str, retryable: bool = False) -> Dict[str, Any]:
    """Create a standardized error response."""
    return {
        "error": {
            "code": code,
            "message": message,
            "retryable": retryable,
        }
    }


async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    http_status, code = classify_error(exc)
    if http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, code, exc)
    return JSONResponse(
        status_code=http_status,
        content=error_response(code, str(exc), retryable=isinstance(exc, StoreError)),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BillingError, billing_error_handler)


__all__ = ["classify_error", "error_response", "register_error_handlers"]

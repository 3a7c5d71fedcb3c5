"""
api/responses.py -- Map auth Outcomes onto HTTP responses.

The auth flows return transport-free Outcome values. This module is the one
place that decides which status code each ErrorCode becomes, so route
handlers stay a straight line: call the flow, return outcome_response().
"""

from __future__ import annotations

from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse
from auth.errors import ErrorCode, Outcome

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.INVALID_CREDENTIALS: 400,
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.NOT_VERIFIED: 403,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.INTERNAL: 500,
}


def error_response(outcome: Outcome) -> JSONResponse:
    """Render a failed Outcome as the standard error envelope."""
    code = outcome.error or ErrorCode.INTERNAL
    return JSONResponse(
        status_code=STATUS_BY_CODE[code],
        content=ErrorResponse(error=ErrorDetail(code=code.value, message=outcome.message)).model_dump(
            exclude_none=True
        ),
    )


def outcome_response(outcome: Outcome, content: dict | None = None, status_code: int = 200) -> JSONResponse:
    """Render an Outcome: content on success (defaults to the outcome message), the error envelope otherwise."""
    if not outcome.ok:
        return error_response(outcome)
    return JSONResponse(status_code=status_code, content=content if content is not None else {"message": outcome.message})


def no_store(response: JSONResponse) -> JSONResponse:
    """Forbid caching of responses that carry credentials or credential decisions."""
    response.headers["Cache-Control"] = "no-store"
    return response

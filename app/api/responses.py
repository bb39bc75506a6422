"""Builders for the ApiResponse envelope used by every endpoint."""
from typing import Any, List, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from app.schemas.base_schema import ApiResponse


def _trace_id(request: Optional[Request]) -> str:
    if request is None:
        return ""
    return getattr(request.state, "trace_id", None) or ""


def ok(data: Any, message: str, request: Optional[Request] = None) -> ApiResponse:
    """Successful result wrapped in the envelope."""
    return ApiResponse(
        success=True,
        data=data,
        message=message,
        errors=None,
        trace_id=_trace_id(request),
    )


def fail(
    status_code: int,
    message: str,
    request: Optional[Request] = None,
    errors: Optional[List[str]] = None,
    data: Any = None,
) -> JSONResponse:
    """Failed request as a JSONResponse; `errors` defaults to [message]."""
    body = ApiResponse(
        success=False,
        data=data,
        message=message,
        errors=errors or [message],
        trace_id=_trace_id(request),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))

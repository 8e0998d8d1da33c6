# app/core/response.py
from typing import Any, Optional, Dict
from pydantic import BaseModel
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response
import traceback
from app.core.config import settings


class ErrorBody(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ErrorResponseModel(BaseModel):
    """Uniform error envelope: {"error": {code, message, details}}"""
    error: ErrorBody


def success_response(
    data: Any = None,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Serialize a DTO (dict, list or pydantic model) as a JSON response."""
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(data),
        headers=headers,
    )


def no_content_response() -> Response:
    return Response(status_code=204)


def error_response(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    status_code: int = 500,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Create an error response in the uniform envelope."""
    if settings.DEBUG and status_code >= 500:
        details = {
            **(details or {}),
            "debug_info": {
                "traceback": traceback.format_exc(),
                "environment": settings.ENVIRONMENT,
            },
        }

    payload = ErrorResponseModel(
        error=ErrorBody(code=code, message=message, details=details)
    ).model_dump()
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(payload),
        headers=headers,
    )


def validation_error_response(
    errors: list[Dict[str, Any]],
    status_code: int = 400,
) -> JSONResponse:
    """Create a standardized validation error response"""
    details = []
    for err in errors:
        loc = err.get("loc", [])
        path = ".".join(str(x) for x in loc if x not in ("body", "query", "path"))
        details.append({
            "path": path,
            "message": err.get("msg", "Validation error"),
            "code": err.get("type", "invalid"),
        })

    return error_response(
        code="validation_error",
        message="Request validation failed",
        details={"errors": details},
        status_code=status_code,
    )

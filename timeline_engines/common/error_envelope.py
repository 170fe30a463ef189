"""Error bodies shared by the export endpoints.

Failures are raised as ``HTTPException`` whose ``detail`` is an
``ErrorEnvelope``, so clients read ``body["detail"]["error"]["code"]``.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException
from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    code: str
    message: str
    http_status: int
    # export state at failure time: setup or export
    stage: Optional[str] = None
    resource_kind: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorEnvelope(BaseModel):
    error: ErrorDetail


class ErrorResponse(BaseModel):
    """Body FastAPI sends for an ``error_response`` failure."""
    detail: ErrorEnvelope


def build_error_envelope(
    code: str,
    message: str,
    status_code: int = 400,
    stage: Optional[str] = None,
    resource_kind: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> ErrorEnvelope:
    return ErrorEnvelope(
        error=ErrorDetail(
            code=code,
            message=message,
            http_status=status_code,
            stage=stage,
            resource_kind=resource_kind,
            details=details or {},
        )
    )


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
    stage: Optional[str] = None,
    resource_kind: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> HTTPException:
    """Raise an ``HTTPException`` carrying the envelope for ``code``.

    Annotated as returning the exception so call sites read as terminal.
    """
    envelope = build_error_envelope(code, message, status_code, stage, resource_kind, details)
    raise HTTPException(status_code=status_code, detail=envelope.model_dump())

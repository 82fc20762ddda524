# FILE: ipd_core/utils/resp.py
from __future__ import annotations

from typing import Any, Optional
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from ipd_core.schemas.common import ApiResponse, ApiError


def ok(data: Any = None, status_code: int = 200) -> JSONResponse:
    payload = ApiResponse(status=True, data=data)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def err(
    msg: str,
    status_code: int = 400,
    *,
    code: Optional[str] = None,
    details: Any = None,
) -> JSONResponse:
    payload = ApiResponse(status=False, error=ApiError(msg=msg, code=code, details=details))
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def fail(e) -> JSONResponse:
    """Envelope for an IpdError, answered with the error's own status."""
    return err(e.msg, e.status_code, code=e.code, details=e.details or None)

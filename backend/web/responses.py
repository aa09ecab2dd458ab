"""
JSON response helpers shared by routers and the error handlers.

Every API response may carry user data, so all of them are marked
`Cache-Control: private, no-store`.
"""
from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from backend.errors import DomainError


def private_no_store() -> dict:
    return {"Cache-Control": "private, no-store"}


def json_private(payload: Any, status_code: int = 200) -> JSONResponse:
    """Serialize rows (datetimes, decimals, dataclasses) and mark the response private."""
    return JSONResponse(jsonable_encoder(payload), status_code=status_code, headers=private_no_store())


def domain_error_response(exc: DomainError) -> JSONResponse:
    return JSONResponse(exc.to_payload(), status_code=exc.status_code, headers=private_no_store())


__all__ = ["domain_error_response", "json_private", "private_no_store"]

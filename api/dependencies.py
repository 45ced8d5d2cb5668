"""
Shared API helpers: operator identity and engine error mapping.
"""
from typing import Optional

from fastapi import Header, HTTPException

from core.exceptions import (
    PoolEngineException,
    NotFound,
    ValidationError,
    ConflictError,
    StorageError,
)
from database import get_settings


def get_operator_id(x_operator_id: Optional[str] = Header(default=None)) -> str:
    """
    Operator identity attached by the surrounding platform.

    Authentication happens upstream; the engine only uses the value to
    scope catalogues, players and pools.
    """
    return x_operator_id or get_settings().default_operator_id


def to_http_exception(exc: PoolEngineException) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, StorageError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=500, detail="Internal error")

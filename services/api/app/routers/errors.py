from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException
from services.api.app.logger import get_logger
from services.api.app.services.errors import (
    DuplicateCouponError,
    EmptyCartError,
    InactiveError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
)

log = get_logger("api")


def raise_http_error(e: Exception) -> NoReturn:
    if isinstance(e, InvalidInputError):
        raise HTTPException(status_code=422, detail=str(e)) from e

    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail=str(e)) from e

    if isinstance(e, (InactiveError, EmptyCartError)):
        raise HTTPException(status_code=400, detail=str(e)) from e

    if isinstance(e, (DuplicateCouponError, InvalidTransitionError)):
        raise HTTPException(status_code=409, detail=str(e)) from e

    if isinstance(e, PersistenceError):
        raise HTTPException(status_code=503, detail="Storage unavailable") from e

    log.error("Unhandled error", exc_info=e)
    raise HTTPException(status_code=500, detail="Internal Server Error") from e

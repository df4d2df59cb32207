"""Translate domain exceptions into HTTP errors"""

import logging

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from rt_finance.domain.exceptions import (
    DomainException, ValidationError, NotFoundError, ConflictError, UnsupportedAmount, ExternalServiceError,
)

STATUS_BY_ERROR = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (UnsupportedAmount, 422),
    (ExternalServiceError, 503),
]


def to_http_exception(exc: DomainException, request_id: str = "unknown") -> HTTPException:
    """HTTPException carrying a machine-readable code alongside the message"""
    status_code = next((status for cls, status in STATUS_BY_ERROR if isinstance(exc, cls)), 500)

    if status_code >= 500:
        logging.error(f"{exc.code}: {exc.message}", extra={"request_id": request_id})
    else:
        logging.warning(f"{exc.code}: {exc.message}", extra={"request_id": request_id})

    return HTTPException(status_code=status_code, detail={"code": exc.code, "message": exc.message})


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Fallback for domain errors raised outside a route's own try/except"""
    http_exc = to_http_exception(exc, getattr(request.state, "request_id", "unknown"))
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})

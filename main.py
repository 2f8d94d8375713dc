"""Tutor Ledger - FastAPI Application."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.api.v1.router import api_router
from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    DomainError,
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from app.core.logging import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Include API routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)

_STATUS_CODES = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InsufficientFundsError: status.HTTP_400_BAD_REQUEST,
    ConflictError: status.HTTP_409_CONFLICT,
}


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Turn service-layer errors into JSON responses."""
    status_code = _STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    body = {"detail": exc.detail}
    if isinstance(exc, InsufficientFundsError):
        body.update(
            total=str(exc.total),
            allocated=str(exc.allocated),
            available=str(exc.available),
        )
    logger.warning(
        "Request refused",
        extra={"path": request.url.path, "status": status_code, "error": type(exc).__name__},
    )
    return JSONResponse(status_code=status_code, content=body)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}

import logging

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .custom import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)

logger = logging.getLogger(__name__)


async def authentication_error_handler(_request: Request, exc: AuthenticationError) -> JSONResponse:
    logger.info("Authentication failed: %s", exc.message)
    return JSONResponse(status_code=401, content={"detail": exc.message})


async def authorization_error_handler(_request: Request, exc: AuthorizationError) -> JSONResponse:
    logger.warning("Authorization denied: %s", exc.message)
    return JSONResponse(status_code=403, content={"detail": exc.message})


async def validation_error_handler(_request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": exc.message})


async def not_found_error_handler(_request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": exc.message})


async def conflict_error_handler(_request: Request, exc: ConflictError) -> JSONResponse:
    logger.info("Conflict: %s", exc.message)
    return JSONResponse(status_code=409, content={"detail": exc.message})


async def external_service_error_handler(_request: Request, exc: ExternalServiceError) -> JSONResponse:
    logger.error("%s error: %s (status=%s)", exc.service, exc.message, exc.status_code)
    return JSONResponse(
        status_code=502,
        content={"detail": f"{exc.service} error: {exc.message}"},
    )


async def rate_limit_error_handler(_request: Request, exc: RateLimitError) -> JSONResponse:
    logger.warning("Rate limit hit for %s", exc.service)
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded for {exc.service}"},
    )


async def request_validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

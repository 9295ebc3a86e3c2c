"""Exception handlers that keep every error response a JSON ``{"detail": ...}`` body."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def _describe(error: dict) -> str:
    # Drop the "body" / "query" prefix FastAPI puts in front of the field path
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    msg = error.get("msg", "Invalid request")
    return f"{'.'.join(loc)}: {msg}" if loc else msg


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Missing or malformed request fields -> 400 with the first problem as ``detail``."""
    errors = exc.errors()
    message = _describe(errors[0]) if errors else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": message, "errors": jsonable_encoder(errors)},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log anything that escaped the routers and hide it behind a generic 500."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the JSON error handlers on ``app``.

    ``HTTPException`` keeps FastAPI's default ``{"detail": ...}`` rendering.
    """
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

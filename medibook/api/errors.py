"""Map scheduling exceptions onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from medibook.scheduling.errors import (
    AppointmentNotFoundError,
    AvailabilityNotFoundError,
    BookingRejectedError,
    InvalidTransitionError,
    SchedulingError,
)

logger = logging.getLogger(__name__)


def status_for(exc: SchedulingError) -> int:
    if isinstance(exc, (AppointmentNotFoundError, AvailabilityNotFoundError)):
        return 404
    if isinstance(exc, (BookingRejectedError, InvalidTransitionError)):
        return 409
    # InvalidInputError and anything unclassified
    return 400


async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    status_code = status_for(exc)
    logger.info(
        f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}"
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})


def install_error_handlers(app: FastAPI) -> FastAPI:
    """Register the scheduling exception handler on *app*."""
    app.add_exception_handler(SchedulingError, scheduling_error_handler)
    return app

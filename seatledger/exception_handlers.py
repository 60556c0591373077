import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from seatledger.exceptions import LedgerError, SeatUnavailable

logger = logging.getLogger(__name__)


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("ledger error: %s", exc.message)
    else:
        logger.info("ledger error: %s", exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def seat_unavailable_handler(request: Request, exc: SeatUnavailable) -> JSONResponse:
    logger.info("seat unavailable", extra={"seat_id": exc.seat_id, "seat_status": exc.status})
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "seat_id": exc.seat_id, "status": exc.status},
    )


EXCEPTION_HANDLERS = {
    SeatUnavailable: seat_unavailable_handler,
    LedgerError: ledger_error_handler,
}


def register_exception_handlers(app):
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)

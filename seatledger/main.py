from contextlib import asynccontextmanager
import logging
import uuid

from fastapi import FastAPI, Request, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
import sentry_sdk
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware

from seatledger.config import settings
from seatledger.db.session import create_schema
from seatledger.exception_handlers import register_exception_handlers
from seatledger.logging_setup import setup_logging, TRACE_ID_CTX
from seatledger.metrics import ACTIVE_HOLDS
from seatledger.modules.bookings.router import router as bookings_router
from seatledger.modules.trips.router import router as trips_router
from seatledger.services.registry import LedgerRegistry
from seatledger.services.sweeper import HoldSweeper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_schema()
    registry = LedgerRegistry()
    sweeper = HoldSweeper(registry)
    app.state.ledger_registry = registry
    app.state.hold_sweeper = sweeper
    sweeper.start()
    logger.info("seat ledger ready")
    try:
        yield
    finally:
        # holds are in-memory only; anything outstanding is dropped here
        await sweeper.stop()
        logger.info("seat ledger stopped", extra={"active_holds": registry.active_hold_count()})


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# initialize logging and Sentry
setup_logging(logging.DEBUG if settings.DEBUG else logging.INFO)
if settings.SENTRY_DSN:
    sentry_sdk.init(dsn=settings.SENTRY_DSN)
    app.add_middleware(SentryAsgiMiddleware)

register_exception_handlers(app)


@app.middleware("http")
async def add_trace_id(request: Request, call_next):
    trace_id = request.headers.get("x-trace-id") or str(uuid.uuid4())
    TRACE_ID_CTX.set(trace_id)
    response = await call_next(request)
    response.headers["X-Trace-Id"] = trace_id
    return response


app.include_router(trips_router, prefix="/trips", tags=["trips"])
app.include_router(bookings_router, prefix="/bookings", tags=["bookings"])


@app.get("/")
async def root():
    return {"app": settings.APP_NAME, "status": "ok"}


@app.get("/metrics")
async def metrics(request: Request):
    ACTIVE_HOLDS.set(request.app.state.ledger_registry.active_hold_count())
    content = generate_latest()
    return Response(content=content, media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/ready")
async def ready(request: Request):
    sweeper = getattr(request.app.state, "hold_sweeper", None)
    if sweeper is None or not sweeper.running:
        return Response(status_code=503, content="hold sweeper not running")
    return {"status": "ready"}

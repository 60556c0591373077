"""Durable booking records written after a draft is confirmed in the ledger.

The ledger never touches the database. Callers confirm in memory first and
then persist here; if every attempt fails the seats stay booked in memory and
the failure is logged for reconciliation.
"""

import asyncio
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select as sa_select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from seatledger.config import settings
from seatledger.exceptions import PersistenceError
from seatledger.metrics import BOOKING_PERSIST_FAILURE
from seatledger.models.models import Booking
from seatledger.services.ledger import DraftBooking

logger = logging.getLogger(__name__)


async def get_booking_record(db: AsyncSession, booking_id: str) -> Optional[Booking]:
    stmt = sa_select(Booking).where(Booking.booking_id == booking_id)
    res = await db.execute(stmt)
    return res.scalars().first()


async def confirmed_seat_ids(db: AsyncSession, trip_id: str) -> List[str]:
    stmt = sa_select(Booking.seat_ids).where(Booking.trip_id == trip_id).where(Booking.status == "confirmed")
    res = await db.execute(stmt)
    seats = []
    for row in res.scalars().all():
        seats.extend(str(s) for s in row or [])
    return seats


async def persist_confirmed_booking(
    db: AsyncSession,
    draft: DraftBooking,
    amount: Decimal = Decimal("0"),
    currency: str = "UGX",
    payment_ref: Optional[str] = None,
    max_attempts: int = settings.PERSIST_MAX_ATTEMPTS,
    backoff: float = settings.PERSIST_RETRY_BACKOFF_SECONDS,
) -> Booking:
    """Write the durable record for a confirmed draft, retrying transient errors.

    A record that already exists for ``draft.booking_id`` is returned unchanged.
    """
    attempt = 0
    while True:
        attempt += 1
        booking = Booking(
            booking_id=draft.booking_id,
            trip_id=draft.trip_id,
            owner_id=draft.owner_id,
            seat_ids=list(draft.seat_ids),
            passengers=list(draft.passengers),
            amount=amount,
            currency=currency,
            payment_ref=payment_ref,
            status="confirmed",
        )
        try:
            db.add(booking)
            await db.commit()
            await db.refresh(booking)
            return booking
        except IntegrityError:
            # unique booking_id => already persisted by an earlier attempt
            await db.rollback()
            existing = await get_booking_record(db, draft.booking_id)
            if existing is not None:
                return existing
            raise PersistenceError(f"Unable to persist booking {draft.booking_id}")
        except SQLAlchemyError as exc:
            await db.rollback()
            final = attempt >= max_attempts
            BOOKING_PERSIST_FAILURE.labels(final=str(final).lower()).inc()
            if final:
                logger.error(
                    "booking persisted in memory only; reconcile manually",
                    extra={"booking_id": draft.booking_id, "trip_id": draft.trip_id, "error": str(exc)},
                )
                raise PersistenceError(f"Unable to persist booking {draft.booking_id}") from exc
            logger.warning("booking persist failed, retrying", extra={"booking_id": draft.booking_id, "attempt": attempt})
            await asyncio.sleep(backoff * 2 ** (attempt - 1))

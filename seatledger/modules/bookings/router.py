from typing import Iterable, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from seatledger.auth.deps import get_current_owner_id, get_registry
from seatledger.db.session import get_session
from seatledger.exceptions import InvalidSeatSelection
from seatledger.schemas.booking import (
    ConfirmBookingRequest,
    CreateHoldRequest,
    DraftBookingResponse,
    HoldResponse,
    ReleaseHoldResponse,
    ReviseHoldRequest,
    ReviseHoldResponse,
)
from seatledger.services.booking_store import confirmed_seat_ids, persist_confirmed_booking
from seatledger.services.ledger import DraftBooking
from seatledger.services.registry import LedgerRegistry
from seatledger.services.seat_layout import valid_seat_ids

router = APIRouter()


def _check_template(seat_ids: Iterable[str]):
    known = valid_seat_ids()
    for seat_id in seat_ids:
        if seat_id not in known:
            raise InvalidSeatSelection(f"Unknown seat {seat_id}")


async def _restore_durable_seats(db: AsyncSession, registry: LedgerRegistry, trip_id: str):
    # seats confirmed before a restart only exist in the durable store
    await registry.restore_booked(trip_id, await confirmed_seat_ids(db, trip_id))


def _draft_response(draft: DraftBooking, registry: LedgerRegistry) -> DraftBookingResponse:
    trip = registry.get_trip(draft.trip_id)
    hold = trip.holds.get(draft.hold_id) if trip else None
    return DraftBookingResponse(
        booking_id=draft.booking_id,
        trip_id=draft.trip_id,
        seat_ids=list(draft.seat_ids),
        passengers=draft.passengers,
        status=draft.status.value,
        created_at=draft.created_at,
        updated_at=draft.updated_at,
        confirmed_at=draft.confirmed_at,
        expires_at=hold.expires_at if hold else None,
    )


@router.post("", response_model=HoldResponse)
async def create_hold(
    req: CreateHoldRequest,
    owner_id: str = Depends(get_current_owner_id),
    registry: LedgerRegistry = Depends(get_registry),
    db: AsyncSession = Depends(get_session),
):
    """Hold up to five seats for five minutes and open a draft booking."""
    _check_template(req.seat_ids)
    await _restore_durable_seats(db, registry, req.trip_id)
    hold = await registry.create_hold(
        req.trip_id,
        req.seat_ids,
        owner_id,
        passengers=[p.model_dump() for p in req.passengers],
    )
    return HoldResponse(
        booking_id=hold.booking_id,
        hold_id=hold.hold_id,
        trip_id=hold.trip_id,
        seat_ids=list(hold.seat_ids),
        expires_at=hold.expires_at,
    )


@router.get("", response_model=List[DraftBookingResponse])
async def my_bookings(
    owner_id: str = Depends(get_current_owner_id),
    registry: LedgerRegistry = Depends(get_registry),
):
    """Draft and confirmed bookings of the caller across every trip."""
    drafts = await registry.bookings_for_owner(owner_id)
    return [_draft_response(d, registry) for d in drafts]


@router.get("/{booking_id}", response_model=DraftBookingResponse)
async def get_booking(
    booking_id: str,
    trip_id: str = Query(...),
    owner_id: str = Depends(get_current_owner_id),
    registry: LedgerRegistry = Depends(get_registry),
):
    draft = await registry.get_booking(trip_id, booking_id, owner_id)
    return _draft_response(draft, registry)


@router.patch("/{booking_id}", response_model=ReviseHoldResponse)
async def revise_hold(
    booking_id: str,
    req: ReviseHoldRequest,
    owner_id: str = Depends(get_current_owner_id),
    registry: LedgerRegistry = Depends(get_registry),
    db: AsyncSession = Depends(get_session),
):
    """Reselect seats and/or passengers; the hold clock restarts."""
    _check_template(req.seat_ids)
    await _restore_durable_seats(db, registry, req.trip_id)
    passengers = [p.model_dump() for p in req.passengers] if req.passengers is not None else None
    hold = await registry.revise_hold(req.trip_id, booking_id, req.seat_ids, owner_id, passengers=passengers)
    return ReviseHoldResponse(booking_id=booking_id, seat_ids=list(hold.seat_ids), expires_at=hold.expires_at)


@router.post("/{booking_id}/confirm", response_model=DraftBookingResponse)
async def confirm_booking(
    booking_id: str,
    req: Optional[ConfirmBookingRequest] = None,
    owner_id: str = Depends(get_current_owner_id),
    registry: LedgerRegistry = Depends(get_registry),
    db: AsyncSession = Depends(get_session),
):
    """Book the held seats, then write the durable booking record.

    Called once payment has succeeded. If the durable write fails the seats
    remain booked in memory and the caller gets a 503 to reconcile.
    """
    req = req or ConfirmBookingRequest()
    draft = await registry.confirm_booking(booking_id, owner_id, trip_id=req.trip_id)
    await persist_confirmed_booking(
        db,
        draft,
        amount=req.amount,
        currency=req.currency,
        payment_ref=req.payment_ref,
    )
    return _draft_response(draft, registry)


@router.delete("/{booking_id}/hold", response_model=ReleaseHoldResponse)
async def cancel_hold(
    booking_id: str,
    trip_id: str = Query(...),
    owner_id: str = Depends(get_current_owner_id),
    registry: LedgerRegistry = Depends(get_registry),
):
    released = await registry.cancel_hold(trip_id, booking_id, owner_id)
    return ReleaseHoldResponse(released=released)

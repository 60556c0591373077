from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from seatledger.auth.deps import get_registry
from seatledger.db.session import get_session
from seatledger.schemas.booking import SeatSnapshotResponse
from seatledger.services.booking_store import confirmed_seat_ids
from seatledger.services.registry import LedgerRegistry

router = APIRouter()


@router.get("/{trip_id}/seats", response_model=SeatSnapshotResponse)
async def trip_seats(
    trip_id: str,
    registry: LedgerRegistry = Depends(get_registry),
    db: AsyncSession = Depends(get_session),
):
    """Seat map for a trip, one entry per template seat in layout order."""
    # seats confirmed before a restart only exist in the durable store
    await registry.restore_booked(trip_id, await confirmed_seat_ids(db, trip_id))
    return SeatSnapshotResponse(trip_id=trip_id, seats=registry.snapshot(trip_id))

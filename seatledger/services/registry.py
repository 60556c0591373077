"""Registry of trip seat ledgers and every operation that mutates them.

Each operation takes the trip's lock for its whole check-and-set sequence,
so holds, confirmations and expiry sweeps on one trip never interleave.
"""

import logging
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from seatledger.config import settings
from seatledger.exceptions import (
    AlreadyConfirmed,
    BookingNotFound,
    Forbidden,
    HoldExpired,
    InvalidSeatSelection,
    SeatUnavailable,
)
from seatledger.metrics import ACTIVE_HOLDS, BOOKINGS_CONFIRMED, HOLDS_EXPIRED, SEAT_HOLD_ATTEMPTS, SEAT_HOLD_LATENCY
from seatledger.services.ledger import DraftBooking, DraftStatus, Hold, SeatStatus, TripLedger
from seatledger.services.seat_layout import SeatSpec, seat_template_56

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return secrets.token_urlsafe(12)


class LedgerRegistry:
    """Process-wide owner of every trip's seat ledger.

    Built once at startup and handed to request handlers. Every mutation of a
    trip runs under that trip's lock; trips never share a lock.
    """

    def __init__(
        self,
        hold_ttl_seconds: int = settings.HOLD_TTL_SECONDS,
        max_seats: int = settings.MAX_SEATS_PER_HOLD,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._trips: Dict[str, TripLedger] = {}
        self.hold_ttl = timedelta(seconds=hold_ttl_seconds)
        self.max_seats = max_seats
        self.clock = clock or _now

    def now(self) -> datetime:
        return self.clock()

    # -- reads -------------------------------------------------------------

    def get_or_create_trip(self, trip_id: str) -> TripLedger:
        trip = self._trips.get(trip_id)
        if trip is None:
            trip = self._trips[trip_id] = TripLedger(trip_id)
        return trip

    def get_trip(self, trip_id: str) -> Optional[TripLedger]:
        return self._trips.get(trip_id)

    def trips(self) -> List[TripLedger]:
        return list(self._trips.values())

    def seat_status(self, trip_id: str, seat_id: str) -> SeatStatus:
        trip = self._trips.get(trip_id)
        if trip is None:
            return SeatStatus.AVAILABLE
        return trip.status_of(seat_id)

    def snapshot(self, trip_id: str, template: Optional[Sequence[SeatSpec]] = None) -> List[dict]:
        template = template if template is not None else seat_template_56()
        return [
            {
                "seat_id": seat.seat_id,
                "label": seat.label,
                "row": seat.row,
                "col": seat.col,
                "is_window": seat.is_window,
                "status": self.seat_status(trip_id, seat.seat_id).value,
            }
            for seat in template
        ]

    def active_hold_count(self) -> int:
        return sum(len(trip.holds) for trip in self._trips.values())

    def find_trip_for_booking(self, booking_id: str) -> Optional[TripLedger]:
        for trip in self._trips.values():
            if booking_id in trip.drafts:
                return trip
        return None

    async def bookings_for_owner(self, owner_id: str) -> List[DraftBooking]:
        """Draft and confirmed bookings of one owner across every trip, oldest first."""
        owned = []
        for trip in self.trips():
            async with trip.lock:
                owned.extend(d for d in trip.drafts.values() if d.owner_id == str(owner_id))
        return sorted(owned, key=lambda d: d.created_at)

    async def get_booking(self, trip_id: str, booking_id: str, owner_id: str) -> DraftBooking:
        trip = self._trip_for(trip_id, booking_id)
        async with trip.lock:
            return self._owned_draft(trip, booking_id, owner_id)

    # -- mutators ----------------------------------------------------------

    async def create_hold(
        self,
        trip_id: str,
        seat_ids: Sequence[str],
        owner_id: str,
        passengers: Optional[List[dict]] = None,
    ) -> Hold:
        seats = self._validate_selection(seat_ids, passengers)
        trip = self.get_or_create_trip(trip_id)
        start = time.perf_counter()
        async with trip.lock:
            conflict = trip.first_conflict(seats)
            if conflict:
                SEAT_HOLD_ATTEMPTS.labels(result="conflict").inc()
                raise SeatUnavailable(conflict[0], conflict[1].value)
            now = self.now()
            hold = Hold(
                hold_id=_new_id(),
                trip_id=trip_id,
                seat_ids=seats,
                expires_at=now + self.hold_ttl,
                booking_id=_new_id(),
                owner_id=str(owner_id),
            )
            draft = DraftBooking(
                booking_id=hold.booking_id,
                trip_id=trip_id,
                seat_ids=seats,
                hold_id=hold.hold_id,
                owner_id=str(owner_id),
                created_at=now,
                updated_at=now,
                passengers=list(passengers or []),
            )
            trip.add_hold(hold, draft)
        SEAT_HOLD_ATTEMPTS.labels(result="success").inc()
        SEAT_HOLD_LATENCY.observe(time.perf_counter() - start)
        ACTIVE_HOLDS.set(self.active_hold_count())
        logger.info("hold created", extra={"trip_id": trip_id, "booking_id": hold.booking_id, "seats": list(seats)})
        return hold

    async def revise_hold(
        self,
        trip_id: str,
        booking_id: str,
        seat_ids: Sequence[str],
        owner_id: str,
        passengers: Optional[List[dict]] = None,
    ) -> Hold:
        """Move a draft's hold onto a new seat selection and restart its clock.

        The new seats are checked before anything is released, so a failed
        revision leaves the original hold exactly as it was.
        """
        seats = self._validate_selection(seat_ids, passengers)
        trip = self._trip_for(trip_id, booking_id)
        async with trip.lock:
            draft = self._owned_draft(trip, booking_id, owner_id)
            if draft.is_confirmed:
                raise AlreadyConfirmed(booking_id)
            hold = self._live_hold(trip, draft)

            conflict = trip.first_conflict(seats, own_hold=hold)
            if conflict:
                SEAT_HOLD_ATTEMPTS.labels(result="conflict").inc()
                raise SeatUnavailable(conflict[0], conflict[1].value)
            if passengers is None and draft.passengers and len(draft.passengers) != len(seats):
                raise InvalidSeatSelection("Passenger details must be resubmitted when the number of seats changes")

            now = self.now()
            trip.mark([s for s in hold.seat_ids if s not in seats], SeatStatus.AVAILABLE)
            trip.mark(seats, SeatStatus.HELD)
            hold.seat_ids = seats
            hold.expires_at = now + self.hold_ttl
            draft.seat_ids = seats
            if passengers is not None:
                draft.passengers = list(passengers)
            draft.updated_at = now
        SEAT_HOLD_ATTEMPTS.labels(result="revised").inc()
        logger.info("hold revised", extra={"trip_id": trip_id, "booking_id": booking_id, "seats": list(seats)})
        return hold

    async def confirm_booking(self, booking_id: str, owner_id: str, trip_id: Optional[str] = None) -> DraftBooking:
        if trip_id is not None:
            trip = self._trip_for(trip_id, booking_id)
        else:
            trip = self.find_trip_for_booking(booking_id)
            if trip is None:
                raise BookingNotFound(booking_id)
        async with trip.lock:
            draft = self._owned_draft(trip, booking_id, owner_id)
            if draft.is_confirmed:
                raise AlreadyConfirmed(booking_id)
            hold = self._live_hold(trip, draft)

            now = self.now()
            trip.mark(hold.seat_ids, SeatStatus.BOOKED)
            del trip.holds[hold.hold_id]
            draft.status = DraftStatus.CONFIRMED
            draft.confirmed_at = now
            draft.updated_at = now
        BOOKINGS_CONFIRMED.inc()
        ACTIVE_HOLDS.set(self.active_hold_count())
        logger.info("booking confirmed", extra={"trip_id": draft.trip_id, "booking_id": booking_id})
        return draft

    async def release_hold(self, trip_id: str, hold_id: str) -> bool:
        """Free a hold's seats and drop its draft. Unknown holds are a no-op."""
        trip = self._trips.get(trip_id)
        if trip is None:
            return False
        async with trip.lock:
            released = trip.drop_hold(hold_id) is not None
        ACTIVE_HOLDS.set(self.active_hold_count())
        return released

    async def cancel_hold(self, trip_id: str, booking_id: str, owner_id: str) -> bool:
        trip = self._trip_for(trip_id, booking_id)
        async with trip.lock:
            draft = self._owned_draft(trip, booking_id, owner_id)
            if draft.is_confirmed:
                raise AlreadyConfirmed(booking_id)
            released = trip.drop_hold(draft.hold_id) is not None
            # a draft whose hold is already gone is stale; drop it too
            trip.drafts.pop(booking_id, None)
        ACTIVE_HOLDS.set(self.active_hold_count())
        logger.info("hold cancelled", extra={"trip_id": trip_id, "booking_id": booking_id})
        return released

    async def restore_booked(self, trip_id: str, seat_ids: Iterable[str]) -> int:
        """Mark seats booked in the durable store as booked here too.

        Only available seats change; a live hold is never overridden.
        """
        seat_ids = list(seat_ids)
        if not seat_ids and trip_id not in self._trips:
            return 0
        trip = self.get_or_create_trip(trip_id)
        restored = 0
        async with trip.lock:
            for seat_id in seat_ids:
                if trip.status_of(seat_id) is SeatStatus.AVAILABLE:
                    trip.mark([seat_id], SeatStatus.BOOKED)
                    restored += 1
        return restored

    async def sweep_expired(self, now: Optional[datetime] = None) -> int:
        now = now or self.now()
        released = 0
        for trip in self.trips():
            async with trip.lock:
                for hold_id in trip.expired_hold_ids(now):
                    if trip.drop_hold(hold_id) is not None:
                        released += 1
        if released:
            HOLDS_EXPIRED.inc(released)
            logger.info("expired holds released", extra={"count": released})
        ACTIVE_HOLDS.set(self.active_hold_count())
        return released

    # -- helpers -----------------------------------------------------------

    def _validate_selection(self, seat_ids: Sequence[str], passengers: Optional[List[dict]]) -> Tuple[str, ...]:
        seats = tuple(str(s) for s in seat_ids)
        if not seats:
            raise InvalidSeatSelection("At least one seat must be selected")
        if len(seats) > self.max_seats:
            raise InvalidSeatSelection(f"Maximum {self.max_seats} seats allowed per booking")
        if len(set(seats)) != len(seats):
            raise InvalidSeatSelection("Duplicate seats in selection")
        if passengers and len(passengers) != len(seats):
            raise InvalidSeatSelection("Passenger details must match the selected seats one to one")
        return seats

    def _trip_for(self, trip_id: str, booking_id: str) -> TripLedger:
        trip = self._trips.get(trip_id)
        if trip is None:
            raise BookingNotFound(booking_id)
        return trip

    def _owned_draft(self, trip: TripLedger, booking_id: str, owner_id: str) -> DraftBooking:
        draft = trip.drafts.get(booking_id)
        if draft is None:
            raise BookingNotFound(booking_id)
        if draft.owner_id != str(owner_id):
            raise Forbidden()
        return draft

    def _live_hold(self, trip: TripLedger, draft: DraftBooking) -> Hold:
        """Return the draft's hold, expiring it on the spot if its time is up."""
        hold = trip.holds.get(draft.hold_id)
        if hold is None or hold.is_expired(self.now()):
            if hold is not None:
                trip.drop_hold(hold.hold_id)
                HOLDS_EXPIRED.inc()
            trip.drafts.pop(draft.booking_id, None)
            ACTIVE_HOLDS.set(self.active_hold_count())
            raise HoldExpired(draft.booking_id)
        return hold

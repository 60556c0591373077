"""Per-trip seat state: seat statuses, live holds and draft bookings.

A ``TripLedger`` is a plain data structure. It does no locking of its own;
``LedgerRegistry`` acquires ``TripLedger.lock`` around every check-and-set
sequence that goes through these helpers.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple


class SeatStatus(str, Enum):
    AVAILABLE = "available"
    HELD = "held"
    BOOKED = "booked"


class DraftStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"


@dataclass
class Hold:
    hold_id: str
    trip_id: str
    seat_ids: Tuple[str, ...]
    expires_at: datetime
    booking_id: str
    owner_id: str

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


@dataclass
class DraftBooking:
    booking_id: str
    trip_id: str
    seat_ids: Tuple[str, ...]
    hold_id: str
    owner_id: str
    created_at: datetime
    updated_at: datetime
    passengers: List[dict] = field(default_factory=list)
    status: DraftStatus = DraftStatus.DRAFT
    confirmed_at: Optional[datetime] = None

    @property
    def is_confirmed(self) -> bool:
        return self.status is DraftStatus.CONFIRMED


class TripLedger:
    def __init__(self, trip_id: str):
        self.trip_id = trip_id
        # missing key == available
        self.seat_status: Dict[str, SeatStatus] = {}
        self.holds: Dict[str, Hold] = {}
        self.drafts: Dict[str, DraftBooking] = {}
        self.lock = asyncio.Lock()

    def status_of(self, seat_id: str) -> SeatStatus:
        return self.seat_status.get(seat_id, SeatStatus.AVAILABLE)

    def first_conflict(self, seat_ids: Iterable[str], own_hold: Optional[Hold] = None) -> Optional[Tuple[str, SeatStatus]]:
        """Return the first seat that cannot be claimed, with its status.

        Seats held by ``own_hold`` count as claimable so a hold can be revised
        onto an overlapping selection.
        """
        owned = set(own_hold.seat_ids) if own_hold else set()
        for seat_id in seat_ids:
            status = self.status_of(seat_id)
            if status is SeatStatus.AVAILABLE:
                continue
            if status is SeatStatus.HELD and seat_id in owned:
                continue
            return seat_id, status
        return None

    def mark(self, seat_ids: Iterable[str], status: SeatStatus):
        for seat_id in seat_ids:
            if status is SeatStatus.AVAILABLE:
                self.seat_status.pop(seat_id, None)
            else:
                self.seat_status[seat_id] = status

    def add_hold(self, hold: Hold, draft: DraftBooking):
        self.mark(hold.seat_ids, SeatStatus.HELD)
        self.holds[hold.hold_id] = hold
        self.drafts[draft.booking_id] = draft

    def drop_hold(self, hold_id: str) -> Optional[Hold]:
        """Remove a hold, free its seats and discard the draft it backed."""
        hold = self.holds.pop(hold_id, None)
        if hold is None:
            return None
        self.mark([s for s in hold.seat_ids if self.status_of(s) is SeatStatus.HELD], SeatStatus.AVAILABLE)
        draft = self.drafts.get(hold.booking_id)
        if draft is not None and not draft.is_confirmed:
            del self.drafts[hold.booking_id]
        return hold

    def expired_hold_ids(self, now: datetime) -> List[str]:
        return [hold_id for hold_id, hold in self.holds.items() if hold.is_expired(now)]

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Numeric,
    JSON,
)
from sqlalchemy.sql import func

from seatledger.db.base import Base


class Booking(Base):
    """Durable record of a confirmed, paid booking."""

    __tablename__ = "bookings"
    id = Column(Integer, primary_key=True)
    # same id the seat ledger issued for the draft
    booking_id = Column(String(64), nullable=False, unique=True, index=True)
    trip_id = Column(String(64), nullable=False, index=True)
    owner_id = Column(String(64), nullable=False, index=True)
    seat_ids = Column(JSON, nullable=False)
    passengers = Column(JSON, nullable=False, default=list)
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(8), nullable=False, default="UGX")
    payment_ref = Column(String(128), nullable=True, index=True)
    status = Column(String(50), nullable=False, default="confirmed", index=True)
    booked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

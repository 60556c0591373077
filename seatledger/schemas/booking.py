from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal


class Passenger(BaseModel):
    name: str
    age: Optional[int] = Field(None, ge=0)
    gender: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class SeatView(BaseModel):
    seat_id: str
    label: str
    row: int
    col: int
    is_window: bool
    status: str


class SeatSnapshotResponse(BaseModel):
    trip_id: str
    seats: List[SeatView]


class CreateHoldRequest(BaseModel):
    trip_id: str
    seat_ids: List[str] = Field(..., description="1 to 5 seat ids from the coach template")
    passengers: List[Passenger] = Field(default_factory=list)


class HoldResponse(BaseModel):
    booking_id: str
    hold_id: str
    trip_id: str
    seat_ids: List[str]
    expires_at: datetime


class ReviseHoldRequest(BaseModel):
    trip_id: str
    seat_ids: List[str]
    passengers: Optional[List[Passenger]] = None


class ReviseHoldResponse(BaseModel):
    booking_id: str
    seat_ids: List[str]
    expires_at: datetime


class ConfirmBookingRequest(BaseModel):
    trip_id: Optional[str] = None
    amount: Decimal = Field(Decimal("0"), ge=0)
    currency: str = "UGX"
    payment_ref: Optional[str] = None


class DraftBookingResponse(BaseModel):
    booking_id: str
    trip_id: str
    seat_ids: List[str]
    passengers: List[dict]
    status: str
    created_at: datetime
    updated_at: datetime
    confirmed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class ReleaseHoldResponse(BaseModel):
    released: bool

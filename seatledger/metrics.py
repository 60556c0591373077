from prometheus_client import Counter, Gauge, Histogram

# Seat hold metrics
SEAT_HOLD_LATENCY = Histogram("seatledger_seat_hold_latency_seconds", "Latency for seat hold operations")
SEAT_HOLD_ATTEMPTS = Counter("seatledger_seat_hold_attempts_total", "Total seat hold attempts", ["result"])
HOLDS_EXPIRED = Counter("seatledger_holds_expired_total", "Holds released by the expiry sweeper")
ACTIVE_HOLDS = Gauge("seatledger_active_holds", "Live seat holds across all trips")

# Booking metrics
BOOKINGS_CONFIRMED = Counter("seatledger_bookings_confirmed_total", "Draft bookings confirmed")
BOOKING_PERSIST_FAILURE = Counter("seatledger_booking_persist_failure_total", "Durable booking writes that failed", ["final"])

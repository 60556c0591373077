from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple


@dataclass(frozen=True)
class SeatSpec:
    seat_id: str
    label: str
    row: int
    col: int
    is_window: bool


@lru_cache(maxsize=None)
def seat_template_56() -> Tuple[SeatSpec, ...]:
    """Standard coach layout: rows 1-10 are 2-2-1 (five seats), row 11 has six.

    Seats are numbered 1..56 left to right, front to back. Window seats are the
    first and last seat of every row and carry a ``W`` suffix in their label.
    """
    seats = []
    num = 1
    for row in range(1, 11):
        for col in range(1, 6):
            seats.append(_seat(num, row, col, col in (1, 5)))
            num += 1
    for col in range(1, 7):
        seats.append(_seat(num, 11, col, col in (1, 6)))
        num += 1
    return tuple(seats)


def _seat(num: int, row: int, col: int, is_window: bool) -> SeatSpec:
    label = f"{num}W" if is_window else str(num)
    return SeatSpec(seat_id=str(num), label=label, row=row, col=col, is_window=is_window)


def valid_seat_ids() -> frozenset:
    return frozenset(s.seat_id for s in seat_template_56())

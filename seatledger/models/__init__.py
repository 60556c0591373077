from .models import *

__all__ = [
    "Base",
    "Booking",
]

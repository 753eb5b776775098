from .booking import (
    BookingEngine,
    EquipmentDirectory,
    RentalStore,
    compute_total_price,
    rental_days,
)
from .availability import build_availability

__all__ = [
    "BookingEngine",
    "EquipmentDirectory",
    "RentalStore",
    "compute_total_price",
    "rental_days",
    "build_availability",
]

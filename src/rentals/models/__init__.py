from .materiel import Materiel
from .location import Location

__all__ = [
    "Materiel",
    "Location",
]

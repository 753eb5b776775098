from .common import MaterielTinySerializer, RentalDateTimeField, UserTinySerializer
from .materiel import CategorySerializer, MaterielSerializer
from .location import (
    LocationCancelSerializer,
    LocationCreateSerializer,
    LocationExtendSerializer,
    LocationSerializer,
    LocationUpdateSerializer,
)

__all__ = [
    "RentalDateTimeField",
    "UserTinySerializer",
    "MaterielTinySerializer",
    "MaterielSerializer",
    "CategorySerializer",
    "LocationSerializer",
    "LocationCreateSerializer",
    "LocationExtendSerializer",
    "LocationCancelSerializer",
    "LocationUpdateSerializer",
]

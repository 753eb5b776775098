from .location import LocationViewSet
from .materiel import MaterielViewSet

__all__ = [
    "LocationViewSet",
    "MaterielViewSet",
]

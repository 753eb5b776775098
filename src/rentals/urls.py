from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views_modules import LocationViewSet, MaterielViewSet

app_name = "rentals"

router = DefaultRouter()
router.register(r"materiels", MaterielViewSet, basename="materiel")
router.register(r"locations", LocationViewSet, basename="location")

urlpatterns = [
    path("", include(router.urls)),
]

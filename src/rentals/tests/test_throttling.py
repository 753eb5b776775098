from datetime import timedelta
from unittest import mock

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from src.rentals.factories import MaterielFactory, UserFactory
from src.rentals.throttling import ScopedRateThrottleIsolated

# Lower only the scopes we hit; the class attribute is read once at import time.
TEST_RATES = {
    **ScopedRateThrottleIsolated.THROTTLE_RATES,
    "materiels_list": "2/min",
    "materiels_availability": "2/min",
    "locations_mutation": "2/min",
}


class RentalsThrottleTests(TestCase):

    def setUp(self):
        patcher = mock.patch.object(
            ScopedRateThrottleIsolated, "THROTTLE_RATES", TEST_RATES,
        )
        patcher.start()
        self.addCleanup(patcher.stop)
        self.client = APIClient()

    def test_materiels_list_throttling(self):
        """Third anonymous GET to the catalogue should be throttled (429)."""
        self.assertEqual(self.client.get("/api/materiels/").status_code, 200)
        self.assertEqual(self.client.get("/api/materiels/").status_code, 200)
        r3 = self.client.get("/api/materiels/")
        self.assertEqual(r3.status_code, 429)
        self.assertEqual(r3.data["code"], "THROTTLED")

    def test_availability_throttling(self):
        materiel = MaterielFactory()
        url = f"/api/materiels/{materiel.id}/availability/"
        self.assertEqual(self.client.get(url).status_code, 200)
        self.assertEqual(self.client.get(url).status_code, 200)
        self.assertEqual(self.client.get(url).status_code, 429)

    def test_retrieve_is_not_throttled(self):
        materiel = MaterielFactory()
        for _ in range(4):
            self.assertEqual(self.client.get(f"/api/materiels/{materiel.id}/").status_code, 200)

    def test_location_mutations_throttling(self):
        user = UserFactory()
        materiel = MaterielFactory()
        self.client.force_authenticate(user)
        start = timezone.localdate() + timedelta(days=3)
        payload = {"materielId": materiel.id, "startDate": str(start), "endDate": str(start + timedelta(days=1))}

        self.assertEqual(self.client.post("/api/locations/", payload, format="json").status_code, 201)
        self.assertEqual(self.client.post("/api/locations/", payload, format="json").status_code, 409)
        self.assertEqual(self.client.post("/api/locations/", payload, format="json").status_code, 429)

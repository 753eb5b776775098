from datetime import datetime, time, timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from src.rentals.factories import AdminFactory, LocationFactory, MaterielFactory, UserFactory
from src.rentals.models import Location, Materiel


def midnight(d):
    return timezone.make_aware(datetime.combine(d, time.min))


class MaterielCatalogueTests(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.crane = MaterielFactory(name="Liebherr LTM 1050", type=Materiel.Type.GRUE_MOBILE,
                                     price_per_day=Decimal("850.00"))
        self.lift = MaterielFactory(name="Genie GS-1932", type=Materiel.Type.NACELLE_CISEAUX,
                                    price_per_day=Decimal("95.00"), description="Nacelle ciseaux electrique")
        self.broken = MaterielFactory(name="Bomag BW 120", type=Materiel.Type.COMPACTEUR,
                                      price_per_day=Decimal("120.00"), status=Materiel.Status.OUT_OF_ORDER)

    def _names(self, resp):
        return {item["name"] for item in resp.data["data"]}

    def test_list_is_public_and_paginated(self):
        r = self.client.get("/api/materiels/")
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.data["success"])
        self.assertEqual(r.data["pagination"]["total"], 3)
        item = next(i for i in r.data["data"] if i["id"] == self.crane.id)
        self.assertEqual(item["pricePerDay"], "850.00")
        self.assertEqual(item["typeLabel"], "Mobile crane")

    def test_filters(self):
        r = self.client.get("/api/materiels/", {"type": "GRUE_MOBILE"})
        self.assertEqual(self._names(r), {"Liebherr LTM 1050"})

        r = self.client.get("/api/materiels/", {"price_max": 150})
        self.assertEqual(self._names(r), {"Genie GS-1932", "Bomag BW 120"})

        r = self.client.get("/api/materiels/", {"q": "ciseaux"})
        self.assertEqual(self._names(r), {"Genie GS-1932"})

    def test_available_window_excludes_booked_materiels(self):
        start = timezone.localdate() + timedelta(days=10)
        LocationFactory(materiel=self.lift, status=Location.PENDING,
                        start_date=midnight(start), end_date=midnight(start + timedelta(days=3)))
        LocationFactory(materiel=self.crane, status=Location.CANCELLED,
                        start_date=midnight(start), end_date=midnight(start + timedelta(days=3)))

        params = {"available_from": str(start + timedelta(days=1)), "available_to": str(start + timedelta(days=2))}
        r = self.client.get("/api/materiels/", params)
        self.assertEqual(self._names(r), {"Liebherr LTM 1050", "Bomag BW 120"})

        r = self.client.get("/api/materiels/available/", params)
        self.assertEqual(self._names(r), {"Liebherr LTM 1050"})

    def test_categories(self):
        r = self.client.get("/api/materiels/categories/")
        self.assertEqual(r.status_code, 200)
        by_value = {c["value"]: c for c in r.data["data"]}
        self.assertEqual(len(by_value), len(Materiel.Type.choices))
        self.assertEqual(by_value["GRUE_MOBILE"]["count"], 1)
        self.assertEqual(by_value["PELLETEUSE"]["count"], 0)
        self.assertEqual(by_value["NACELLE_CISEAUX"]["label"], "Scissor lift")

    def test_retrieve_and_missing(self):
        r = self.client.get(f"/api/materiels/{self.crane.id}/")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data["data"]["name"], "Liebherr LTM 1050")

        r = self.client.get("/api/materiels/999999/")
        self.assertEqual(r.status_code, 404)
        self.assertEqual(r.data["code"], "NOT_FOUND")


class MaterielAdminTests(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.admin = AdminFactory()
        self.user = UserFactory()
        self.payload = {
            "name": "Manitou MT 1440",
            "type": "TELESCOPIQUE",
            "pricePerDay": "310.00",
            "description": "Chariot telescopique 14 m",
            "specifications": {"hauteur": "13,75 m", "capacite": "4 t"},
        }

    def test_client_cannot_create(self):
        self.client.force_authenticate(self.user)
        r = self.client.post("/api/materiels/", self.payload, format="json")
        self.assertEqual(r.status_code, 403)
        self.assertEqual(r.data["code"], "FORBIDDEN")

    def test_admin_creates_and_updates(self):
        self.client.force_authenticate(self.admin)
        r = self.client.post("/api/materiels/", self.payload, format="json")
        self.assertEqual(r.status_code, 201)
        materiel_id = r.data["data"]["id"]
        self.assertEqual(Materiel.objects.get(pk=materiel_id).price_per_day, Decimal("310.00"))

        r = self.client.patch(f"/api/materiels/{materiel_id}/", {"status": "MAINTENANCE"}, format="json")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data["data"]["status"], "MAINTENANCE")

    def test_negative_price_rejected(self):
        self.client.force_authenticate(self.admin)
        r = self.client.post("/api/materiels/", {**self.payload, "pricePerDay": "-1"}, format="json")
        self.assertEqual(r.status_code, 400)
        self.assertIn("pricePerDay", r.data["details"])

    def test_delete_refused_with_active_rental(self):
        materiel = MaterielFactory()
        LocationFactory(materiel=materiel, status=Location.ACTIVE)
        self.client.force_authenticate(self.admin)
        r = self.client.delete(f"/api/materiels/{materiel.id}/")
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.data["code"], "INVALID_STATE")
        self.assertTrue(Materiel.objects.filter(pk=materiel.pk).exists())

    def test_delete_refused_with_history(self):
        materiel = MaterielFactory()
        LocationFactory(materiel=materiel, status=Location.COMPLETED)
        self.client.force_authenticate(self.admin)
        r = self.client.delete(f"/api/materiels/{materiel.id}/")
        self.assertEqual(r.status_code, 400)
        self.assertIn("history", r.data["error"])

    def test_delete_unused(self):
        materiel = MaterielFactory()
        self.client.force_authenticate(self.admin)
        r = self.client.delete(f"/api/materiels/{materiel.id}/")
        self.assertEqual(r.status_code, 200)
        self.assertFalse(Materiel.objects.filter(pk=materiel.pk).exists())


class MaterielAvailabilityTests(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.materiel = MaterielFactory(price_per_day=Decimal("100.00"))
        self.first = timezone.localdate() + timedelta(days=5)
        # ACTIVE covers days 0 and 1, PENDING covers day 3
        LocationFactory(materiel=self.materiel, status=Location.ACTIVE,
                        start_date=midnight(self.first), end_date=midnight(self.first + timedelta(days=2)))
        LocationFactory(materiel=self.materiel, status=Location.PENDING,
                        start_date=midnight(self.first + timedelta(days=3)),
                        end_date=midnight(self.first + timedelta(days=4)))
        self.url = f"/api/materiels/{self.materiel.id}/availability/"

    def test_day_by_day_statuses(self):
        r = self.client.get(self.url, {
            "startDate": str(self.first), "endDate": str(self.first + timedelta(days=4)),
        })
        self.assertEqual(r.status_code, 200)
        data = r.data["data"]
        statuses = [d["status"] for d in data["days"]]
        self.assertEqual(statuses, ["rented", "rented", "available", "reserved", "available"])
        self.assertEqual(data["summary"]["totalDays"], 5)
        self.assertEqual(data["summary"]["rentedDays"], 2)
        self.assertEqual(data["summary"]["reservedDays"], 1)
        self.assertEqual(data["nextAvailableDate"], str(self.first + timedelta(days=2)))

    def test_maintenance_materiel(self):
        self.materiel.status = Materiel.Status.MAINTENANCE
        self.materiel.save()
        r = self.client.get(self.url, {"startDate": str(self.first), "endDate": str(self.first)})
        self.assertEqual(r.data["data"]["days"][0]["status"], "maintenance")
        self.assertIsNone(r.data["data"]["nextAvailableDate"])

    def test_default_window(self):
        r = self.client.get(self.url)
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data["data"]["summary"]["totalDays"], 31)

    def test_invalid_dates(self):
        r = self.client.get(self.url, {"startDate": "tomorrow"})
        self.assertEqual(r.status_code, 400)
        r = self.client.get(self.url, {"startDate": "2030-01-10", "endDate": "2030-01-01"})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.data["code"], "VALIDATION_ERROR")

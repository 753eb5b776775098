from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from src.rentals.factories import AdminFactory, LocationFactory, MaterielFactory, UserFactory
from src.rentals.models import Location
from src.rentals.services import BookingEngine


def day(offset):
    """Calendar date `offset` days from today, as sent by clients."""
    return str(timezone.localdate() + timedelta(days=offset))


@pytest.mark.django_db
class TestCreateLocationAPI:
    def setup_method(self):
        # Test client without JWT; force_authenticate for simplicity
        self.client = APIClient()
        self.user = UserFactory(email="client@example.com", name="Jean Dupont")
        self.materiel = MaterielFactory(price_per_day=Decimal("100.00"), name="Genie GS-1932")

    def _auth(self, user):
        self.client.force_authenticate(user=user)

    def _create(self, start, end, **extra):
        payload = {"materielId": self.materiel.id, "startDate": start, "endDate": end, **extra}
        return self.client.post("/api/locations/", payload, format="json")

    def test_create_returns_envelope_with_joined_summaries(self):
        self._auth(self.user)
        resp = self._create(day(10), day(12), notes="Chantier Lyon")

        assert resp.status_code == 201
        assert resp.data["success"] is True
        data = resp.data["data"]
        assert data["totalPrice"] == "200.00"
        assert data["status"] == Location.ACTIVE
        assert data["notes"] == "Chantier Lyon"
        assert data["userId"] == self.user.id
        assert data["user"] == {"id": self.user.id, "name": "Jean Dupont", "email": "client@example.com"}
        assert data["materiel"]["name"] == "Genie GS-1932"
        assert data["materiel"]["pricePerDay"] == "100.00"
        assert data["startDate"].startswith(day(10))

    def test_iso_datetimes_are_accepted(self):
        self._auth(self.user)
        resp = self._create(f"{day(10)}T08:00:00Z", f"{day(11)}T12:00:00Z")
        assert resp.status_code == 201
        assert resp.data["data"]["totalPrice"] == "200.00"

    def test_overlap_returns_409(self):
        self._auth(self.user)
        assert self._create(day(10), day(12)).status_code == 201

        self._auth(UserFactory())
        resp = self._create(day(11), day(13))
        assert resp.status_code == 409
        assert resp.data["success"] is False
        assert resp.data["code"] == "CONFLICT"
        assert Location.objects.count() == 1

    def test_end_before_start_returns_400(self):
        self._auth(self.user)
        resp = self._create(day(12), day(10))
        assert resp.status_code == 400
        assert resp.data["code"] == "VALIDATION_ERROR"
        assert "endDate" in resp.data["details"]

    def test_past_dates_are_booked_like_any_other(self):
        self._auth(self.user)
        resp = self._create("2025-01-01", "2025-01-03")
        assert resp.status_code == 201
        assert resp.data["data"]["totalPrice"] == "200.00"
        assert resp.data["data"]["status"] == Location.ACTIVE

    def test_missing_fields_return_400(self):
        self._auth(self.user)
        resp = self.client.post("/api/locations/", {"startDate": day(1)}, format="json")
        assert resp.status_code == 400
        assert resp.data["code"] == "VALIDATION_ERROR"
        assert set(resp.data["details"]) >= {"materielId", "endDate"}

    def test_invalid_date_returns_400(self):
        self._auth(self.user)
        resp = self._create("2030-02-30", day(3))
        assert resp.status_code == 400
        assert "startDate" in resp.data["details"]

    def test_unknown_materiel_returns_404(self):
        self._auth(self.user)
        resp = self.client.post(
            "/api/locations/",
            {"materielId": 999999, "startDate": day(1), "endDate": day(3)},
            format="json",
        )
        assert resp.status_code == 404
        assert resp.data["code"] == "NOT_FOUND"

    def test_materiel_in_maintenance_returns_invalid_state(self):
        self.materiel.status = "MAINTENANCE"
        self.materiel.save()
        self._auth(self.user)
        resp = self._create(day(1), day(3))
        assert resp.status_code == 400
        assert resp.data["code"] == "INVALID_STATE"

    def test_anonymous_returns_401(self):
        resp = self._create(day(1), day(3))
        assert resp.status_code == 401
        assert resp.data == {
            "success": False,
            "code": "AUTH_ERROR",
            "error": "Authentication credentials were not provided.",
        }

    def test_reserve_creates_pending(self):
        self._auth(self.user)
        resp = self.client.post(
            "/api/locations/reserve/",
            {"materielId": self.materiel.id, "startDate": day(5), "endDate": day(6)},
            format="json",
        )
        assert resp.status_code == 201
        assert resp.data["data"]["status"] == Location.PENDING
        assert resp.data["data"]["totalPrice"] == "100.00"


@pytest.mark.django_db
class TestLocationActionsAPI:
    def setup_method(self):
        self.client = APIClient()
        self.user = UserFactory(email="client@example.com")
        self.other = UserFactory()
        self.admin = AdminFactory()
        self.materiel = MaterielFactory(price_per_day=Decimal("100.00"))
        start = timezone.now().replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=10)
        self.location = BookingEngine().create_rental(
            self.user, self.materiel.id, start, start + timedelta(days=2), notes="Livraison 7h",
        )
        self.start = start

    def _auth(self, user):
        self.client.force_authenticate(user=user)

    def test_extend(self):
        self._auth(self.user)
        new_end = (self.start + timedelta(days=4)).date().isoformat()
        resp = self.client.post(f"/api/locations/{self.location.id}/extend/", {"newEndDate": new_end}, format="json")

        assert resp.status_code == 200
        assert resp.data["data"]["totalPrice"] == "400.00"
        self.location.refresh_from_db()
        assert self.location.end_date == self.start + timedelta(days=4)

    def test_extend_not_later_returns_400(self):
        self._auth(self.user)
        resp = self.client.post(
            f"/api/locations/{self.location.id}/extend/",
            {"newEndDate": self.start.date().isoformat()},
            format="json",
        )
        assert resp.status_code == 400
        assert resp.data["code"] == "VALIDATION_ERROR"

    def test_extend_into_other_booking_returns_409(self):
        LocationFactory(
            materiel=self.materiel, status=Location.CONFIRMED,
            start_date=self.start + timedelta(days=3), end_date=self.start + timedelta(days=5),
        )
        self._auth(self.user)
        new_end = (self.start + timedelta(days=4)).date().isoformat()
        resp = self.client.post(f"/api/locations/{self.location.id}/extend/", {"newEndDate": new_end}, format="json")
        assert resp.status_code == 409

    def test_extend_by_stranger_returns_403(self):
        self._auth(self.other)
        new_end = (self.start + timedelta(days=4)).date().isoformat()
        resp = self.client.post(f"/api/locations/{self.location.id}/extend/", {"newEndDate": new_end}, format="json")
        assert resp.status_code == 403
        assert resp.data["code"] == "FORBIDDEN"

    def test_extend_missing_returns_404(self):
        self._auth(self.user)
        resp = self.client.post("/api/locations/999999/extend/", {"newEndDate": day(30)}, format="json")
        assert resp.status_code == 404

    def test_cancel_with_reason(self):
        self._auth(self.user)
        resp = self.client.post(
            f"/api/locations/{self.location.id}/cancel/", {"reason": "client changed plans"}, format="json",
        )
        assert resp.status_code == 200
        assert resp.data["data"]["status"] == Location.CANCELLED
        notes = resp.data["data"]["notes"]
        assert notes.startswith("Livraison 7h\n\n")
        assert notes.endswith("Reason: client changed plans")

    def test_cancel_short_reason_returns_400(self):
        self._auth(self.user)
        resp = self.client.post(f"/api/locations/{self.location.id}/cancel/", {"reason": "nope"}, format="json")
        assert resp.status_code == 400
        assert resp.data["code"] == "VALIDATION_ERROR"

    def test_cancel_completed_returns_400(self):
        Location.objects.filter(pk=self.location.pk).update(status=Location.COMPLETED)
        self._auth(self.user)
        resp = self.client.post(f"/api/locations/{self.location.id}/cancel/", {}, format="json")
        assert resp.status_code == 400
        assert resp.data["code"] == "INVALID_STATE"
        assert "completed" in resp.data["error"].lower()

    def test_admin_can_cancel_any_rental(self):
        self._auth(self.admin)
        resp = self.client.post(f"/api/locations/{self.location.id}/cancel/", {}, format="json")
        assert resp.status_code == 200

    def test_retrieve_own(self):
        self._auth(self.user)
        resp = self.client.get(f"/api/locations/{self.location.id}/")
        assert resp.status_code == 200
        assert resp.data["data"]["id"] == self.location.id

    def test_retrieve_foreign_returns_403(self):
        self._auth(self.other)
        resp = self.client.get(f"/api/locations/{self.location.id}/")
        assert resp.status_code == 403

    def test_delete_is_soft_cancel(self):
        self._auth(self.user)
        resp = self.client.delete(f"/api/locations/{self.location.id}/")
        assert resp.status_code == 200
        assert resp.data["data"]["status"] == Location.CANCELLED
        assert Location.objects.filter(pk=self.location.pk).exists()

    def test_owner_patches_notes(self):
        self._auth(self.user)
        resp = self.client.patch(f"/api/locations/{self.location.id}/", {"notes": "Portail B"}, format="json")
        assert resp.status_code == 200
        assert resp.data["data"]["notes"] == "Portail B"

    def test_owner_cannot_patch_status(self):
        self._auth(self.user)
        resp = self.client.patch(f"/api/locations/{self.location.id}/", {"status": "COMPLETED"}, format="json")
        assert resp.status_code == 403

    def test_admin_patches_status(self):
        self._auth(self.admin)
        resp = self.client.patch(f"/api/locations/{self.location.id}/", {"status": "COMPLETED"}, format="json")
        assert resp.status_code == 200
        assert resp.data["data"]["status"] == Location.COMPLETED

    def test_invalid_status_returns_400(self):
        self._auth(self.admin)
        resp = self.client.patch(f"/api/locations/{self.location.id}/", {"status": "LOST"}, format="json")
        assert resp.status_code == 400
        assert "status" in resp.data["details"]


@pytest.mark.django_db
class TestLocationListsAPI:
    def setup_method(self):
        self.client = APIClient()
        self.user = UserFactory()
        self.other = UserFactory()
        self.admin = AdminFactory()
        now = timezone.now()

        self.active = LocationFactory(user=self.user, status=Location.ACTIVE,
                                      start_date=now - timedelta(days=1), end_date=now + timedelta(days=2))
        self.pending = LocationFactory(user=self.user, status=Location.PENDING,
                                       start_date=now + timedelta(days=5), end_date=now + timedelta(days=7))
        self.far = LocationFactory(user=self.user, status=Location.CONFIRMED,
                                   start_date=now + timedelta(days=60), end_date=now + timedelta(days=61))
        self.done = LocationFactory(user=self.user, status=Location.COMPLETED,
                                    start_date=now - timedelta(days=20), end_date=now - timedelta(days=18))
        self.foreign = LocationFactory(user=self.other, status=Location.ACTIVE,
                                       start_date=now, end_date=now + timedelta(days=1))

    def _ids(self, resp):
        return {item["id"] for item in resp.data["data"]}

    def test_list_is_scoped_to_own_rentals(self):
        self.client.force_authenticate(self.user)
        resp = self.client.get("/api/locations/")
        assert resp.status_code == 200
        assert self._ids(resp) == {self.active.id, self.pending.id, self.far.id, self.done.id}
        assert resp.data["pagination"] == {"page": 1, "limit": 10, "total": 4, "pages": 1}

    def test_user_filter_is_ignored_for_clients(self):
        self.client.force_authenticate(self.user)
        resp = self.client.get("/api/locations/", {"user": self.other.id})
        assert self.foreign.id not in self._ids(resp)

    def test_admin_sees_everything_and_filters(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.get("/api/locations/")
        assert resp.data["pagination"]["total"] == 5

        resp = self.client.get("/api/locations/", {"user": self.other.id})
        assert self._ids(resp) == {self.foreign.id}

        resp = self.client.get("/api/locations/", {"status": "COMPLETED"})
        assert self._ids(resp) == {self.done.id}

    def test_limit_controls_page_size(self):
        self.client.force_authenticate(self.user)
        resp = self.client.get("/api/locations/", {"limit": 3, "page": 2})
        assert len(resp.data["data"]) == 1
        assert resp.data["pagination"]["pages"] == 2

    def test_active_with_stats(self):
        self.client.force_authenticate(self.user)
        resp = self.client.get("/api/locations/active/")
        assert resp.status_code == 200
        assert self._ids(resp) == {self.active.id}
        assert resp.data["stats"]["count"] == 1
        assert Decimal(resp.data["stats"]["totalValue"]) == self.active.total_price

    def test_active_stats_follow_filters(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.get("/api/locations/active/")
        assert resp.data["stats"]["count"] == 2

        resp = self.client.get("/api/locations/active/", {"materiel": self.foreign.materiel_id})
        assert self._ids(resp) == {self.foreign.id}
        assert resp.data["stats"]["count"] == 1
        assert Decimal(resp.data["stats"]["totalValue"]) == self.foreign.total_price

    def test_upcoming_window(self):
        self.client.force_authenticate(self.user)
        resp = self.client.get("/api/locations/upcoming/")
        assert self._ids(resp) == {self.pending.id}

        resp = self.client.get("/api/locations/upcoming/", {"days": 90})
        assert self._ids(resp) == {self.pending.id, self.far.id}

    def test_upcoming_invalid_days(self):
        self.client.force_authenticate(self.user)
        resp = self.client.get("/api/locations/upcoming/", {"days": "abc"})
        assert resp.status_code == 400

    def test_history(self):
        self.client.force_authenticate(self.user)
        resp = self.client.get("/api/locations/history/")
        assert self._ids(resp) == {self.done.id}

    def test_by_material_is_admin_only(self):
        url = f"/api/locations/by-material/{self.foreign.materiel_id}/"
        self.client.force_authenticate(self.user)
        assert self.client.get(url).status_code == 403

        self.client.force_authenticate(self.admin)
        resp = self.client.get(url)
        assert resp.status_code == 200
        assert self._ids(resp) == {self.foreign.id}

    def test_client_rentals(self):
        self.client.force_authenticate(self.user)
        assert self.client.get(f"/api/locations/client/{self.other.id}/").status_code == 403

        resp = self.client.get(f"/api/locations/client/{self.user.id}/")
        assert resp.status_code == 200
        assert len(resp.data["data"]) == 4

        self.client.force_authenticate(self.admin)
        resp = self.client.get(f"/api/locations/client/{self.other.id}/")
        assert self._ids(resp) == {self.foreign.id}

"""
Booking engine for equipment rentals.

All writes that can create an overlap on a materiel (create, extend,
re-activation) run inside one transaction that first locks the materiel
row with ``SELECT ... FOR UPDATE``. Concurrent writers on the same materiel
are therefore serialized and the second one sees the first one's rental.
"""
import logging
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from src.exceptions import (
    BookingConflict,
    InvalidInput,
    InvalidState,
    RentalForbidden,
    RentalNotFound,
)
from ..models import Location, Materiel

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ONE_DAY = timedelta(days=1)


def rental_days(start, end):
    """Number of billed days: partial days are rounded up."""
    days, remainder = divmod(end - start, ONE_DAY)
    if remainder:
        days += 1
    return days


def compute_total_price(start, end, price_per_day):
    price = Decimal(price_per_day)
    return (Decimal(rental_days(start, end)) * price).quantize(CENTS, rounding=ROUND_HALF_UP)


def overlap_q(start, end, same_day_handover=False, prefix=""):
    """
    Q matching rentals whose [start_date, end_date] intersects [start, end].

    Boundaries are inclusive unless ``same_day_handover`` is set, in which
    case a rental ending exactly when another starts does not overlap.
    """
    if same_day_handover:
        return Q(**{f"{prefix}start_date__lt": end, f"{prefix}end_date__gt": start})
    return Q(**{f"{prefix}start_date__lte": end, f"{prefix}end_date__gte": start})


def default_blocking_statuses():
    return tuple(getattr(settings, "RENTALS_BLOCKING_STATUSES", Location.OPEN_STATUSES))


def same_day_handover_enabled():
    return bool(getattr(settings, "RENTALS_SAME_DAY_HANDOVER", False))


class EquipmentDirectory:
    """Looks up materiels. ``lock=True`` must be used inside a transaction."""

    def find_by_id(self, materiel_id, lock=False):
        qs = Materiel.objects.all()
        if lock:
            qs = qs.select_for_update()
        return qs.filter(pk=materiel_id).first()


class RentalStore:
    """ORM-backed persistence for rentals."""

    def __init__(self, blocking_statuses=None, same_day_handover=None):
        self.blocking_statuses = tuple(blocking_statuses) if blocking_statuses is not None else None
        self.same_day_handover = same_day_handover

    def get(self, location_id, lock=False):
        qs = Location.objects.select_related("user", "materiel")
        if lock:
            # no joins under FOR UPDATE: nullable outer joins are rejected by postgres
            qs = Location.objects.select_for_update()
        return qs.filter(pk=location_id).first()

    def find_conflicting(self, materiel_id, start, end, exclude_id=None, statuses=None):
        if statuses is None:
            statuses = self.blocking_statuses or default_blocking_statuses()
        handover = self.same_day_handover
        if handover is None:
            handover = same_day_handover_enabled()

        qs = Location.objects.filter(materiel_id=materiel_id, status__in=statuses)
        qs = qs.filter(overlap_q(start, end, same_day_handover=handover))
        if exclude_id is not None:
            qs = qs.exclude(pk=exclude_id)
        return list(qs.order_by("start_date"))

    def create(self, **fields):
        return Location.objects.create(**fields)

    def update(self, location, **fields):
        for name, value in fields.items():
            setattr(location, name, value)
        location.save(update_fields=[*fields, "updated_at"])
        return location

    def refresh(self, location):
        return self.get(location.pk)


class BookingEngine:
    """
    Create, extend, cancel and update rentals.

    Collaborators are passed in explicitly; by default they are ORM-backed.
    Every public method returns the stored ``Location`` with ``user`` and
    ``materiel`` loaded.
    """

    def __init__(self, equipment=None, store=None, blocking_statuses=None, same_day_handover=None):
        self.blocking_statuses = tuple(
            blocking_statuses if blocking_statuses is not None else default_blocking_statuses()
        )
        self.same_day_handover = (
            same_day_handover if same_day_handover is not None else same_day_handover_enabled()
        )
        self.equipment = equipment or EquipmentDirectory()
        self.store = store or RentalStore(self.blocking_statuses, self.same_day_handover)

    # -------------------------
    # Helpers
    # -------------------------
    @staticmethod
    def _is_admin(user):
        return bool(getattr(user, "is_admin", False) or getattr(user, "is_staff", False))

    def _check_owner(self, location, requester):
        if location.user_id != getattr(requester, "id", None) and not self._is_admin(requester):
            raise RentalForbidden("You are not allowed to manage this rental.")

    def _load(self, location_id):
        location = self.store.get(location_id)
        if location is None:
            raise RentalNotFound("Rental not found.")
        return location

    def _lock_for_write(self, location_id, requester):
        """
        Check the rental is visible to ``requester`` then lock its materiel
        and re-read the rental under the lock. Call inside ``transaction.atomic``.
        """
        location = self._load(location_id)
        self._check_owner(location, requester)
        self.equipment.find_by_id(location.materiel_id, lock=True)
        locked = self.store.get(location_id, lock=True)
        if locked is None:
            raise RentalNotFound("Rental not found.")
        return locked

    def _ensure_free(self, materiel_id, start, end, exclude_id=None):
        conflicts = self.store.find_conflicting(
            materiel_id, start, end, exclude_id=exclude_id, statuses=self.blocking_statuses,
        )
        if conflicts:
            logger.warning(
                "Booking conflict on materiel %s for %s..%s (conflicting rentals: %s)",
                materiel_id, start.isoformat(), end.isoformat(),
                ", ".join(str(c.pk) for c in conflicts),
            )
            raise BookingConflict("The equipment is already booked for this period.")

    # -------------------------
    # Operations
    # -------------------------
    def create_rental(self, user, materiel_id, start_date, end_date, notes="", status=Location.ACTIVE):
        if end_date <= start_date:
            raise InvalidInput("End date must be after start date.")

        with transaction.atomic():
            materiel = self.equipment.find_by_id(materiel_id, lock=True)
            if materiel is None:
                raise RentalNotFound("Materiel not found.")
            if materiel.status != Materiel.Status.AVAILABLE:
                raise InvalidState("Materiel is not available for rental.")

            self._ensure_free(materiel.pk, start_date, end_date)

            location = self.store.create(
                user=user,
                materiel=materiel,
                start_date=start_date,
                end_date=end_date,
                total_price=compute_total_price(start_date, end_date, materiel.price_per_day),
                status=status,
                notes=notes or "",
            )

        logger.info(
            "Rental %s created by user %s on materiel %s (%s..%s, total %s, %s)",
            location.pk, user.pk, materiel.pk, start_date.isoformat(), end_date.isoformat(),
            location.total_price, location.status,
        )
        return self.store.refresh(location)

    def extend_rental(self, location_id, new_end_date, requester):
        with transaction.atomic():
            location = self._lock_for_write(location_id, requester)

            if location.status not in Location.OPEN_STATUSES:
                raise InvalidState(f"Rental with status {location.status} cannot be extended.")
            if new_end_date <= location.end_date:
                raise InvalidInput("New end date must be after the current end date.")

            self._ensure_free(location.materiel_id, location.end_date, new_end_date, exclude_id=location.pk)

            materiel = self.equipment.find_by_id(location.materiel_id)
            previous_end = location.end_date
            location = self.store.update(
                location,
                end_date=new_end_date,
                total_price=compute_total_price(location.start_date, new_end_date, materiel.price_per_day),
            )

        logger.info(
            "Rental %s extended by user %s: %s -> %s (total %s)",
            location.pk, requester.pk, previous_end.isoformat(), new_end_date.isoformat(),
            location.total_price,
        )
        return self.store.refresh(location)

    def cancel_rental(self, location_id, requester, reason=None):
        min_length = getattr(settings, "RENTALS_CANCEL_REASON_MIN_LENGTH", 10)
        if reason is not None:
            reason = reason.strip()
            if len(reason) < min_length:
                raise InvalidInput(f"Reason must be at least {min_length} characters long.")

        with transaction.atomic():
            location = self._load(location_id)
            self._check_owner(location, requester)
            location = self.store.get(location_id, lock=True)
            if location is None:
                raise RentalNotFound("Rental not found.")

            if location.status == Location.CANCELLED:
                raise InvalidState("Rental is already cancelled.")
            if location.status == Location.COMPLETED:
                raise InvalidState("Cannot cancel completed rental.")

            line = "[{}] Rental cancelled by {}".format(
                timezone.now().strftime("%Y-%m-%d %H:%M"), requester.email,
            )
            if reason:
                line += f" - Reason: {reason}"
            notes = f"{location.notes}\n\n{line}" if location.notes else line

            location = self.store.update(location, status=Location.CANCELLED, notes=notes)

        logger.info("Rental %s cancelled by user %s", location.pk, requester.pk)
        return self.store.refresh(location)

    def update_rental(self, location_id, requester, status=None, notes=None):
        """Edit notes (owner or admin) and status (admin only)."""
        location = self._load(location_id)
        self._check_owner(location, requester)

        fields = {}
        if notes is not None:
            fields["notes"] = notes
        if status is not None and status != location.status:
            if not self._is_admin(requester):
                raise RentalForbidden("Only administrators can change the rental status.")
            if status not in dict(Location.STATUS_CHOICES):
                raise InvalidInput(f"Unknown status {status!r}.")
            fields["status"] = status

        if not fields:
            return location

        with transaction.atomic():
            if "status" in fields:
                location = self._lock_for_write(location_id, requester)
                reactivating = (
                    fields["status"] in self.blocking_statuses
                    and location.status not in self.blocking_statuses
                )
                if reactivating:
                    self._ensure_free(
                        location.materiel_id, location.start_date, location.end_date, exclude_id=location.pk,
                    )
            else:
                location = self.store.get(location_id, lock=True)
                if location is None:
                    raise RentalNotFound("Rental not found.")
            previous_status = location.status
            location = self.store.update(location, **fields)

        if "status" in fields:
            logger.info(
                "Rental %s status changed by user %s: %s -> %s",
                location.pk, requester.pk, previous_status, location.status,
            )
        return self.store.refresh(location)

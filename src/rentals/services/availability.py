"""Day-by-day availability calendar for one materiel."""
from datetime import datetime, time, timedelta

from django.utils import timezone

from ..models import Location, Materiel

AVAILABLE = "available"
RENTED = "rented"
RESERVED = "reserved"
MAINTENANCE = "maintenance"

DOWN_STATUSES = (Materiel.Status.MAINTENANCE, Materiel.Status.OUT_OF_ORDER)
RESERVED_STATUSES = (Location.PENDING, Location.CONFIRMED)


def _day_bounds(day):
    start = timezone.make_aware(datetime.combine(day, time.min))
    return start, start + timedelta(days=1)


def day_status(materiel, rentals, day):
    """
    Status of ``materiel`` on calendar ``day`` given its rentals.

    A rental covers a day when it intersects [00:00, next 00:00).
    """
    if materiel.status in DOWN_STATUSES:
        return MAINTENANCE, []
    day_start, day_end = _day_bounds(day)
    covering = [r for r in rentals if r.start_date < day_end and r.end_date > day_start]
    statuses = {r.status for r in covering}
    if Location.ACTIVE in statuses:
        return RENTED, covering
    if statuses & set(RESERVED_STATUSES):
        return RESERVED, covering
    return AVAILABLE, covering


def build_availability(materiel, from_date, to_date):
    """
    Calendar for ``materiel`` over [from_date, to_date] (both dates included).

    Returns a dict with ``days``, a ``summary`` of day counts and
    ``nextAvailableDate`` (first available day in the window or None).
    """
    window_start, _ = _day_bounds(from_date)
    _, window_end = _day_bounds(to_date)
    rentals = list(
        Location.objects
        .filter(
            materiel=materiel,
            status__in=(Location.ACTIVE, *RESERVED_STATUSES),
            start_date__lt=window_end,
            end_date__gt=window_start,
        )
        .order_by("start_date")
    )

    days = []
    day = from_date
    while day <= to_date:
        status, covering = day_status(materiel, rentals, day)
        days.append({
            "date": day.isoformat(),
            "status": status,
            "locationIds": [r.pk for r in covering],
        })
        day += timedelta(days=1)

    counts = {key: 0 for key in (AVAILABLE, RENTED, RESERVED, MAINTENANCE)}
    for item in days:
        counts[item["status"]] += 1
    total = len(days)
    occupied = counts[RENTED] + counts[RESERVED]
    next_available = next((d["date"] for d in days if d["status"] == AVAILABLE), None)

    return {
        "materiel": {"id": materiel.pk, "name": materiel.name, "type": materiel.type, "status": materiel.status},
        "period": {"startDate": from_date.isoformat(), "endDate": to_date.isoformat()},
        "days": days,
        "summary": {
            "totalDays": total,
            "availableDays": counts[AVAILABLE],
            "rentedDays": counts[RENTED],
            "reservedDays": counts[RESERVED],
            "maintenanceDays": counts[MAINTENANCE],
            "occupancyRate": round(occupied * 100 / total, 1) if total else 0,
        },
        "nextAvailableDate": next_available,
    }

from datetime import datetime, time

from django.utils.dateparse import parse_date
from rest_framework import serializers


class RentalDateTimeField(serializers.DateTimeField):
    """
    Datetime input that also accepts a bare calendar date (YYYY-MM-DD),
    read as midnight in the current time zone.
    """
    default_error_messages = {
        "invalid": "Invalid date or format. Expected YYYY-MM-DD or an ISO 8601 datetime.",
    }

    def to_internal_value(self, value):
        if isinstance(value, str):
            try:
                day = parse_date(value.strip())
            except ValueError:
                self.fail("invalid")
            if day is not None:
                value = datetime.combine(day, time.min)
        return super().to_internal_value(value)


class UserTinySerializer(serializers.Serializer):
    """Projection of the renting user embedded in rentals."""
    id = serializers.IntegerField()
    name = serializers.CharField(allow_blank=True)
    email = serializers.EmailField()


class MaterielTinySerializer(serializers.Serializer):
    """Projection of the rented materiel embedded in rentals."""
    id = serializers.IntegerField()
    name = serializers.CharField()
    type = serializers.CharField()
    pricePerDay = serializers.DecimalField(source="price_per_day", max_digits=12, decimal_places=2)

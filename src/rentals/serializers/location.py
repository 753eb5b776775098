from drf_spectacular.utils import extend_schema_field
from rest_framework import serializers

from src.rentals.models import Location
from .common import MaterielTinySerializer, RentalDateTimeField, UserTinySerializer


class LocationSerializer(serializers.ModelSerializer):
    """Read representation of a rental with user and materiel summaries."""
    userId = serializers.IntegerField(source="user_id", read_only=True)
    materielId = serializers.IntegerField(source="materiel_id", read_only=True)
    startDate = serializers.DateTimeField(source="start_date", read_only=True)
    endDate = serializers.DateTimeField(source="end_date", read_only=True)
    totalPrice = serializers.DecimalField(source="total_price", max_digits=12, decimal_places=2, read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)
    user = serializers.SerializerMethodField()
    materiel = serializers.SerializerMethodField()

    class Meta:
        model = Location
        fields = (
            "id", "userId", "materielId",
            "startDate", "endDate", "totalPrice",
            "status", "notes",
            "createdAt", "updatedAt",
            "user", "materiel",
        )
        read_only_fields = fields

    @extend_schema_field(UserTinySerializer)
    def get_user(self, obj):
        u = obj.user
        return {"id": u.id, "name": u.name, "email": u.email}

    @extend_schema_field(MaterielTinySerializer)
    def get_materiel(self, obj):
        return MaterielTinySerializer(obj.materiel).data


class LocationCreateSerializer(serializers.Serializer):
    materielId = serializers.IntegerField(source="materiel_id", min_value=1)
    startDate = RentalDateTimeField(source="start_date")
    endDate = RentalDateTimeField(source="end_date")
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000, default="")

    def validate(self, attrs):
        if attrs["end_date"] <= attrs["start_date"]:
            raise serializers.ValidationError({"endDate": ["End date must be after start date."]})
        return attrs


class LocationExtendSerializer(serializers.Serializer):
    newEndDate = RentalDateTimeField(source="new_end_date")


class LocationCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=1000)


class LocationUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Location.STATUS_CHOICES, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)

from rest_framework import serializers

from src.rentals.models import Materiel


class MaterielSerializer(serializers.ModelSerializer):
    pricePerDay = serializers.DecimalField(
        source="price_per_day", max_digits=12, decimal_places=2, min_value=0,
    )
    typeLabel = serializers.CharField(source="get_type_display", read_only=True)
    manualUrl = serializers.CharField(source="manual_url", required=False, allow_blank=True, max_length=255)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Materiel
        fields = (
            "id", "name", "type", "typeLabel", "description",
            "pricePerDay", "status", "specifications", "images", "manualUrl",
            "createdAt", "updatedAt",
        )
        read_only_fields = ("id", "typeLabel", "createdAt", "updatedAt")

    def validate_name(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError("Name must be at least 2 characters long.")
        return value

    def validate_specifications(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Specifications must be an object.")
        return value

    def validate_images(self, value):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise serializers.ValidationError("Images must be a list of strings.")
        return value


class CategorySerializer(serializers.Serializer):
    value = serializers.CharField()
    label = serializers.CharField()
    count = serializers.IntegerField()

from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from django.core import exceptions as django_exc

from .models import CustomUser


class RegistrationSerializer(serializers.ModelSerializer):
    """Registration payload -> creates a client account and hashes password."""
    password = serializers.CharField(write_only=True, required=True, style={'input_type': 'password'})
    name = serializers.CharField(required=True, min_length=2, max_length=100)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=30)

    class Meta:
        model = CustomUser
        fields = ('email', 'password', 'name', 'phone', 'company', 'address')

    def validate_password(self, value):
        """Run Django's password validators (AUTH_PASSWORD_VALIDATORS)."""
        try:
            validate_password(value)
        except django_exc.ValidationError as e:
            raise serializers.ValidationError(list(e.messages))
        return value

    def create(self, validated_data):
        # role is never taken from the payload: self-registered accounts are clients
        return CustomUser.objects.create_user(
            email=validated_data['email'],
            password=validated_data['password'],
            name=validated_data.get('name', ''),
            phone=validated_data.get('phone', ''),
            company=validated_data.get('company', ''),
            address=validated_data.get('address', ''),
        )


class CustomUserSerializer(serializers.ModelSerializer):
    """Representation of a user; role/active are read-only for API clients."""

    class Meta:
        model = CustomUser
        fields = ('id', 'email', 'name', 'phone', 'company', 'address', 'role', 'is_active', 'date_joined')
        read_only_fields = ('id', 'role', 'is_active', 'date_joined')


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField(required=True)
    password = serializers.CharField(required=True, write_only=True, style={'input_type': 'password'})

from datetime import datetime, timezone

from django.conf import settings
from django.contrib.auth import authenticate
from drf_spectacular.utils import extend_schema, OpenApiResponse, extend_schema_view
from rest_framework import viewsets, mixins, status
from rest_framework import serializers as rf_serializers
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.generics import CreateAPIView
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import (
    TokenObtainPairView as BaseTokenObtainPairView,
    TokenRefreshView as BaseTokenRefreshView,
)

from src.responses import envelope
from src.rentals.permissions import IsAdminRole
from src.rentals.throttling import ScopedRateThrottleIsolated
from .models import CustomUser
from .serializers import CustomUserSerializer, RegistrationSerializer, LoginSerializer


def _set_auth_cookies(response, refresh):
    """Attach access/refresh JWTs as httpOnly cookies."""
    access_token = refresh.access_token
    for key, token in (("access_token", access_token), ("refresh_token", refresh)):
        response.set_cookie(
            key=key,
            value=str(token),
            httponly=True,
            secure=getattr(settings, 'AUTH_COOKIE_SECURE', not settings.DEBUG),
            samesite=getattr(settings, 'AUTH_COOKIE_SAMESITE', 'Lax'),
            expires=datetime.fromtimestamp(token['exp'], tz=timezone.utc),
            path=getattr(settings, 'AUTH_COOKIE_PATH', '/'),
            domain=getattr(settings, 'AUTH_COOKIE_DOMAIN', None),
        )
    return response


def _token_pair(refresh):
    return {"access": str(refresh.access_token), "refresh": str(refresh)}


class ThrottledTokenObtainPairView(BaseTokenObtainPairView):
    throttle_classes = (ScopedRateThrottle,)
    throttle_scope = 'auth_login'

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        return envelope(response.data)


class ThrottledTokenRefreshView(BaseTokenRefreshView):
    throttle_classes = (ScopedRateThrottle,)
    throttle_scope = 'auth_login'

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        return envelope(response.data)


class TokenPairSerializer(rf_serializers.Serializer):
    access = rf_serializers.CharField()
    refresh = rf_serializers.CharField()


class AuthResponseSerializer(rf_serializers.Serializer):
    success = rf_serializers.BooleanField()
    message = rf_serializers.CharField()
    data = rf_serializers.DictField()


@extend_schema(
    summary="Register & set auth cookies",
    request=RegistrationSerializer,
    responses={
        201: OpenApiResponse(
            response=AuthResponseSerializer,
            description="Account created; JWT tokens returned and set as httpOnly cookies."
        ),
        400: OpenApiResponse(description="Validation error")},
    tags=["auth"],
)
class RegisterView(CreateAPIView):
    serializer_class = RegistrationSerializer
    permission_classes = [AllowAny]
    throttle_classes = (ScopedRateThrottle,)
    throttle_scope = 'auth_register'

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        refresh = RefreshToken.for_user(user)
        data = {
            "user": CustomUserSerializer(user).data,
            "tokens": _token_pair(refresh),
        }
        response = envelope(data, message="Account created successfully.", status=status.HTTP_201_CREATED)
        return _set_auth_cookies(response, refresh)


@extend_schema(tags=["auth"])
class LoginView(APIView):
    permission_classes = [AllowAny]
    serializer_class = LoginSerializer
    throttle_classes = (ScopedRateThrottleIsolated,)

    def get_throttles(self):
        self.throttle_scope = 'auth_login' if self.request.method == 'POST' else None
        return super().get_throttles()

    @extend_schema(
        request=LoginSerializer,
        responses={
            200: OpenApiResponse(response=AuthResponseSerializer, description="Login successful; cookies set"),
            401: OpenApiResponse(description="Invalid credentials"),
        },
        auth=[],
    )
    def post(self, request, *args, **kwargs):
        serializer = self.serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = authenticate(
            request,
            email=serializer.validated_data['email'],
            password=serializer.validated_data['password'],
        )
        if not user:
            raise AuthenticationFailed("Invalid credentials")

        refresh = RefreshToken.for_user(user)
        data = {
            "user": CustomUserSerializer(user).data,
            "tokens": _token_pair(refresh),
        }
        response = envelope(data, message="Login successful")
        return _set_auth_cookies(response, refresh)


@extend_schema(
    summary="Logout",
    request=None,
    responses={
        200: OpenApiResponse(description="Logged out"),
        401: OpenApiResponse(description="Unauthorized"),
    },
    tags=["auth"],
)
class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        response = envelope(message="Logout successful")
        response.delete_cookie('access_token', path=getattr(settings, 'AUTH_COOKIE_PATH', '/'))
        response.delete_cookie('refresh_token', path=getattr(settings, 'AUTH_COOKIE_PATH', '/'))
        return response


@extend_schema(tags=["auth"])
class MeView(APIView):
    """Current account: read and edit own contact details."""
    permission_classes = [IsAuthenticated]
    serializer_class = CustomUserSerializer

    @extend_schema(responses={200: CustomUserSerializer})
    def get(self, request):
        return envelope(CustomUserSerializer(request.user).data)

    @extend_schema(request=CustomUserSerializer, responses={200: CustomUserSerializer})
    def patch(self, request):
        serializer = CustomUserSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return envelope(serializer.data, message="Profile updated")


@extend_schema(tags=["users"])
@extend_schema_view(
    list=extend_schema(summary="List users (admin)"),
    retrieve=extend_schema(summary="Retrieve user (admin)"),
)
class CustomUserViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    queryset = CustomUser.objects.order_by('-date_joined')
    serializer_class = CustomUserSerializer
    permission_classes = [IsAuthenticated, IsAdminRole]
    filterset_fields = ('role', 'is_active')

    def retrieve(self, request, *args, **kwargs):
        response = super().retrieve(request, *args, **kwargs)
        return envelope(response.data)

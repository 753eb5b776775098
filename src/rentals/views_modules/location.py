from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django_filters import rest_framework as df
from drf_spectacular.utils import (
    extend_schema_view, extend_schema, OpenApiParameter, OpenApiTypes,
    OpenApiExample, OpenApiResponse
)
from rest_framework import filters, mixins, permissions, status, viewsets
from rest_framework.decorators import action

from src.exceptions import InvalidInput, RentalForbidden
from src.responses import envelope
from ..models import Location, Materiel
from ..permissions import IsAdminRole, IsRentalOwnerOrAdmin, is_admin
from ..serializers import (
    LocationCancelSerializer,
    LocationCreateSerializer,
    LocationExtendSerializer,
    LocationSerializer,
    LocationUpdateSerializer,
)
from ..services import BookingEngine
from ..throttling import ScopedRateThrottleIsolated
from .filters import LocationFilter


RENTAL_ERRORS = {
    400: OpenApiResponse(description="Validation error or operation not allowed in the current state"),
    401: OpenApiResponse(description="Authentication required"),
    403: OpenApiResponse(description="Not the renting user nor an administrator"),
    404: OpenApiResponse(description="Rental or materiel not found"),
}


@extend_schema(tags=["locations"])
@extend_schema_view(
    list=extend_schema(
        summary="List rentals",
        description=(
            "Own rentals for clients, every rental for administrators. "
            "`user` is honoured for administrators only."
        ),
        parameters=[
            OpenApiParameter("status", OpenApiTypes.STR, description="PENDING | CONFIRMED | ACTIVE | COMPLETED | CANCELLED"),
            OpenApiParameter("materiel", OpenApiTypes.INT, description="Materiel id"),
            OpenApiParameter("materiel_type", OpenApiTypes.STR, description="Materiel type, e.g. NACELLE_CISEAUX"),
            OpenApiParameter("user", OpenApiTypes.INT, description="User id (administrators only)"),
            OpenApiParameter("limit", OpenApiTypes.INT, description="Page size (default 10, max 100)"),
            OpenApiParameter(
                "ordering", OpenApiTypes.STR,
                description="created_at, start_date, end_date, total_price, status (prefix '-' for desc)",
                examples=[OpenApiExample("Soonest first", value="start_date")],
            ),
        ],
    ),
    retrieve=extend_schema(
        summary="Get rental",
        responses={200: LocationSerializer, 403: RENTAL_ERRORS[403], 404: RENTAL_ERRORS[404]},
    ),
)
class LocationViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Rentals of equipment.

    - list/active/upcoming/history: own rentals (all of them for administrators)
    - create: immediate ACTIVE rental; reserve: PENDING reservation request
    - extend/cancel/update/destroy: renting user or administrator
    - status changes: administrators only
    """
    serializer_class = LocationSerializer
    permission_classes = (permissions.IsAuthenticated, IsRentalOwnerOrAdmin)
    filter_backends = (df.DjangoFilterBackend, filters.OrderingFilter)
    filterset_class = LocationFilter
    ordering_fields = ("created_at", "start_date", "end_date", "total_price", "status")
    ordering = ("-created_at",)
    lookup_value_regex = r"\d+"
    http_method_names = ['get', 'post', 'put', 'patch', 'delete', 'head', 'options']

    # Per-action throttling
    throttle_classes = (ScopedRateThrottleIsolated,)

    def get_throttles(self):
        scope_map = {
            'create': 'locations_mutation',
            'reserve': 'locations_mutation',
            'extend': 'locations_mutation',
            'cancel': 'locations_mutation',
            'update': 'locations_mutation',
            'partial_update': 'locations_mutation',
            'destroy': 'locations_mutation',
        }
        self.throttle_scope = scope_map.get(getattr(self, 'action', None))
        return super().get_throttles()

    def get_booking_engine(self):
        return BookingEngine()

    def get_queryset(self):
        """
        Collection endpoints only show the caller's rentals unless the caller is
        an administrator. Detail lookups are unscoped so a foreign rental yields
        403 rather than 404.
        """
        qs = Location.objects.select_related("user", "materiel")
        if self.detail:
            return qs
        user = self.request.user
        if is_admin(user):
            return qs
        return qs.filter(user=user)

    def _paginated(self, queryset, ordering=None, filtered=False, **extra):
        if ordering:
            self.ordering = ordering
        if not filtered:
            queryset = self.filter_queryset(queryset)
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.paginator.get_paginated_response(serializer.data, **extra)

    def _respond(self, location, message=None, status=status.HTTP_200_OK):
        data = LocationSerializer(location, context=self.get_serializer_context()).data
        return envelope(data, message=message, status=status)

    def retrieve(self, request, *args, **kwargs):
        return self._respond(self.get_object())

    # -------------------------
    # Create
    # -------------------------
    def _create(self, request, initial_status, message):
        serializer = LocationCreateSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        location = self.get_booking_engine().create_rental(
            request.user, status=initial_status, **serializer.validated_data,
        )
        return self._respond(location, message=message, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Create rental",
        description=(
            "Books the materiel for the authenticated user. The rental is stored as **ACTIVE**.\n\n"
            "`startDate`/`endDate` accept `YYYY-MM-DD` or ISO 8601 datetimes. "
            "`totalPrice = ceil((endDate - startDate) / 1 day) * pricePerDay`."
        ),
        request=LocationCreateSerializer,
        responses={
            201: LocationSerializer,
            409: OpenApiResponse(description="Materiel already booked for an overlapping period"),
            **RENTAL_ERRORS,
        },
        examples=[
            OpenApiExample(
                "Two-day rental",
                value={"materielId": 12, "startDate": "2030-01-01", "endDate": "2030-01-03", "notes": "Site A"},
                request_only=True,
            ),
        ],
    )
    def create(self, request, *args, **kwargs):
        return self._create(request, Location.ACTIVE, "Rental created successfully.")

    @extend_schema(
        summary="Request a reservation",
        description="Same payload as create; the rental is stored as **PENDING** until an administrator confirms it.",
        request=LocationCreateSerializer,
        responses={201: LocationSerializer, 409: OpenApiResponse(description="Overlapping booking"), **RENTAL_ERRORS},
    )
    @action(detail=False, methods=['post'])
    def reserve(self, request):
        return self._create(request, Location.PENDING, "Reservation request created.")

    # -------------------------
    # Detail mutations
    # -------------------------
    @extend_schema(
        summary="Extend rental",
        description=(
            "Moves the end date later and re-prices from the original start date. "
            "Allowed for PENDING, CONFIRMED and ACTIVE rentals."
        ),
        request=LocationExtendSerializer,
        responses={
            200: LocationSerializer,
            409: OpenApiResponse(description="Extension overlaps another booking"),
            **RENTAL_ERRORS,
        },
    )
    @action(detail=True, methods=['post'])
    def extend(self, request, pk=None):
        serializer = LocationExtendSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        location = self.get_booking_engine().extend_rental(
            pk, serializer.validated_data["new_end_date"], request.user,
        )
        return self._respond(location, message="Rental extended successfully.")

    @extend_schema(
        summary="Cancel rental",
        description=(
            "Soft cancellation: status becomes CANCELLED and a cancellation line is appended to the notes. "
            "`reason` is optional but must be at least 10 characters when given. "
            "Completed or already cancelled rentals cannot be cancelled."
        ),
        request=LocationCancelSerializer,
        responses={200: LocationSerializer, **RENTAL_ERRORS},
    )
    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        serializer = LocationCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        location = self.get_booking_engine().cancel_rental(
            pk, request.user, reason=serializer.validated_data.get("reason"),
        )
        return self._respond(location, message="Rental cancelled successfully.")

    @extend_schema(
        summary="Update rental",
        description="Renting user or administrator may edit `notes`; only administrators may change `status`.",
        request=LocationUpdateSerializer,
        responses={200: LocationSerializer, 409: OpenApiResponse(description="Re-activation overlaps"), **RENTAL_ERRORS},
    )
    def update(self, request, *args, **kwargs):
        serializer = LocationUpdateSerializer(data=request.data, partial=kwargs.pop("partial", False))
        serializer.is_valid(raise_exception=True)
        location = self.get_booking_engine().update_rental(
            kwargs["pk"], request.user,
            status=serializer.validated_data.get("status"),
            notes=serializer.validated_data.get("notes"),
        )
        return self._respond(location, message="Rental updated successfully.")

    @extend_schema(
        summary="Partially update rental",
        request=LocationUpdateSerializer,
        responses={200: LocationSerializer, 409: OpenApiResponse(description="Re-activation overlaps"), **RENTAL_ERRORS},
    )
    def partial_update(self, request, *args, **kwargs):
        kwargs["partial"] = True
        return self.update(request, *args, **kwargs)

    @extend_schema(
        summary="Delete rental (soft)",
        description="Rentals are never removed; DELETE cancels the rental like `cancel/` without a reason.",
        request=None,
        responses={200: LocationSerializer, **RENTAL_ERRORS},
    )
    def destroy(self, request, *args, **kwargs):
        location = self.get_booking_engine().cancel_rental(kwargs["pk"], request.user)
        return self._respond(location, message="Rental cancelled successfully.")

    # -------------------------
    # Collections
    # -------------------------
    @extend_schema(
        summary="Active rentals",
        description="ACTIVE rentals with a `stats` block (count and total value).",
        responses={200: LocationSerializer(many=True)},
    )
    @action(detail=False, methods=['get'])
    def active(self, request):
        self.ordering = ("end_date",)
        qs = self.filter_queryset(self.get_queryset().filter(status=Location.ACTIVE))
        stats = {
            "count": qs.count(),
            "totalValue": str(qs.aggregate(total=Sum("total_price"))["total"] or 0),
        }
        return self._paginated(qs, filtered=True, stats=stats)

    @extend_schema(
        summary="Upcoming rentals",
        description="PENDING and CONFIRMED rentals starting within the next `days` days.",
        parameters=[OpenApiParameter("days", OpenApiTypes.INT, description="Look-ahead window in days (default 30)")],
        responses={200: LocationSerializer(many=True), 400: OpenApiResponse(description="Invalid `days`")},
    )
    @action(detail=False, methods=['get'])
    def upcoming(self, request):
        raw = request.query_params.get("days")
        days = getattr(settings, "RENTALS_UPCOMING_DEFAULT_DAYS", 30)
        if raw not in (None, ""):
            try:
                days = int(raw)
            except (TypeError, ValueError):
                raise InvalidInput("`days` must be an integer.")
            if days < 1 or days > 365:
                raise InvalidInput("`days` must be between 1 and 365.")

        now = timezone.now()
        qs = self.get_queryset().filter(
            status__in=(Location.PENDING, Location.CONFIRMED),
            start_date__gte=now,
            start_date__lte=now + timedelta(days=days),
        )
        return self._paginated(qs, ordering=("start_date",), days=days)

    @extend_schema(
        summary="Rental history",
        description="COMPLETED and CANCELLED rentals.",
        responses={200: LocationSerializer(many=True)},
    )
    @action(detail=False, methods=['get'])
    def history(self, request):
        qs = self.get_queryset().filter(status__in=Location.TERMINAL_STATUSES)
        return self._paginated(qs, ordering=("-end_date",))

    @extend_schema(
        summary="Rentals of a materiel (admin)",
        responses={200: LocationSerializer(many=True), 403: RENTAL_ERRORS[403], 404: RENTAL_ERRORS[404]},
    )
    @action(
        detail=False, methods=['get'],
        url_path=r'by-material/(?P<materiel_id>\d+)',
        permission_classes=[permissions.IsAuthenticated, IsAdminRole],
    )
    def by_material(self, request, materiel_id=None):
        materiel = get_object_or_404(Materiel, pk=materiel_id)
        qs = self.get_queryset().filter(materiel=materiel)
        return self._paginated(qs, ordering=("-start_date",))

    @extend_schema(
        summary="Rentals of a client",
        description="The client themself or an administrator.",
        responses={200: LocationSerializer(many=True), 403: RENTAL_ERRORS[403], 404: RENTAL_ERRORS[404]},
    )
    @action(detail=False, methods=['get'], url_path=r'client/(?P<user_id>\d+)')
    def client(self, request, user_id=None):
        if int(user_id) != request.user.id and not is_admin(request.user):
            raise RentalForbidden("You can only view your own rentals.")
        client = get_object_or_404(get_user_model(), pk=user_id)
        qs = Location.objects.select_related("user", "materiel").filter(user=client)
        return self._paginated(qs)

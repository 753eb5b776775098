import logging
from datetime import timedelta

from django.conf import settings
from django.db.models import Count
from django.utils import timezone
from django.utils.dateparse import parse_date
from django_filters import rest_framework as df
from drf_spectacular.utils import (
    extend_schema_view, extend_schema, OpenApiParameter, OpenApiTypes,
    OpenApiExample, OpenApiResponse
)
from rest_framework import filters, permissions, status, viewsets
from rest_framework.decorators import action

from src.exceptions import InvalidInput, InvalidState
from src.responses import envelope
from ..models import Location, Materiel
from ..permissions import IsAdminOrReadOnly
from ..serializers import CategorySerializer, MaterielSerializer
from ..services import build_availability
from ..services.booking import default_blocking_statuses
from ..throttling import ScopedRateThrottleIsolated
from .filters import MaterielFilter

logger = logging.getLogger(__name__)

MAX_AVAILABILITY_DAYS = 366


@extend_schema(tags=["materiels"])
@extend_schema_view(
    list=extend_schema(
        summary="List materiels",
        description="Public equipment catalogue with filters and ordering.",
        auth=[],
        parameters=[
            OpenApiParameter(
                name="q",
                type=OpenApiTypes.STR,
                description="Search in name/description/type (all terms must match)",
                examples=[OpenApiExample("Single term", value="nacelle")],
            ),
            OpenApiParameter("type", OpenApiTypes.STR, description="Materiel type, e.g. GRUE_MOBILE"),
            OpenApiParameter("status", OpenApiTypes.STR, description="AVAILABLE | RENTED | MAINTENANCE | OUT_OF_ORDER"),
            OpenApiParameter("price_min", OpenApiTypes.NUMBER, description="Minimum price per day (>=)"),
            OpenApiParameter("price_max", OpenApiTypes.NUMBER, description="Maximum price per day (<=)"),
            OpenApiParameter(
                name="available_from",
                type=OpenApiTypes.DATE,
                description="Exclude materiels with a PENDING/CONFIRMED/ACTIVE rental overlapping the window.",
                examples=[OpenApiExample("From 2030-09-01", value="2030-09-01")],
            ),
            OpenApiParameter(
                name="available_to",
                type=OpenApiTypes.DATE,
                description="End of the availability window (inclusive).",
                examples=[OpenApiExample("To 2030-09-10", value="2030-09-10")],
            ),
            OpenApiParameter(
                name="ordering",
                type=OpenApiTypes.STR,
                description="name, price_per_day, created_at, type (prefix '-' for desc)",
                examples=[OpenApiExample("Cheapest first", value="price_per_day")],
            ),
        ],
    ),
    retrieve=extend_schema(summary="Get materiel", auth=[]),
    create=extend_schema(summary="Create materiel (admin)"),
    update=extend_schema(summary="Update materiel (admin)"),
    partial_update=extend_schema(summary="Partially update materiel (admin)"),
    destroy=extend_schema(
        summary="Delete materiel (admin)",
        description="Refused while the materiel has rentals; set its status to OUT_OF_ORDER instead.",
        responses={200: OpenApiResponse(description="Deleted"), 400: OpenApiResponse(description="Has rentals")},
    ),
)
class MaterielViewSet(viewsets.ModelViewSet):
    queryset = Materiel.objects.all()
    serializer_class = MaterielSerializer
    permission_classes = (IsAdminOrReadOnly,)
    filter_backends = (df.DjangoFilterBackend, filters.OrderingFilter)
    filterset_class = MaterielFilter
    ordering_fields = ("name", "price_per_day", "created_at", "type")
    ordering = ("name",)
    lookup_value_regex = r"\d+"

    # Per-action throttling
    throttle_classes = (ScopedRateThrottleIsolated,)

    def get_throttles(self):
        scope_map = {
            'list': 'materiels_list',
            'available': 'materiels_list',
            'availability': 'materiels_availability',
        }
        self.throttle_scope = scope_map.get(getattr(self, 'action', None))
        return super().get_throttles()

    def retrieve(self, request, *args, **kwargs):
        response = super().retrieve(request, *args, **kwargs)
        return envelope(response.data)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)
        logger.info("Materiel %s created by user %s", serializer.instance.pk, request.user.pk)
        return envelope(serializer.data, message="Materiel created successfully.", status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        response = super().update(request, *args, **kwargs)
        return envelope(response.data, message="Materiel updated successfully.")

    def destroy(self, request, *args, **kwargs):
        materiel = self.get_object()
        rentals = Location.objects.filter(materiel=materiel)
        if rentals.filter(status__in=default_blocking_statuses()).exists():
            raise InvalidState("Materiel has upcoming or active rentals and cannot be deleted.")
        if rentals.exists():
            raise InvalidState("Materiel has rental history and cannot be deleted; mark it OUT_OF_ORDER instead.")
        materiel_id = materiel.pk
        materiel.delete()
        logger.info("Materiel %s deleted by user %s", materiel_id, request.user.pk)
        return envelope(message="Materiel deleted successfully.")

    @extend_schema(
        summary="Available materiels",
        description="Materiels with status AVAILABLE; combine with `available_from`/`available_to`.",
        auth=[],
        responses={200: MaterielSerializer(many=True)},
    )
    @action(detail=False, methods=['get'])
    def available(self, request):
        qs = self.filter_queryset(self.get_queryset().filter(status=Materiel.Status.AVAILABLE))
        page = self.paginate_queryset(qs)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @extend_schema(
        summary="Materiel categories",
        description="Every materiel type with its label and the number of units in the catalogue.",
        auth=[],
        responses={200: CategorySerializer(many=True)},
    )
    @action(detail=False, methods=['get'], pagination_class=None)
    def categories(self, request):
        counts = dict(
            Materiel.objects.values_list("type").annotate(count=Count("id")).order_by()
        )
        data = [
            {"value": value, "label": label, "count": counts.get(value, 0)}
            for value, label in Materiel.Type.choices
        ]
        return envelope(CategorySerializer(data, many=True).data)

    @extend_schema(
        summary="Materiel availability calendar",
        description=(
            "Day-by-day status (`available`, `rented`, `reserved`, `maintenance`) between "
            "`startDate` and `endDate` (inclusive). Defaults to today + 30 days."
        ),
        auth=[],
        parameters=[
            OpenApiParameter("startDate", OpenApiTypes.DATE, description="First day (YYYY-MM-DD)"),
            OpenApiParameter("endDate", OpenApiTypes.DATE, description="Last day (YYYY-MM-DD)"),
        ],
        responses={
            200: OpenApiResponse(
                description="Availability calendar",
                examples=[
                    OpenApiExample(
                        "Example response",
                        value={
                            "success": True,
                            "data": {
                                "materiel": {"id": 3, "name": "Genie GS-1932", "type": "NACELLE_CISEAUX", "status": "AVAILABLE"},
                                "period": {"startDate": "2030-01-01", "endDate": "2030-01-02"},
                                "days": [
                                    {"date": "2030-01-01", "status": "rented", "locationIds": [17]},
                                    {"date": "2030-01-02", "status": "available", "locationIds": []},
                                ],
                                "summary": {
                                    "totalDays": 2, "availableDays": 1, "rentedDays": 1,
                                    "reservedDays": 0, "maintenanceDays": 0, "occupancyRate": 50.0,
                                },
                                "nextAvailableDate": "2030-01-02",
                            },
                        },
                    )
                ],
            ),
            400: OpenApiResponse(description="Invalid dates"),
            404: OpenApiResponse(description="Materiel not found"),
        },
    )
    @action(detail=True, methods=['get'])
    def availability(self, request, pk=None):
        materiel = self.get_object()
        raw_start = request.query_params.get("startDate")
        raw_end = request.query_params.get("endDate")

        try:
            start = parse_date(raw_start) if raw_start else None
            end = parse_date(raw_end) if raw_end else None
        except ValueError:
            raise InvalidInput("Invalid date. Use YYYY-MM-DD.")
        if (raw_start and start is None) or (raw_end and end is None):
            raise InvalidInput("Invalid date format. Use YYYY-MM-DD.")

        default_days = getattr(settings, "RENTALS_AVAILABILITY_DEFAULT_DAYS", 30)
        start = start or timezone.localdate()
        end = end or start + timedelta(days=default_days)
        if start > end:
            raise InvalidInput("startDate must be on or before endDate.")
        if (end - start).days >= MAX_AVAILABILITY_DAYS:
            raise InvalidInput(f"The window cannot exceed {MAX_AVAILABILITY_DAYS} days.")

        return envelope(build_availability(materiel, start, end))

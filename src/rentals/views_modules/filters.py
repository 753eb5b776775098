from datetime import datetime, time

from django.db.models import Exists, OuterRef, Q
from django.utils import timezone
from django.utils.dateparse import parse_date
from django_filters import rest_framework as df

from ..models import Location, Materiel
from ..permissions import is_admin
from ..services.booking import default_blocking_statuses, overlap_q, same_day_handover_enabled


class MaterielFilter(df.FilterSet):
    type      = df.ChoiceFilter(field_name='type', choices=Materiel.Type.choices, label='Type')
    status    = df.ChoiceFilter(field_name='status', choices=Materiel.Status.choices, label='Status')
    price_min = df.NumberFilter(field_name='price_per_day', lookup_expr='gte', label='Price per day min')
    price_max = df.NumberFilter(field_name='price_per_day', lookup_expr='lte', label='Price per day max')

    q = df.CharFilter(method='filter_q', label='Search')
    available_from = df.DateFilter(method='filter_available', label='Available from (YYYY-MM-DD)')
    available_to   = df.DateFilter(method='filter_available', label='Available to (YYYY-MM-DD)')

    def filter_q(self, queryset, name, value):
        terms = [t.strip() for t in (value or "").split() if t.strip()]
        for term in terms:
            queryset = queryset.filter(
                Q(name__icontains=term) |
                Q(description__icontains=term) |
                Q(type__icontains=term)
            )
        return queryset

    def _availability_range(self):
        """
        Read both params from query and turn them into a datetime window.
        If only one is provided, treat it as a single-day window [d..d].
        """
        req = getattr(self, 'request', None)
        if not req:
            return None, None
        s = req.query_params.get('available_from') or None
        e = req.query_params.get('available_to') or None
        try:
            d1 = parse_date(s) if s else None
            d2 = parse_date(e) if e else None
        except ValueError:
            return None, None
        if d1 and not d2:
            d2 = d1
        if d2 and not d1:
            d1 = d2
        if not d1:
            return None, None
        start = timezone.make_aware(datetime.combine(d1, time.min))
        end = timezone.make_aware(datetime.combine(d2, time.max))
        return start, end

    def filter_available(self, queryset, name, value):
        """Exclude materiels having a blocking rental overlapping the requested window."""
        # Method is bound to two fields.
        if getattr(self, '_availability_applied', False):
            return queryset

        start, end = self._availability_range()
        if not start or not end:
            return queryset

        conflict = Location.objects.filter(
            overlap_q(start, end, same_day_handover=same_day_handover_enabled()),
            materiel=OuterRef('pk'),
            status__in=default_blocking_statuses(),
        )
        self._availability_applied = True
        return queryset.exclude(Exists(conflict))

    class Meta:
        model = Materiel
        fields = ['q', 'type', 'status', 'price_min', 'price_max', 'available_from', 'available_to']


class LocationFilter(df.FilterSet):
    status = df.ChoiceFilter(field_name='status', choices=Location.STATUS_CHOICES, label='Status')
    materiel = df.NumberFilter(field_name='materiel_id', label='Materiel id')
    materiel_type = df.ChoiceFilter(field_name='materiel__type', choices=Materiel.Type.choices, label='Materiel type')
    user = df.NumberFilter(method='filter_user', label='User id (administrators only)')
    start_from = df.DateFilter(field_name='start_date', lookup_expr='date__gte', label='Starts on or after')
    start_to = df.DateFilter(field_name='start_date', lookup_expr='date__lte', label='Starts on or before')

    def filter_user(self, queryset, name, value):
        req = getattr(self, 'request', None)
        if not req or not is_admin(req.user):
            return queryset
        return queryset.filter(user_id=value)

    class Meta:
        model = Location
        fields = ['status', 'materiel', 'materiel_type', 'user', 'start_from', 'start_to']

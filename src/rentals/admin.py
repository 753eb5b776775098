from django.contrib import admin, messages

from .models import Location, Materiel


@admin.register(Materiel)
class MaterielAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'type', 'price_per_day', 'status', 'created_at')
    list_filter = ('type', 'status', 'created_at')
    date_hierarchy = 'created_at'
    search_fields = ('id', 'name', 'description')
    readonly_fields = ('created_at', 'updated_at')
    ordering = ('name',)


@admin.action(description="Mark selected rentals as confirmed")
def mark_confirmed(modeladmin, request, qs):
    # PENDING is already blocking, so confirming cannot create an overlap
    updated = qs.filter(status=Location.PENDING).update(status=Location.CONFIRMED)
    modeladmin.message_user(request, f"{updated} rental(s) confirmed.", messages.SUCCESS)


@admin.action(description="Mark selected rentals as completed")
def mark_completed(modeladmin, request, qs):
    updated = qs.filter(status__in=Location.OPEN_STATUSES).update(status=Location.COMPLETED)
    modeladmin.message_user(request, f"{updated} rental(s) completed.", messages.SUCCESS)


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = (
        'id', 'materiel', 'user_email', 'status',
        'start_date', 'end_date', 'total_price', 'created_at'
    )
    list_filter = (
        'status',
        'materiel__type',
        'start_date',
        'end_date',
        'created_at',
    )
    date_hierarchy = 'start_date'
    search_fields = ('materiel__name', 'user__email', 'user__name', 'notes')
    autocomplete_fields = ('materiel', 'user')
    # dates and price go through the booking engine
    readonly_fields = ('start_date', 'end_date', 'total_price', 'created_at', 'updated_at')
    ordering = ('-created_at',)
    list_select_related = ('materiel', 'user')
    actions = (mark_confirmed, mark_completed)

    @admin.display(ordering='user__email', description='Client')
    def user_email(self, obj):
        return getattr(obj.user, 'email', None)

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

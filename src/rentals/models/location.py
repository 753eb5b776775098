from django.conf import settings
from django.db import models

from .materiel import Materiel


class Location(models.Model):
    """Rental booking of one materiel by one user over a datetime range."""
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    ACTIVE = 'ACTIVE'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'
    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (CONFIRMED, 'Confirmed'),
        (ACTIVE, 'Active'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    ]
    # States from which extend/cancel are allowed
    OPEN_STATUSES = (PENDING, CONFIRMED, ACTIVE)
    TERMINAL_STATUSES = (COMPLETED, CANCELLED)

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='locations')
    materiel = models.ForeignKey(Materiel, on_delete=models.PROTECT, related_name='locations')
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_date__gt=models.F('start_date')),
                name='location_end_after_start',
            ),
        ]
        indexes = [
            models.Index(
                fields=['materiel', 'status', 'start_date', 'end_date'],
                name='location_overlap_idx',
            ),
            models.Index(fields=['user', 'status'], name='location_user_status_idx'),
        ]

    def __str__(self):
        return f"{self.user} → {self.materiel} [{self.status}]"

    @property
    def is_open(self):
        return self.status in self.OPEN_STATUSES

from django.db import models


class Materiel(models.Model):
    """A unit of rentable construction equipment."""

    class Type(models.TextChoices):
        GRUE_MOBILE = "GRUE_MOBILE", "Mobile crane"
        GRUE_TOUR = "GRUE_TOUR", "Tower crane"
        TELESCOPIQUE = "TELESCOPIQUE", "Telescopic handler"
        NACELLE_CISEAUX = "NACELLE_CISEAUX", "Scissor lift"
        NACELLE_ARTICULEE = "NACELLE_ARTICULEE", "Articulated lift"
        NACELLE_TELESCOPIQUE = "NACELLE_TELESCOPIQUE", "Telescopic lift"
        COMPACTEUR = "COMPACTEUR", "Compactor"
        PELLETEUSE = "PELLETEUSE", "Excavator"
        AUTRE = "AUTRE", "Other"

    class Status(models.TextChoices):
        AVAILABLE = "AVAILABLE", "Available"
        RENTED = "RENTED", "Rented"
        MAINTENANCE = "MAINTENANCE", "Maintenance"
        OUT_OF_ORDER = "OUT_OF_ORDER", "Out of order"

    name = models.CharField(max_length=150)
    type = models.CharField(max_length=30, choices=Type.choices, default=Type.AUTRE, db_index=True)
    description = models.TextField(blank=True, default='')
    price_per_day = models.DecimalField(max_digits=12, decimal_places=2)
    # Baseline flag set by staff; booking conflicts are computed from rentals, not from this field.
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.AVAILABLE, db_index=True)
    specifications = models.JSONField(default=dict, blank=True)
    images = models.JSONField(default=list, blank=True)
    manual_url = models.CharField(max_length=255, blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price_per_day__gte=0),
                name='materiel_price_non_negative',
            ),
        ]
        indexes = [
            models.Index(fields=['type', 'status'], name='materiel_type_status_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.type})"

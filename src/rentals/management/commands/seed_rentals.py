from __future__ import annotations

import random
from datetime import datetime, time, timedelta

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from src.exceptions import BookingError
from src.rentals.factories import AdminFactory, MaterielFactory, UserFactory
from src.rentals.models import Location, Materiel
from src.rentals.services import BookingEngine


class Command(BaseCommand):
    """
    Seed the database with demo data:
    - one administrator and a few clients (password: Passw0rd!)
    - a catalogue of materiels covering every type
    - future rentals booked through the booking engine (overlaps are skipped)
    """

    help = "Seed the DB with demo users, materiels and rentals."

    def add_arguments(self, parser):
        parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducibility.")
        parser.add_argument("--wipe", action="store_true", help="Delete all rentals and materiels before seeding.")
        parser.add_argument("--clients", type=int, default=5, help="How many clients to create.")
        parser.add_argument("--per-type", type=int, default=2, help="How many materiels to create per type.")
        parser.add_argument("--rentals", type=int, default=20, help="How many rentals to attempt.")

    @transaction.atomic
    def handle(self, *args, **opts):
        seed = opts.get("seed")
        if seed is not None:
            random.seed(seed)

        if opts["wipe"]:
            self.stdout.write(self.style.WARNING("Wiping rentals and materiels..."))
            Location.objects.all().delete()
            Materiel.objects.all().delete()

        admin = AdminFactory(email="admin@btp-location.test", password="Passw0rd!")
        clients = [UserFactory(password="Passw0rd!") for _ in range(opts["clients"])]

        materiels = [
            MaterielFactory(type=value)
            for value, _ in Materiel.Type.choices
            for _ in range(opts["per_type"])
        ]
        # a couple of units out of service to show up in availability calendars
        for materiel in random.sample(materiels, k=min(2, len(materiels))):
            materiel.status = random.choice([Materiel.Status.MAINTENANCE, Materiel.Status.OUT_OF_ORDER])
            materiel.save(update_fields=["status", "updated_at"])

        engine = BookingEngine()
        today = timezone.localdate()
        created = skipped = 0
        for _ in range(opts["rentals"]):
            materiel = random.choice(materiels)
            start = timezone.make_aware(datetime.combine(today + timedelta(days=random.randint(1, 45)), time.min))
            end = start + timedelta(days=random.randint(1, 10))
            status = random.choice([Location.ACTIVE, Location.PENDING])
            try:
                engine.create_rental(random.choice(clients), materiel.pk, start, end, status=status)
            except BookingError as exc:
                skipped += 1
                self.stdout.write(f"  skipped rental on materiel {materiel.pk}: {exc.detail}")
                continue
            created += 1

        user_count = get_user_model().objects.count()
        self.stdout.write(self.style.SUCCESS(
            f"Done: {user_count} users (admin: {admin.email}), {len(materiels)} materiels, "
            f"{created} rentals created, {skipped} skipped."
        ))

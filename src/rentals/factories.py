import random
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import factory
from django.contrib.auth import get_user_model
from factory import Faker, post_generation
from factory.django import DjangoModelFactory

from .models import Location, Materiel
from .services import compute_total_price

MATERIEL_TYPES = tuple(v for v, _ in Materiel.Type.choices)

NAME_POOL = {
    "GRUE_MOBILE": ["Liebherr LTM 1050", "Grove GMK3060", "Tadano ATF 70G"],
    "GRUE_TOUR": ["Potain MDT 219", "Liebherr 172 EC-B", "Terex CTT 161"],
    "TELESCOPIQUE": ["Manitou MT 1440", "JCB 540-170", "Merlo P40.17"],
    "NACELLE_CISEAUX": ["Genie GS-1932", "Haulotte Compact 12", "Skyjack SJ4632"],
    "NACELLE_ARTICULEE": ["JLG 450AJ", "Genie Z-45/25", "Haulotte HA16 RTJ"],
    "NACELLE_TELESCOPIQUE": ["JLG 660SJ", "Genie S-65", "Haulotte HT23 RTJ"],
    "COMPACTEUR": ["Bomag BW 120", "Hamm HD 12", "Ammann ARX 26"],
    "PELLETEUSE": ["Caterpillar 320", "Komatsu PC210", "Volvo EC220E"],
    "AUTRE": ["Groupe electrogene 60 kVA", "Compresseur Atlas Copco", "Benne 10 m3"],
}


def utc(year, month, day, hour=0):
    return datetime(year, month, day, hour, tzinfo=dt_timezone.utc)


# ---------------------------------------------------------------------------

class UserFactory(DjangoModelFactory):
    """
    Client account. CustomUser has no 'username' field, so only email & contact data.
    Password is hashed in @post_generation.
    """
    class Meta:
        model = get_user_model()
        django_get_or_create = ("email",)

    email = factory.Sequence(lambda n: f"user{n}@example.com")
    name = Faker("name")
    phone = Faker("phone_number")
    company = Faker("company")

    @post_generation
    def password(self, create, extracted, **kwargs):
        pwd = extracted or "Passw0rd!"
        self.set_password(pwd)
        if create:
            self.save()


class AdminFactory(UserFactory):
    """Administrator (role ADMIN, no Django staff flag)."""
    email = factory.Sequence(lambda n: f"admin{n}@example.com")
    role = "ADMIN"


# ---------------------------------------------------------------------------

class MaterielFactory(DjangoModelFactory):
    class Meta:
        model = Materiel

    type = factory.LazyFunction(lambda: random.choice(MATERIEL_TYPES))
    name = factory.LazyAttribute(lambda o: random.choice(NAME_POOL[o.type]))
    description = Faker("sentence", nb_words=12)
    price_per_day = factory.LazyFunction(lambda: Decimal(random.randrange(80, 900)))
    status = Materiel.Status.AVAILABLE
    specifications = factory.LazyFunction(lambda: {"poids": f"{random.randint(2, 40)} t"})


class LocationFactory(DjangoModelFactory):
    """
    Rental stored directly (no conflict check); ACTIVE by default.
    total_price is derived from the dates and the materiel price unless given.
    """
    class Meta:
        model = Location

    user = factory.SubFactory(UserFactory)
    materiel = factory.SubFactory(MaterielFactory)
    start_date = factory.LazyFunction(lambda: utc(2025, 1, 1))
    end_date = factory.LazyAttribute(lambda o: o.start_date + timedelta(days=2))
    total_price = factory.LazyAttribute(
        lambda o: compute_total_price(o.start_date, o.end_date, o.materiel.price_per_day)
    )
    status = Location.ACTIVE
    notes = ""

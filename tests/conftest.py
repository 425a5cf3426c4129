"""
Pytest configuration and shared fixtures.

This file adds the project root to the Python path so that tests can import
the domain, repositories, services and api packages, and builds an
in-process store seeded with a small catalog, customer pool and staff list.
"""

import sys
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.customer import Customer, CustomerKind  # noqa: E402
from domain.medicine import Medicine  # noqa: E402
from domain.staff import Staff  # noqa: E402
from repositories.memory_store import InMemoryStore  # noqa: E402
from services.checkout_service import CheckoutService  # noqa: E402
from services.identity_service import IdentityResolver  # noqa: E402

NOW = datetime(2025, 3, 1, 10, 0, 0, tzinfo=timezone.utc)


def make_medicines():
    return [
        Medicine(
            medicine_id="MED001",
            name="Paracetamol 500mg",
            unit_price=Decimal("18.00"),
            stock_quantity=100,
            batch_number="B-1001",
            expiry_date=date(2027, 6, 30),
            generic_name="Acetaminophen",
            category="Analgesic",
            manufacturer="State Pharmaceuticals",
        ),
        Medicine(
            medicine_id="MED002",
            name="Amoxicillin 250mg",
            unit_price=Decimal("45.50"),
            stock_quantity=5,
            prescription_required=True,
            batch_number="B-2001",
            expiry_date=date(2026, 12, 31),
            generic_name="Amoxicillin",
            category="Antibiotic",
        ),
        Medicine(
            medicine_id="MED003",
            name="Cetirizine 10mg",
            unit_price=Decimal("12.00"),
            stock_quantity=0,
            category="Antihistamine",
        ),
        Medicine(
            medicine_id="MED004",
            name="Vitamin C 500mg",
            unit_price=Decimal("8.75"),
            stock_quantity=40,
            batch_number="B-0400",
            expiry_date=date(2020, 1, 1),
            category="Supplement",
        ),
    ]


def make_customers():
    return [
        Customer(
            customer_id="C001",
            name="Nimal Perera",
            national_id="199012345678",
            phone="0771234567",
            total_purchases=Decimal("100.00"),
            last_visit=datetime(2025, 2, 1, 9, 0, tzinfo=timezone.utc),
        ),
        Customer(
            customer_id="C002",
            name="Kamala Silva",
            national_id="851234567V",
            phone="0712345678",
            walk_in=True,
            last_visit=datetime(2025, 2, 20, 9, 0, tzinfo=timezone.utc),
        ),
        Customer(
            customer_id="P001",
            name="Nimali Fernando",
            kind=CustomerKind.PATIENT,
            national_id="199512341234",
            phone="0779876543",
            last_visit=datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc),
        ),
    ]


def make_staff():
    return [
        Staff(staff_id="EMP001", name="Ruwan Jayasinghe", registration_number="123456"),
        Staff(staff_id="EMP002", name="Suspended Cashier", status="suspended"),
    ]


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(medicines=make_medicines(), customers=make_customers(), staff=make_staff())


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def identity(store) -> IdentityResolver:
    return IdentityResolver(store)


@pytest.fixture
def checkout_service(store, clock) -> CheckoutService:
    return CheckoutService(
        store,
        store,
        store,
        daily_sales=store,
        staff=store,
        clock=clock,
    )

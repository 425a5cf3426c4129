"""
Domain: Customer / patient records.

Customers registered at the counter and patients registered by the clinical
side live in two collections but form one logical pool for identity
resolution. `kind` records which collection a record belongs to so updates go
back to the right place.

Invariants (enforced by the Identity Resolver, not by this module):
- At most one record claims a given non-empty national ID.
- At most one record claims a given non-empty phone.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .money import ZERO, to_money
from .time import require_utc_timestamp

_PHONE_SEPARATORS = re.compile(r"[\s\-().]")


class CustomerKind(str, Enum):
    CUSTOMER = "customer"
    PATIENT = "patient"


class IdentityField(str, Enum):
    NATIONAL_ID = "national_id"
    PHONE = "phone"


def normalize_national_id(value: Optional[str]) -> Optional[str]:
    """Trim and upper-case a national ID (old-format NICs end in V/X)."""

    if value is None:
        return None
    text = value.strip().upper()
    return text or None


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """Strip whitespace and common separators from a phone number."""

    if value is None:
        return None
    text = _PHONE_SEPARATORS.sub("", value.strip())
    return text or None


@dataclass(frozen=True, slots=True)
class Customer:
    """A known buyer with purchase aggregates."""

    customer_id: str
    name: str
    kind: CustomerKind = CustomerKind.CUSTOMER
    national_id: Optional[str] = None
    phone: Optional[str] = None
    total_purchases: Decimal = ZERO
    last_visit: Optional[datetime] = None
    walk_in: bool = False
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.last_visit is not None:
            require_utc_timestamp("last_visit", self.last_visit)
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)
        object.__setattr__(self, "total_purchases", to_money(self.total_purchases))
        object.__setattr__(self, "national_id", normalize_national_id(self.national_id))
        object.__setattr__(self, "phone", normalize_phone(self.phone))

    @property
    def is_identified(self) -> bool:
        return bool(self.national_id or self.phone)

    def identifier(self, field: IdentityField) -> Optional[str]:
        return self.national_id if field is IdentityField.NATIONAL_ID else self.phone


@dataclass(frozen=True, slots=True)
class CustomerDraft:
    """Data for a record that does not exist yet."""

    name: str
    national_id: Optional[str] = None
    phone: Optional[str] = None
    kind: CustomerKind = CustomerKind.CUSTOMER
    walk_in: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "national_id", normalize_national_id(self.national_id))
        object.__setattr__(self, "phone", normalize_phone(self.phone))


@dataclass(frozen=True, slots=True)
class CustomerPatch:
    """Fields to overwrite on an existing record; None means unchanged."""

    name: Optional[str] = None
    national_id: Optional[str] = None
    phone: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.name is None and self.national_id is None and self.phone is None


__all__ = [
    "CustomerKind",
    "IdentityField",
    "Customer",
    "CustomerDraft",
    "CustomerPatch",
    "normalize_national_id",
    "normalize_phone",
]

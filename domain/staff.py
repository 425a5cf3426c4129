"""
Domain: Staff members as seen by the POS.

Staff records are owned by the HR module; the POS only verifies that the
operator behind a sale exists and is active, and that a pharmacist
registration number quoted on a prescription sale belongs to an active
member of staff.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True, slots=True)
class Staff:
    staff_id: str
    name: str
    status: str = "active"  # active, suspended, terminated
    registration_number: Optional[str] = None

    def is_active(self) -> bool:
        return self.status == "active"


def pick_registration_holder(holders: Iterable[Staff]) -> Optional[Staff]:
    """
    Choose the record to judge a registration number by.

    HR data may carry the same number on an old and a current record; an
    active holder wins over inactive ones.
    """

    first: Optional[Staff] = None
    for staff in holders:
        if staff.is_active():
            return staff
        if first is None:
            first = staff
    return first


__all__ = ["Staff", "pick_registration_holder"]

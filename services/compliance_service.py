"""
Compliance gate for prescription medicines.

A sale that contains at least one prescription-only medicine must carry the
registration number of the dispensing pharmacist. validate() checks the
*format* (exactly N ASCII digits, six by default); verify_holder() judges the
staff record the directory returns for that number, which must exist and be
active.

The gate runs before any stock is touched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from domain.cart import CartLine
from domain.errors import ComplianceError, ComplianceReason
from domain.medicine import Medicine
from domain.staff import Staff


@dataclass(frozen=True, slots=True)
class ComplianceRequirement:
    prescription_required: bool
    prescription_medicine_ids: tuple[str, ...] = ()


class ComplianceGate:
    def __init__(self, credential_length: int = 6):
        if credential_length <= 0:
            raise ValueError("credential_length must be > 0")
        self.credential_length = credential_length

    def evaluate(
        self,
        lines: Iterable[CartLine],
        medicines: Optional[Mapping[str, Medicine]] = None,
    ) -> ComplianceRequirement:
        """
        Decide whether the sale needs a pharmacist credential.

        When `medicines` (current catalog entries) is given, the catalog flag
        wins over the flag snapshotted on the line, so a medicine reclassified
        as prescription-only while the cart was open is still caught.
        """

        flagged = []
        for line in lines:
            medicine = medicines.get(line.medicine_id) if medicines else None
            required = medicine.prescription_required if medicine is not None else line.prescription_required
            if required and line.medicine_id not in flagged:
                flagged.append(line.medicine_id)

        return ComplianceRequirement(
            prescription_required=bool(flagged),
            prescription_medicine_ids=tuple(flagged),
        )

    def validate(self, credential: Optional[str], prescription_required: bool) -> Optional[ComplianceError]:
        """
        Check the credential format.

        Returns:
            None when acceptable, otherwise a ComplianceError with reason
            MISSING (blank) or MALFORMED (wrong length or non-digit characters)
        """

        if not prescription_required:
            return None

        value = (credential or "").strip()
        if not value:
            return ComplianceError(
                ComplianceReason.MISSING,
                "required for prescription medicines",
            )
        # str.isdigit() accepts non-ASCII digits such as '²'
        if not (value.isascii() and value.isdigit()):
            return ComplianceError(
                ComplianceReason.MALFORMED,
                "must contain digits only",
            )
        if len(value) != self.credential_length:
            return ComplianceError(
                ComplianceReason.MALFORMED,
                f"must be exactly {self.credential_length} digits, got {len(value)}",
            )
        return None

    def verify_holder(self, credential: str, holder: Optional[Staff]) -> Optional[ComplianceError]:
        if holder is None:
            return ComplianceError(
                ComplianceReason.UNREGISTERED,
                f"{credential} is not held by any registered pharmacist",
            )
        if not holder.is_active():
            return ComplianceError(
                ComplianceReason.UNREGISTERED,
                f"{credential} belongs to inactive staff member {holder.staff_id}",
            )
        return None


__all__ = ["ComplianceGate", "ComplianceRequirement"]

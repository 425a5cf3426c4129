"""
Staff directory (read-only view of the HR `employees` table).

The POS verifies that the operator behind a sale exists and is active, and
that the registration number quoted for a prescription sale is held by an
active employee. It never writes HR data.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.staff import Staff, pick_registration_holder
from repositories.supabase_support import execute_query, response_rows

_COLUMNS = "employee_id, name, status, pharmacy_registration_number"


def _row_to_staff(row: Mapping[str, Any]) -> Staff:
    return Staff(
        staff_id=str(row["employee_id"]),
        name=str(row.get("name") or ""),
        status=str(row.get("status") or "active"),
        registration_number=row.get("pharmacy_registration_number"),
    )


class SupabaseStaffDirectory:
    def __init__(self, client: Client):
        self._client = client

    def verify_staff(self, staff_id: str) -> Optional[Staff]:
        """
        Look up an employee by their employee id.

        Returns:
            Staff or None if no such employee exists
        """

        response = execute_query(
            self._client.table("employees")
            .select(_COLUMNS)
            .eq("employee_id", staff_id)
            .limit(1),
            "verify staff",
        )
        rows = response_rows(response)
        if not rows:
            return None
        return _row_to_staff(rows[0])

    def find_by_registration(self, registration_number: str) -> Optional[Staff]:
        """Employee holding a pharmacy registration number (an active one if any)."""

        response = execute_query(
            self._client.table("employees")
            .select(_COLUMNS)
            .eq("pharmacy_registration_number", registration_number),
            "verify pharmacy registration",
        )
        return pick_registration_holder(_row_to_staff(row) for row in response_rows(response))


__all__ = ["SupabaseStaffDirectory"]

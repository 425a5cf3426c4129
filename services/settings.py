"""
Runtime settings for the POS services.

Values come from the environment (a `.env` file in the project root is loaded
first, matching the database client). Every service receives the settings it
needs through its constructor; nothing reads the environment after startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional

from dotenv import load_dotenv

from domain.money import to_rate
from repositories.client import ENV_PATH

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True, slots=True)
class PosSettings:
    """
    POS configuration.

    store: "supabase" (production) or "memory" (local demo, data lost on exit)
    tax_rate: Percentage applied to the discounted subtotal (0 disables tax)
    credential_length: Digits in a pharmacist registration number
    search_limit: Identity search candidates returned
    auto_match_min_length: Term length from which an exact ID/phone hit is auto-selected
    partial_match_min_length: Term length from which partial ID/phone matching starts
    require_staff_verification: Reject sales by unknown or inactive staff ids
    """

    store: str = "supabase"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    tax_rate: Decimal = Decimal("0")
    currency: str = "LKR"
    credential_length: int = 6
    search_limit: int = 8
    auto_match_min_length: int = 10
    partial_match_min_length: int = 6
    require_staff_verification: bool = True
    log_level: str = "INFO"

    @staticmethod
    def from_env(env: Optional[Mapping[str, str]] = None) -> "PosSettings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read instead of os.environ (used by tests). When
                omitted, `.env` is loaded into os.environ first.
        """

        if env is None:
            load_dotenv(dotenv_path=ENV_PATH)
            env = os.environ

        store = (env.get("POS_STORE") or "supabase").strip().lower()
        if store not in {"supabase", "memory"}:
            raise RuntimeError(f"POS_STORE must be 'supabase' or 'memory', got {store!r}")

        try:
            tax_rate = to_rate(env.get("POS_TAX_RATE") or "0")
        except ValueError:
            raise RuntimeError(f"POS_TAX_RATE must be a number, got {env.get('POS_TAX_RATE')!r}") from None
        if tax_rate < 0:
            raise RuntimeError("POS_TAX_RATE must be >= 0")

        return PosSettings(
            store=store,
            supabase_url=env.get("SUPABASE_URL"),
            supabase_key=env.get("SUPABASE_KEY"),
            tax_rate=tax_rate,
            currency=env.get("POS_CURRENCY") or "LKR",
            credential_length=_get_int(env, "POS_CREDENTIAL_LENGTH", 6),
            search_limit=_get_int(env, "POS_SEARCH_LIMIT", 8),
            auto_match_min_length=_get_int(env, "POS_AUTO_MATCH_MIN_LENGTH", 10),
            partial_match_min_length=_get_int(env, "POS_PARTIAL_MATCH_MIN_LENGTH", 6),
            require_staff_verification=_get_bool(env, "POS_REQUIRE_STAFF_VERIFICATION", True),
            log_level=(env.get("POS_LOG_LEVEL") or "INFO").upper(),
        )


__all__ = ["PosSettings"]

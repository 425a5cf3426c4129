"""
Tests for `services/settings.py`.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from services.settings import PosSettings


def test_defaults_from_empty_environment() -> None:
    settings = PosSettings.from_env({})

    assert settings.store == "supabase"
    assert settings.tax_rate == Decimal("0")
    assert settings.credential_length == 6
    assert settings.auto_match_min_length == 10
    assert settings.require_staff_verification
    assert settings.log_level == "INFO"


def test_values_from_environment() -> None:
    settings = PosSettings.from_env(
        {
            "POS_STORE": " Memory ",
            "POS_TAX_RATE": "8",
            "POS_CURRENCY": "USD",
            "POS_SEARCH_LIMIT": "3",
            "POS_REQUIRE_STAFF_VERIFICATION": "no",
            "POS_LOG_LEVEL": "debug",
        }
    )

    assert settings.store == "memory"
    assert settings.tax_rate == Decimal("8")
    assert settings.currency == "USD"
    assert settings.search_limit == 3
    assert not settings.require_staff_verification
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    "env",
    [
        {"POS_STORE": "sqlite"},
        {"POS_TAX_RATE": "abc"},
        {"POS_TAX_RATE": "-1"},
        {"POS_SEARCH_LIMIT": "eight"},
    ],
)
def test_invalid_values_raise(env) -> None:
    with pytest.raises(RuntimeError):
        PosSettings.from_env(env)

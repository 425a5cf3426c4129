"""
Shared plumbing for the Supabase repositories.

Every repository funnels `.execute()` through `execute_query` so that store
failures surface uniformly as `PersistenceError`, whether supabase-py raised
(`postgrest.exceptions.APIError`) or returned a response carrying an error.
"""

from __future__ import annotations

from typing import Any, List, Mapping

from postgrest.exceptions import APIError

from domain.errors import PersistenceError


def execute_query(query: Any, action: str) -> Any:
    """
    Execute a postgrest query builder and validate the response.

    Args:
        query: A supabase-py query or RPC builder (anything with `.execute()`)
        action: Short description used in the error message ("fetch medicine")

    Returns:
        The raw supabase-py response

    Raises:
        PersistenceError: If the request failed
    """

    try:
        response = query.execute()
    except APIError as e:
        raise PersistenceError(f"Failed to {action}: {e}") from e

    error = getattr(response, "error", None)
    if error:
        raise PersistenceError(f"Failed to {action}: {error}")
    return response


def response_rows(response: Any) -> List[Mapping[str, Any]]:
    data = getattr(response, "data", None)
    if data is None:
        return []
    if isinstance(data, list):
        return data
    return [data]


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input only matches literally."""

    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


__all__ = ["execute_query", "response_rows", "escape_like"]

"""
Supabase client construction.

This module contains *only* the database connection setup. Unlike a
module-level singleton, the client is built by a factory and handed to each
repository, so several stores (or a test double) can coexist in one process.

Environment variables used by `create_supabase_client_from_env`:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

# .env lives in the project root, next to pyproject.toml
ENV_PATH = Path(__file__).parent.parent / ".env"


def create_supabase_client(url: Optional[str], key: Optional[str]) -> Client:
    """
    Build a Supabase client from explicit credentials.

    Raises:
        RuntimeError: If either credential is missing.
    """

    if not url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(url, key)


def create_supabase_client_from_env() -> Client:
    """Load `.env` and build a client from SUPABASE_URL / SUPABASE_KEY."""

    load_dotenv(dotenv_path=ENV_PATH)
    return create_supabase_client(os.getenv("SUPABASE_URL"), os.getenv("SUPABASE_KEY"))


__all__ = ["ENV_PATH", "create_supabase_client", "create_supabase_client_from_env"]

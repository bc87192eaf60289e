"""
Shared helpers for Supabase-backed repositories.

- Timestamp (de)serialization between domain UTC datetimes and ISO-8601 text.
- Query execution that turns client/transport failures into RepositoryUnavailable.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List

import httpx
from postgrest.exceptions import APIError

from domain.errors import RepositoryUnavailable
from domain.time import require_utc_timestamp

# PostgREST caps responses at 1000 rows per request by default.
PAGE_SIZE: int = 1000


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a Supabase timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    # Naive timestamps from the backend are interpreted as UTC.
    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def execute(query: Any, action: str) -> List[Any]:
    """
    Execute a PostgREST query and return its rows.

    Raises:
        RepositoryUnavailable: on API errors, transport errors, or an error
        attribute on the response.
    """

    try:
        response = query.execute()
    except APIError as e:
        raise RepositoryUnavailable(f"Failed to {action}: {e.message or e}") from e
    except httpx.HTTPError as e:
        raise RepositoryUnavailable(f"Failed to {action}: {e}") from e

    error = getattr(response, "error", None)
    if error:
        raise RepositoryUnavailable(f"Failed to {action}: {error}")

    return getattr(response, "data", None) or []


__all__ = ["PAGE_SIZE", "to_iso_utc", "parse_utc_datetime", "execute"]

"""Utility functions for the member onboarding workflow."""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime (stored as-is by SQLite)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def deep_merge(
    target: Optional[Mapping[str, Any]], source: Optional[Mapping[str, Any]]
) -> Dict[str, Any]:
    """
    Merge ``source`` into a copy of ``target`` recursively.

    - Nested mappings are merged key by key.
    - ``None`` values in ``source`` never overwrite existing data.
    - Lists and scalars from ``source`` replace the existing value.

    The inputs are left untouched; a new dict is returned so SQLAlchemy sees
    a fresh value on JSON columns.

    Args:
        target: Existing nested data (may be None)
        source: Partial update (may be None)

    Returns:
        dict: Merged copy
    """
    result: Dict[str, Any] = copy.deepcopy(dict(target or {}))
    if not source:
        return result

    for key, value in source.items():
        if value is None:
            continue
        existing = result.get(key)
        if isinstance(value, Mapping) and isinstance(existing, Mapping):
            result[key] = deep_merge(existing, value)
        elif isinstance(value, Mapping):
            result[key] = deep_merge({}, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def add_years(moment: datetime, years: int) -> datetime:
    """
    Add whole calendar years to a datetime.

    February 29 falls back to February 28 when the target year is not a leap
    year.

    Args:
        moment: Start datetime
        years: Number of years to add

    Returns:
        datetime: Shifted datetime
    """
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


def next_sequence_code(latest_code: Optional[str], prefix: str) -> str:
    """
    Build the next ``<prefix>-<5-digit-number>`` code from the latest one issued.

    Args:
        latest_code: Most recent code for the prefix (e.g. "MEM-00041") or None
        prefix: Code prefix, e.g. "MEM" or "APP-2026"

    Returns:
        str: Next code (e.g. "MEM-00042")
    """
    next_number = 1
    if latest_code and latest_code.startswith(f"{prefix}-"):
        try:
            next_number = int(latest_code[len(prefix) + 1 :]) + 1
        except ValueError:
            # Unparseable suffix, start from 1
            next_number = 1
    return f"{prefix}-{next_number:05d}"

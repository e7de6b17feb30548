"""
Pure helpers for deciding which families can receive a delivery.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Optional

from cestas.constants import BLOCK_PERIOD_DAYS, StatusFilter
from cestas.db import FamilyRecord


def filter_families(
    families: Iterable[FamilyRecord],
    status_filter: StatusFilter | str = StatusFilter.ALL,
    search: Optional[str] = None,
) -> list[FamilyRecord]:
    """
    Filter families by status and a free-text search term.

    The term matches a case-insensitive substring of the name or a substring
    of the phone number. Input order is preserved.
    """
    status_filter = StatusFilter(status_filter)
    term = search or ""
    lowered = term.lower()

    def matches(family: FamilyRecord) -> bool:
        if status_filter != StatusFilter.ALL and family.status.value != status_filter.value:
            return False
        if not term:
            return True
        return lowered in family.name.lower() or term in family.phone

    return [family for family in families if matches(family)]


def parse_other_items(text: Optional[str]) -> list[str]:
    """Split a comma-separated list of extra items, dropping blanks."""
    if not text or not text.strip():
        return []
    return [item.strip() for item in text.split(",") if item.strip()]


def compute_block_until(today: date, block_period_days: int) -> date:
    return today + timedelta(days=block_period_days)


def is_valid_block_period(block_period_days: int) -> bool:
    return block_period_days in BLOCK_PERIOD_DAYS

"""
Shared enums and constants for families, users and deliveries.
"""

from __future__ import annotations

from enum import Enum


class FamilyStatus(str, Enum):
    ACTIVE = "active"
    BLOCKED = "blocked"


class UserRole(str, Enum):
    ADMIN = "admin"
    NORMAL = "normal"


class StatusFilter(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    BLOCKED = "blocked"


class ReportKind(str, Enum):
    FAMILIES = "families"
    INSTITUTIONS = "institutions"
    DELIVERIES = "deliveries"


# Days a family stays ineligible after receiving a delivery.
BLOCK_PERIOD_DAYS = (15, 30, 45, 60, 90)
DEFAULT_BLOCK_PERIOD_DAYS = 30

BASKETS_KEY = "baskets"

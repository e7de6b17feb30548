"""
Read-only aggregations over already-fetched families, institutions and deliveries.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date
from typing import Sequence

from cestas.auth import AuthContext
from cestas.constants import FamilyStatus
from cestas.db import DeliveryRecord, FamilyRecord, InstitutionRecord


def _count_status(families: Sequence[FamilyRecord], status: FamilyStatus) -> int:
    return sum(1 for family in families if family.status == status)


def dashboard_stats(
    auth: AuthContext,
    families: Sequence[FamilyRecord],
    institutions: Sequence[InstitutionRecord],
    deliveries: Sequence[DeliveryRecord],
) -> dict:
    """
    Headline counts for the landing dashboard.

    `deliveries` must already be scoped to what the user can see. Normal users
    only count families that appear in their institution's delivery history.
    """
    if auth.is_admin:
        scoped_families = list(families)
        institution_count = len(institutions)
    else:
        served = {
            d.family_id
            for d in deliveries
            if d.institution_id == auth.institution_id
        }
        scoped_families = [f for f in families if f.family_id in served]
        institution_count = 1
    return {
        "deliveries": len(deliveries),
        "institutions": institution_count,
        "active_families": _count_status(scoped_families, FamilyStatus.ACTIVE),
        "blocked_families": _count_status(scoped_families, FamilyStatus.BLOCKED),
    }


def monthly_baskets(
    deliveries: Sequence[DeliveryRecord], months: int = 6
) -> list[dict]:
    """Baskets delivered per month (YYYY-MM), oldest first, last `months` entries."""
    totals: dict[str, int] = {}
    for delivery in deliveries:
        key = delivery.delivery_date.strftime("%Y-%m")
        totals[key] = totals.get(key, 0) + delivery.baskets
    ordered = OrderedDict(sorted(totals.items()))
    return [
        {"month": month, "baskets": count}
        for month, count in list(ordered.items())[-months:]
    ]


def recent_deliveries(
    deliveries: Sequence[DeliveryRecord], limit: int = 8
) -> list[DeliveryRecord]:
    ordered = sorted(
        deliveries, key=lambda d: (d.delivery_date, d.created_at), reverse=True
    )
    return ordered[:limit]


def report_summary(
    families: Sequence[FamilyRecord],
    institutions: Sequence[InstitutionRecord],
    deliveries: Sequence[DeliveryRecord],
    today: date,
) -> dict:
    this_month = [
        d
        for d in deliveries
        if d.delivery_date.year == today.year and d.delivery_date.month == today.month
    ]
    return {
        "active_families": _count_status(families, FamilyStatus.ACTIVE),
        "blocked_families": _count_status(families, FamilyStatus.BLOCKED),
        "institutions": len(institutions),
        "total_baskets": sum(inst.baskets for inst in institutions),
        "deliveries_this_month": len(this_month),
    }

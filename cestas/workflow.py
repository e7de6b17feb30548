"""
Delivery, unblock and inventory workflows.

Every precondition is checked before the first write. The delivery itself is
three sequential writes (delivery record, family block, inventory decrement)
with no rollback between them; a failure part-way through is reported with
the step that failed so the records can be reconciled by hand.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from cestas.auth import AuthContext
from cestas.constants import BASKETS_KEY, BLOCK_PERIOD_DAYS, DEFAULT_BLOCK_PERIOD_DAYS
from cestas.data import DataAccess
from cestas.db import DeliveryRecord, FamilyRecord, InstitutionRecord
from cestas.eligibility import (
    compute_block_until,
    is_valid_block_period,
    parse_other_items,
)

logger = logging.getLogger(__name__)


class WorkflowError(Exception):
    """Base class for errors raised by the workflows."""


class InvalidRequest(WorkflowError):
    pass


class NotFound(WorkflowError):
    pass


class PermissionDenied(WorkflowError):
    pass


class DeliveryRejected(WorkflowError):
    """A delivery precondition failed; nothing was written."""


class DeliveryWriteError(WorkflowError):
    """A store write failed part-way through a delivery."""

    def __init__(self, step: str, delivery_id: Optional[str] = None):
        self.step = step
        self.delivery_id = delivery_id
        super().__init__(f"Delivery failed at step {step}")


@dataclass(frozen=True)
class DeliveryResult:
    delivery: DeliveryRecord
    family: FamilyRecord
    institution: InstitutionRecord


def resolve_institution(
    auth: AuthContext,
    data: DataAccess,
    institution_id: Optional[str] = None,
) -> InstitutionRecord:
    """
    Pick the institution a delivery is made from.

    Normal users always deliver from their own institution. Admins deliver from
    the institution they name, falling back to the one linked to their account.
    """
    if auth.is_admin:
        target = institution_id or auth.institution_id
    else:
        target = auth.institution_id
        if institution_id and institution_id != target:
            raise PermissionDenied("Users can only deliver from their own institution")
    if not target:
        raise DeliveryRejected("No institution associated with this user")
    institution = data.get_institution(target)
    if not institution:
        raise DeliveryRejected(f"Institution {target} not found")
    return institution


def record_delivery(
    auth: AuthContext,
    data: DataAccess,
    *,
    family_id: str,
    basket_count: int,
    other_items: Optional[str] = None,
    block_period_days: int = DEFAULT_BLOCK_PERIOD_DAYS,
    institution_id: Optional[str] = None,
    today: Optional[date] = None,
) -> DeliveryResult:
    """Deliver baskets to an active family and block it for a period."""
    institution = resolve_institution(auth, data, institution_id)

    family = data.get_family(family_id)
    if not family:
        raise DeliveryRejected(f"Family {family_id} not found")
    if family.is_blocked:
        until = family.blocked_until.isoformat() if family.blocked_until else "further notice"
        raise DeliveryRejected(f"Family {family.name} is blocked until {until}")

    available = institution.baskets
    if available <= 0:
        raise DeliveryRejected(f"Institution {institution.name} has no baskets available")
    if basket_count < 1:
        raise DeliveryRejected("At least one basket must be delivered")
    if basket_count > available:
        raise DeliveryRejected(
            f"Requested {basket_count} baskets but only {available} available"
        )
    if not is_valid_block_period(block_period_days):
        raise DeliveryRejected(
            f"Block period must be one of {', '.join(map(str, BLOCK_PERIOD_DAYS))} days"
        )

    today = today or date.today()
    blocked_until = compute_block_until(today, block_period_days)
    items = {BASKETS_KEY: basket_count, "others": parse_other_items(other_items)}

    try:
        delivery = data.create_delivery(
            family_id=family.family_id,
            family_name=family.name,
            institution_id=institution.institution_id,
            institution_name=institution.name,
            delivery_date=today,
            items=items,
        )
    except Exception as exc:
        logger.exception("Failed to create delivery for family %s", family.family_id)
        raise DeliveryWriteError("create_delivery") from exc
    logger.info(
        "[%s] Delivered %s baskets to family %s from institution %s",
        delivery.delivery_id,
        basket_count,
        family.family_id,
        institution.institution_id,
    )

    try:
        updated_family = data.block_family(family.family_id, blocked_until)
    except Exception as exc:
        logger.exception("[%s] Failed to block family %s", delivery.delivery_id, family.family_id)
        raise DeliveryWriteError("block_family", delivery.delivery_id) from exc
    if not updated_family:
        logger.error("[%s] Family %s disappeared before block", delivery.delivery_id, family.family_id)
        raise DeliveryWriteError("block_family", delivery.delivery_id)

    try:
        updated_institution = data.remove_baskets(institution.institution_id, basket_count)
    except Exception as exc:
        logger.exception(
            "[%s] Failed to decrement inventory of institution %s",
            delivery.delivery_id,
            institution.institution_id,
        )
        raise DeliveryWriteError("update_inventory", delivery.delivery_id) from exc
    if not updated_institution:
        logger.error(
            "[%s] Institution %s disappeared before inventory update",
            delivery.delivery_id,
            institution.institution_id,
        )
        raise DeliveryWriteError("update_inventory", delivery.delivery_id)

    return DeliveryResult(
        delivery=delivery, family=updated_family, institution=updated_institution
    )


def unblock_family(auth: AuthContext, data: DataAccess, family_id: str) -> FamilyRecord:
    """Admin-only: make a blocked family eligible again."""
    if not auth.is_admin:
        raise PermissionDenied("Only administrators can unblock families")
    family = data.get_family(family_id)
    if not family:
        raise NotFound(f"Family {family_id} not found")
    if not family.is_blocked:
        return family
    updated = data.unblock_family(family_id)
    if not updated:
        raise NotFound(f"Family {family_id} not found")
    logger.info("Family %s unblocked by %s", family_id, auth.user.user_id)
    return updated


def add_inventory_item(
    auth: AuthContext,
    data: DataAccess,
    institution_id: str,
    item_name: str,
    quantity: int,
) -> InstitutionRecord:
    """Increase the stock of one item, creating the item if needed."""
    if not auth.can_manage_institution(institution_id):
        raise PermissionDenied("Users can only adjust their own institution's inventory")
    item = (item_name or "").strip().lower()
    if not item:
        raise InvalidRequest("Item name is required")
    if quantity <= 0:
        raise InvalidRequest("Quantity must be positive")
    institution = data.add_inventory(institution_id, item, quantity)
    if not institution:
        raise NotFound(f"Institution {institution_id} not found")
    logger.info(
        "Added %s %s to institution %s (now %s)",
        quantity,
        item,
        institution_id,
        institution.inventory.get(item),
    )
    return institution


def release_expired_blocks(data: DataAccess, today: Optional[date] = None) -> int:
    """Reactivate families whose block date has passed. Returns the count."""
    today = today or date.today()
    released = data.release_blocks_before(today)
    if released:
        logger.info("Released %s families blocked before %s", released, today.isoformat())
    return released

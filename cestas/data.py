"""
Typed query/mutation helpers over the database, each tied to a cache key.

List queries read through the query cache; mutations write to the database
and invalidate the cache keys they affect once the write has succeeded.
Single-record lookups always go to the database so workflow preconditions are
checked against current state.
"""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional, TypeVar

from cestas.cache import QueryCache
from cestas.constants import BASKETS_KEY, FamilyStatus
from cestas.db import (
    DbClient,
    DeliveryRecord,
    FamilyRecord,
    InstitutionRecord,
)

FAMILIES_KEY = "families"
INSTITUTIONS_KEY = "institutions"
DELIVERIES_KEY = "deliveries"

T = TypeVar("T")


def deliveries_key(
    institution_id: Optional[str] = None, family_id: Optional[str] = None
) -> str:
    if institution_id:
        return f"{DELIVERIES_KEY}:institution:{institution_id}"
    if family_id:
        return f"{DELIVERIES_KEY}:family:{family_id}"
    return DELIVERIES_KEY


class DataAccess:
    """Cache-aware access to families, institutions and deliveries."""

    def __init__(self, db: DbClient, cache: QueryCache):
        self.db = db
        self.cache = cache

    def _cached_list(
        self,
        key: str,
        fetch: Callable[[], list[T]],
        decode: Callable[[dict], T],
    ) -> list[T]:
        cached = self.cache.get(key)
        if cached is not None:
            return [decode(item) for item in cached]
        records = fetch()
        self.cache.set(key, [record.as_dict() for record in records])
        return records

    # Queries

    def families(self) -> list[FamilyRecord]:
        return self._cached_list(
            FAMILIES_KEY, self.db.list_families, FamilyRecord.from_dict
        )

    def institutions(self) -> list[InstitutionRecord]:
        return self._cached_list(
            INSTITUTIONS_KEY, self.db.list_institutions, InstitutionRecord.from_dict
        )

    def deliveries(self, institution_id: Optional[str] = None) -> list[DeliveryRecord]:
        return self._cached_list(
            deliveries_key(institution_id=institution_id),
            lambda: self.db.list_deliveries(institution_id=institution_id),
            DeliveryRecord.from_dict,
        )

    def family_deliveries(self, family_id: str) -> list[DeliveryRecord]:
        return self._cached_list(
            deliveries_key(family_id=family_id),
            lambda: self.db.list_deliveries(family_id=family_id),
            DeliveryRecord.from_dict,
        )

    def get_family(self, family_id: str) -> Optional[FamilyRecord]:
        return self.db.get_family(family_id)

    def get_institution(self, institution_id: str) -> Optional[InstitutionRecord]:
        return self.db.get_institution(institution_id)

    # Mutations

    def create_family(
        self,
        *,
        name: str,
        address: str,
        phone: str,
        members: int,
        income: float,
    ) -> FamilyRecord:
        family = self.db.create_family(
            name=name,
            address=address,
            phone=phone,
            members=members,
            income=income,
        )
        self.cache.invalidate(FAMILIES_KEY)
        return family

    def update_family(self, family_id: str, **fields) -> Optional[FamilyRecord]:
        family = self.db.update_family(family_id, **fields)
        if family:
            self.cache.invalidate(FAMILIES_KEY)
        return family

    def block_family(self, family_id: str, until: date) -> Optional[FamilyRecord]:
        family = self.db.set_family_status(family_id, FamilyStatus.BLOCKED, until)
        if family:
            self.cache.invalidate(FAMILIES_KEY)
        return family

    def unblock_family(self, family_id: str) -> Optional[FamilyRecord]:
        family = self.db.set_family_status(family_id, FamilyStatus.ACTIVE, None)
        if family:
            self.cache.invalidate(FAMILIES_KEY)
        return family

    def release_blocks_before(self, cutoff: date) -> int:
        released = self.db.release_blocks_before(cutoff)
        if released:
            self.cache.invalidate(FAMILIES_KEY)
        return released

    def create_institution(
        self,
        *,
        name: str,
        address: str,
        phone: str,
        inventory: Optional[dict] = None,
    ) -> InstitutionRecord:
        institution = self.db.create_institution(
            name=name, address=address, phone=phone, inventory=inventory
        )
        self.cache.invalidate(INSTITUTIONS_KEY)
        return institution

    def update_institution(
        self, institution_id: str, **fields
    ) -> Optional[InstitutionRecord]:
        institution = self.db.update_institution(institution_id, **fields)
        if institution:
            self.cache.invalidate(INSTITUTIONS_KEY)
        return institution

    def add_inventory(
        self, institution_id: str, item: str, quantity: int
    ) -> Optional[InstitutionRecord]:
        institution = self.db.adjust_inventory(institution_id, item, quantity)
        if institution:
            self.cache.invalidate(INSTITUTIONS_KEY)
        return institution

    def remove_baskets(
        self, institution_id: str, count: int
    ) -> Optional[InstitutionRecord]:
        institution = self.db.adjust_inventory(institution_id, BASKETS_KEY, -count)
        if institution:
            self.cache.invalidate(INSTITUTIONS_KEY)
        return institution

    def create_delivery(self, **fields) -> DeliveryRecord:
        delivery = self.db.create_delivery(**fields)
        self.cache.invalidate_prefix(DELIVERIES_KEY)
        return delivery

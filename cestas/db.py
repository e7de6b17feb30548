"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import copy
import secrets
import threading
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, Optional, Protocol

from sqlalchemy import JSON, Column, Date, Float, Integer, String, create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from cestas.constants import BASKETS_KEY, FamilyStatus, UserRole


class DbClient(Protocol):
    """Interface for database access."""

    def create_family(
        self,
        *,
        name: str,
        address: str,
        phone: str,
        members: int,
        income: float,
        status: FamilyStatus = FamilyStatus.ACTIVE,
        blocked_until: Optional[date] = None,
    ) -> "FamilyRecord":
        ...

    def get_family(self, family_id: str) -> Optional["FamilyRecord"]:
        ...

    def list_families(self) -> list["FamilyRecord"]:
        ...

    def update_family(
        self,
        family_id: str,
        *,
        name: Optional[str] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        members: Optional[int] = None,
        income: Optional[float] = None,
    ) -> Optional["FamilyRecord"]:
        ...

    def set_family_status(
        self,
        family_id: str,
        status: FamilyStatus,
        blocked_until: Optional[date],
    ) -> Optional["FamilyRecord"]:
        ...

    def release_blocks_before(self, cutoff: date) -> int:
        ...

    def create_institution(
        self,
        *,
        name: str,
        address: str,
        phone: str,
        inventory: Optional[dict] = None,
    ) -> "InstitutionRecord":
        ...

    def get_institution(self, institution_id: str) -> Optional["InstitutionRecord"]:
        ...

    def list_institutions(self) -> list["InstitutionRecord"]:
        ...

    def update_institution(
        self,
        institution_id: str,
        *,
        name: Optional[str] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Optional["InstitutionRecord"]:
        ...

    def adjust_inventory(
        self, institution_id: str, item: str, delta: int
    ) -> Optional["InstitutionRecord"]:
        ...

    def create_delivery(
        self,
        *,
        family_id: str,
        family_name: str,
        institution_id: str,
        institution_name: str,
        delivery_date: date,
        items: dict,
    ) -> "DeliveryRecord":
        ...

    def list_deliveries(
        self,
        *,
        institution_id: Optional[str] = None,
        family_id: Optional[str] = None,
    ) -> list["DeliveryRecord"]:
        ...

    def create_user(
        self,
        *,
        email: str,
        name: str,
        role: UserRole,
        password_hash: str,
        institution_id: Optional[str] = None,
    ) -> "UserRecord":
        ...

    def get_user(self, user_id: str) -> Optional["UserRecord"]:
        ...

    def get_user_by_email(self, email: str) -> Optional["UserRecord"]:
        ...

    def list_users(self) -> list["UserRecord"]:
        ...

    def create_session(self, user_id: str, ttl_seconds: float) -> "SessionRecord":
        ...

    def get_session(self, token: str) -> Optional["SessionRecord"]:
        ...

    def delete_session(self, token: str) -> None:
        ...


def _new_id() -> str:
    return uuid.uuid4().hex


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _apply_inventory_delta(inventory: dict, item: str, delta: int) -> dict:
    updated = dict(inventory or {})
    updated.setdefault(BASKETS_KEY, 0)
    updated[item] = max(0, int(updated.get(item, 0)) + delta)
    return updated


def _parse_date(value) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value)


@dataclass
class FamilyRecord:
    family_id: str
    name: str
    address: str
    phone: str
    members: int
    income: float
    status: FamilyStatus = FamilyStatus.ACTIVE
    blocked_until: Optional[date] = None
    created_at: float = field(default_factory=lambda: time.time())

    @property
    def is_blocked(self) -> bool:
        return self.status == FamilyStatus.BLOCKED

    def as_dict(self) -> dict:
        return {
            "id": self.family_id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "members": self.members,
            "income": self.income,
            "status": self.status.value,
            "blocked_until": (
                self.blocked_until.isoformat() if self.blocked_until else None
            ),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "FamilyRecord":
        return cls(
            family_id=payload["id"],
            name=payload["name"],
            address=payload["address"],
            phone=payload["phone"],
            members=payload["members"],
            income=payload["income"],
            status=FamilyStatus(payload["status"]),
            blocked_until=_parse_date(payload.get("blocked_until")),
            created_at=payload["created_at"],
        )


@dataclass
class InstitutionRecord:
    institution_id: str
    name: str
    address: str
    phone: str
    inventory: Dict[str, int] = field(default_factory=lambda: {BASKETS_KEY: 0})
    created_at: float = field(default_factory=lambda: time.time())

    @property
    def baskets(self) -> int:
        return int(self.inventory.get(BASKETS_KEY, 0))

    def as_dict(self) -> dict:
        return {
            "id": self.institution_id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "inventory": dict(self.inventory),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "InstitutionRecord":
        return cls(
            institution_id=payload["id"],
            name=payload["name"],
            address=payload["address"],
            phone=payload["phone"],
            inventory=dict(payload.get("inventory") or {BASKETS_KEY: 0}),
            created_at=payload["created_at"],
        )


@dataclass
class DeliveryRecord:
    delivery_id: str
    family_id: str
    family_name: str
    institution_id: str
    institution_name: str
    delivery_date: date
    items: dict = field(default_factory=dict)
    created_at: float = field(default_factory=lambda: time.time())

    @property
    def baskets(self) -> int:
        return int(self.items.get(BASKETS_KEY, 0))

    @property
    def other_items(self) -> list[str]:
        return list(self.items.get("others") or [])

    def as_dict(self) -> dict:
        return {
            "id": self.delivery_id,
            "family_id": self.family_id,
            "family_name": self.family_name,
            "institution_id": self.institution_id,
            "institution_name": self.institution_name,
            "delivery_date": self.delivery_date.isoformat(),
            "items": copy.deepcopy(self.items),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "DeliveryRecord":
        return cls(
            delivery_id=payload["id"],
            family_id=payload["family_id"],
            family_name=payload["family_name"],
            institution_id=payload["institution_id"],
            institution_name=payload["institution_name"],
            delivery_date=_parse_date(payload["delivery_date"]),
            items=payload.get("items") or {},
            created_at=payload["created_at"],
        )


@dataclass
class UserRecord:
    user_id: str
    email: str
    name: str
    role: UserRole
    password_hash: str
    institution_id: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def as_dict(self) -> dict:
        # Password hashes never leave the store layer.
        return {
            "id": self.user_id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
            "institution_id": self.institution_id,
            "created_at": self.created_at,
        }


@dataclass
class SessionRecord:
    token: str
    user_id: str
    expires_at: float
    created_at: float = field(default_factory=lambda: time.time())

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) >= self.expires_at


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.families: Dict[str, FamilyRecord] = {}
        self.institutions: Dict[str, InstitutionRecord] = {}
        self.deliveries: Dict[str, DeliveryRecord] = {}
        self.users: Dict[str, UserRecord] = {}
        self.sessions: Dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.families.clear()
        self.institutions.clear()
        self.deliveries.clear()
        self.users.clear()
        self.sessions.clear()

    def _snapshot(self, table: dict) -> list:
        with self._lock:
            return list(table.values())

    def create_family(
        self,
        *,
        name: str,
        address: str,
        phone: str,
        members: int,
        income: float,
        status: FamilyStatus = FamilyStatus.ACTIVE,
        blocked_until: Optional[date] = None,
    ) -> FamilyRecord:
        record = FamilyRecord(
            family_id=_new_id(),
            name=name,
            address=address,
            phone=phone,
            members=members,
            income=income,
            status=status,
            blocked_until=blocked_until,
        )
        with self._lock:
            self.families[record.family_id] = record
        return replace(record)

    def get_family(self, family_id: str) -> Optional[FamilyRecord]:
        record = self.families.get(family_id)
        return replace(record) if record else None

    def list_families(self) -> list[FamilyRecord]:
        return [replace(record) for record in self._snapshot(self.families)]

    def update_family(
        self,
        family_id: str,
        *,
        name: Optional[str] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        members: Optional[int] = None,
        income: Optional[float] = None,
    ) -> Optional[FamilyRecord]:
        record = self.families.get(family_id)
        if not record:
            return None
        if name is not None:
            record.name = name
        if address is not None:
            record.address = address
        if phone is not None:
            record.phone = phone
        if members is not None:
            record.members = members
        if income is not None:
            record.income = income
        return replace(record)

    def set_family_status(
        self,
        family_id: str,
        status: FamilyStatus,
        blocked_until: Optional[date],
    ) -> Optional[FamilyRecord]:
        record = self.families.get(family_id)
        if not record:
            return None
        record.status = status
        record.blocked_until = blocked_until
        return replace(record)

    def release_blocks_before(self, cutoff: date) -> int:
        released = 0
        for record in self._snapshot(self.families):
            if (
                record.status == FamilyStatus.BLOCKED
                and record.blocked_until is not None
                and record.blocked_until < cutoff
            ):
                record.status = FamilyStatus.ACTIVE
                record.blocked_until = None
                released += 1
        return released

    def create_institution(
        self,
        *,
        name: str,
        address: str,
        phone: str,
        inventory: Optional[dict] = None,
    ) -> InstitutionRecord:
        stock = dict(inventory or {})
        stock.setdefault(BASKETS_KEY, 0)
        record = InstitutionRecord(
            institution_id=_new_id(),
            name=name,
            address=address,
            phone=phone,
            inventory=stock,
        )
        with self._lock:
            self.institutions[record.institution_id] = record
        return replace(record, inventory=dict(record.inventory))

    def get_institution(self, institution_id: str) -> Optional[InstitutionRecord]:
        record = self.institutions.get(institution_id)
        if not record:
            return None
        return replace(record, inventory=dict(record.inventory))

    def list_institutions(self) -> list[InstitutionRecord]:
        return [
            replace(record, inventory=dict(record.inventory))
            for record in self._snapshot(self.institutions)
        ]

    def update_institution(
        self,
        institution_id: str,
        *,
        name: Optional[str] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Optional[InstitutionRecord]:
        record = self.institutions.get(institution_id)
        if not record:
            return None
        if name is not None:
            record.name = name
        if address is not None:
            record.address = address
        if phone is not None:
            record.phone = phone
        return replace(record, inventory=dict(record.inventory))

    def adjust_inventory(
        self, institution_id: str, item: str, delta: int
    ) -> Optional[InstitutionRecord]:
        with self._lock:
            record = self.institutions.get(institution_id)
            if not record:
                return None
            record.inventory = _apply_inventory_delta(record.inventory, item, delta)
            return replace(record, inventory=dict(record.inventory))

    def create_delivery(
        self,
        *,
        family_id: str,
        family_name: str,
        institution_id: str,
        institution_name: str,
        delivery_date: date,
        items: dict,
    ) -> DeliveryRecord:
        record = DeliveryRecord(
            delivery_id=_new_id(),
            family_id=family_id,
            family_name=family_name,
            institution_id=institution_id,
            institution_name=institution_name,
            delivery_date=delivery_date,
            items=copy.deepcopy(items),
        )
        with self._lock:
            self.deliveries[record.delivery_id] = record
        return replace(record, items=copy.deepcopy(record.items))

    def list_deliveries(
        self,
        *,
        institution_id: Optional[str] = None,
        family_id: Optional[str] = None,
    ) -> list[DeliveryRecord]:
        items = [
            replace(record, items=copy.deepcopy(record.items))
            for record in self._snapshot(self.deliveries)
            if (institution_id is None or record.institution_id == institution_id)
            and (family_id is None or record.family_id == family_id)
        ]
        items.sort(key=lambda d: (d.delivery_date, d.created_at), reverse=True)
        return items

    def create_user(
        self,
        *,
        email: str,
        name: str,
        role: UserRole,
        password_hash: str,
        institution_id: Optional[str] = None,
    ) -> UserRecord:
        normalized = _normalize_email(email)
        record = UserRecord(
            user_id=_new_id(),
            email=normalized,
            name=name,
            role=role,
            password_hash=password_hash,
            institution_id=institution_id,
        )
        with self._lock:
            if any(user.email == normalized for user in self.users.values()):
                raise ValueError(f"User with email {normalized} already exists")
            self.users[record.user_id] = record
        return replace(record)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        record = self.users.get(user_id)
        return replace(record) if record else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        normalized = _normalize_email(email)
        for record in self._snapshot(self.users):
            if record.email == normalized:
                return replace(record)
        return None

    def list_users(self) -> list[UserRecord]:
        return [replace(record) for record in self._snapshot(self.users)]

    def create_session(self, user_id: str, ttl_seconds: float) -> SessionRecord:
        now = time.time()
        record = SessionRecord(
            token=secrets.token_urlsafe(32),
            user_id=user_id,
            expires_at=now + ttl_seconds,
            created_at=now,
        )
        with self._lock:
            self.sessions[record.token] = record
        return replace(record)

    def get_session(self, token: str) -> Optional[SessionRecord]:
        record = self.sessions.get(token)
        if not record:
            return None
        if record.is_expired():
            self.sessions.pop(token, None)
            return None
        return replace(record)

    def delete_session(self, token: str) -> None:
        self.sessions.pop(token, None)


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_family_record(self, row: "FamilyRow") -> FamilyRecord:
        return FamilyRecord(
            family_id=row.id,
            name=row.name,
            address=row.address,
            phone=row.phone,
            members=row.members,
            income=row.income,
            status=FamilyStatus(row.status),
            blocked_until=row.blocked_until,
            created_at=row.created_at,
        )

    def _to_institution_record(self, row: "InstitutionRow") -> InstitutionRecord:
        return InstitutionRecord(
            institution_id=row.id,
            name=row.name,
            address=row.address,
            phone=row.phone,
            inventory=dict(row.inventory or {BASKETS_KEY: 0}),
            created_at=row.created_at,
        )

    def _to_delivery_record(self, row: "DeliveryRow") -> DeliveryRecord:
        return DeliveryRecord(
            delivery_id=row.id,
            family_id=row.family_id,
            family_name=row.family_name,
            institution_id=row.institution_id,
            institution_name=row.institution_name,
            delivery_date=row.delivery_date,
            items=copy.deepcopy(row.items or {}),
            created_at=row.created_at,
        )

    def _to_user_record(self, row: "UserRow") -> UserRecord:
        return UserRecord(
            user_id=row.id,
            email=row.email,
            name=row.name,
            role=UserRole(row.role),
            password_hash=row.password_hash,
            institution_id=row.institution_id,
            created_at=row.created_at,
        )

    def create_family(
        self,
        *,
        name: str,
        address: str,
        phone: str,
        members: int,
        income: float,
        status: FamilyStatus = FamilyStatus.ACTIVE,
        blocked_until: Optional[date] = None,
    ) -> FamilyRecord:
        with self.Session() as session:
            row = FamilyRow(
                id=_new_id(),
                name=name,
                address=address,
                phone=phone,
                members=members,
                income=income,
                status=status.value,
                blocked_until=blocked_until,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_family_record(row)

    def get_family(self, family_id: str) -> Optional[FamilyRecord]:
        with self.Session() as session:
            row = session.get(FamilyRow, family_id)
            if not row:
                return None
            return self._to_family_record(row)

    def list_families(self) -> list[FamilyRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(FamilyRow).order_by(FamilyRow.created_at.asc())
            ).scalars()
            return [self._to_family_record(row) for row in rows]

    def update_family(
        self,
        family_id: str,
        *,
        name: Optional[str] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        members: Optional[int] = None,
        income: Optional[float] = None,
    ) -> Optional[FamilyRecord]:
        with self.Session() as session:
            row = session.get(FamilyRow, family_id)
            if not row:
                return None
            if name is not None:
                row.name = name
            if address is not None:
                row.address = address
            if phone is not None:
                row.phone = phone
            if members is not None:
                row.members = members
            if income is not None:
                row.income = income
            session.commit()
            session.refresh(row)
            return self._to_family_record(row)

    def set_family_status(
        self,
        family_id: str,
        status: FamilyStatus,
        blocked_until: Optional[date],
    ) -> Optional[FamilyRecord]:
        with self.Session() as session:
            row = session.get(FamilyRow, family_id)
            if not row:
                return None
            row.status = status.value
            row.blocked_until = blocked_until
            session.commit()
            session.refresh(row)
            return self._to_family_record(row)

    def release_blocks_before(self, cutoff: date) -> int:
        with self.Session() as session:
            updated = (
                session.query(FamilyRow)
                .filter(
                    FamilyRow.status == FamilyStatus.BLOCKED.value,
                    FamilyRow.blocked_until.isnot(None),
                    FamilyRow.blocked_until < cutoff,
                )
                .update(
                    {
                        FamilyRow.status: FamilyStatus.ACTIVE.value,
                        FamilyRow.blocked_until: None,
                    },
                    synchronize_session=False,
                )
            )
            session.commit()
            return updated or 0

    def create_institution(
        self,
        *,
        name: str,
        address: str,
        phone: str,
        inventory: Optional[dict] = None,
    ) -> InstitutionRecord:
        stock = dict(inventory or {})
        stock.setdefault(BASKETS_KEY, 0)
        with self.Session() as session:
            row = InstitutionRow(
                id=_new_id(),
                name=name,
                address=address,
                phone=phone,
                inventory=stock,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_institution_record(row)

    def get_institution(self, institution_id: str) -> Optional[InstitutionRecord]:
        with self.Session() as session:
            row = session.get(InstitutionRow, institution_id)
            if not row:
                return None
            return self._to_institution_record(row)

    def list_institutions(self) -> list[InstitutionRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(InstitutionRow).order_by(InstitutionRow.created_at.asc())
            ).scalars()
            return [self._to_institution_record(row) for row in rows]

    def update_institution(
        self,
        institution_id: str,
        *,
        name: Optional[str] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Optional[InstitutionRecord]:
        with self.Session() as session:
            row = session.get(InstitutionRow, institution_id)
            if not row:
                return None
            if name is not None:
                row.name = name
            if address is not None:
                row.address = address
            if phone is not None:
                row.phone = phone
            session.commit()
            session.refresh(row)
            return self._to_institution_record(row)

    def adjust_inventory(
        self, institution_id: str, item: str, delta: int
    ) -> Optional[InstitutionRecord]:
        with self.Session() as session:
            stmt = (
                select(InstitutionRow)
                .where(InstitutionRow.id == institution_id)
                .with_for_update()
            )
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            # Assign a new dict so the JSON column is flagged dirty.
            row.inventory = _apply_inventory_delta(row.inventory, item, delta)
            session.commit()
            session.refresh(row)
            return self._to_institution_record(row)

    def create_delivery(
        self,
        *,
        family_id: str,
        family_name: str,
        institution_id: str,
        institution_name: str,
        delivery_date: date,
        items: dict,
    ) -> DeliveryRecord:
        with self.Session() as session:
            row = DeliveryRow(
                id=_new_id(),
                family_id=family_id,
                family_name=family_name,
                institution_id=institution_id,
                institution_name=institution_name,
                delivery_date=delivery_date,
                items=copy.deepcopy(items),
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_delivery_record(row)

    def list_deliveries(
        self,
        *,
        institution_id: Optional[str] = None,
        family_id: Optional[str] = None,
    ) -> list[DeliveryRecord]:
        with self.Session() as session:
            stmt = select(DeliveryRow)
            if institution_id is not None:
                stmt = stmt.where(DeliveryRow.institution_id == institution_id)
            if family_id is not None:
                stmt = stmt.where(DeliveryRow.family_id == family_id)
            stmt = stmt.order_by(
                DeliveryRow.delivery_date.desc(), DeliveryRow.created_at.desc()
            )
            rows = session.execute(stmt).scalars()
            return [self._to_delivery_record(row) for row in rows]

    def create_user(
        self,
        *,
        email: str,
        name: str,
        role: UserRole,
        password_hash: str,
        institution_id: Optional[str] = None,
    ) -> UserRecord:
        normalized = _normalize_email(email)
        with self.Session() as session:
            row = UserRow(
                id=_new_id(),
                email=normalized,
                name=name,
                role=role.value,
                password_hash=password_hash,
                institution_id=institution_id,
                created_at=time.time(),
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ValueError(
                    f"User with email {normalized} already exists"
                ) from exc
            session.refresh(row)
            return self._to_user_record(row)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return None
            return self._to_user_record(row)

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self.Session() as session:
            stmt = select(UserRow).where(UserRow.email == _normalize_email(email))
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            return self._to_user_record(row)

    def list_users(self) -> list[UserRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(UserRow).order_by(UserRow.created_at.asc())
            ).scalars()
            return [self._to_user_record(row) for row in rows]

    def create_session(self, user_id: str, ttl_seconds: float) -> SessionRecord:
        now = time.time()
        token = secrets.token_urlsafe(32)
        with self.Session() as session:
            session.add(
                SessionRow(
                    token=token,
                    user_id=user_id,
                    created_at=now,
                    expires_at=now + ttl_seconds,
                )
            )
            session.commit()
        return SessionRecord(
            token=token, user_id=user_id, expires_at=now + ttl_seconds, created_at=now
        )

    def get_session(self, token: str) -> Optional[SessionRecord]:
        with self.Session() as session:
            row = session.get(SessionRow, token)
            if not row:
                return None
            record = SessionRecord(
                token=row.token,
                user_id=row.user_id,
                expires_at=row.expires_at,
                created_at=row.created_at,
            )
            if record.is_expired():
                session.delete(row)
                session.commit()
                return None
            return record

    def delete_session(self, token: str) -> None:
        with self.Session() as session:
            row = session.get(SessionRow, token)
            if row:
                session.delete(row)
                session.commit()


Base = declarative_base()


class FamilyRow(Base):
    __tablename__ = "families"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    address = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    members = Column(Integer, nullable=False)
    income = Column(Float, nullable=False)
    status = Column(String, nullable=False, default=FamilyStatus.ACTIVE.value, index=True)
    blocked_until = Column(Date, nullable=True)
    created_at = Column(Float, nullable=False)


class InstitutionRow(Base):
    __tablename__ = "institutions"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    address = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    inventory = Column(JSON, nullable=False)
    created_at = Column(Float, nullable=False)


class DeliveryRow(Base):
    __tablename__ = "deliveries"

    id = Column(String, primary_key=True)
    family_id = Column(String, nullable=False, index=True)
    family_name = Column(String, nullable=False)
    institution_id = Column(String, nullable=False, index=True)
    institution_name = Column(String, nullable=False)
    delivery_date = Column(Date, nullable=False)
    items = Column(JSON, nullable=False)
    created_at = Column(Float, nullable=False)


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    institution_id = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


class SessionRow(Base):
    __tablename__ = "sessions"

    token = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False)
    expires_at = Column(Float, nullable=False)

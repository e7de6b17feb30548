"""
Password login and session resolution.

The resolved identity is an explicit AuthContext that routes pass into the
workflow functions; nothing here keeps a process-wide current user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from cestas.constants import UserRole
from cestas.db import DbClient, InstitutionRecord, SessionRecord, UserRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    user: UserRecord
    institution: Optional[InstitutionRecord] = None
    token: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.user.role == UserRole.ADMIN

    @property
    def institution_id(self) -> Optional[str]:
        return self.user.institution_id

    def can_manage_institution(self, institution_id: str) -> bool:
        return self.is_admin or self.user.institution_id == institution_id


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(user: UserRecord, password: str) -> bool:
    return check_password_hash(user.password_hash, password)


def authenticate(db: DbClient, email: str, password: str) -> Optional[UserRecord]:
    user = db.get_user_by_email(email)
    if not user or not verify_password(user, password):
        logger.info("Failed login for %s", email)
        return None
    return user


def login(
    db: DbClient, email: str, password: str, ttl_seconds: float
) -> Optional[tuple[SessionRecord, UserRecord]]:
    user = authenticate(db, email, password)
    if not user:
        return None
    session = db.create_session(user.user_id, ttl_seconds)
    logger.info("User %s logged in", user.user_id)
    return session, user


def logout(db: DbClient, token: str) -> None:
    db.delete_session(token)


def resolve_session(db: DbClient, token: str) -> Optional[AuthContext]:
    """Return the AuthContext for a live session token, or None."""
    session = db.get_session(token)
    if not session:
        return None
    user = db.get_user(session.user_id)
    if not user:
        logger.warning("Session %s points at missing user %s", token[:8], session.user_id)
        db.delete_session(token)
        return None
    institution = (
        db.get_institution(user.institution_id) if user.institution_id else None
    )
    return AuthContext(user=user, institution=institution, token=token)


def create_user(
    db: DbClient,
    *,
    email: str,
    name: str,
    password: str,
    role: UserRole = UserRole.NORMAL,
    institution_id: Optional[str] = None,
) -> UserRecord:
    """Create a user; normal users must belong to an existing institution."""
    if role == UserRole.NORMAL:
        if not institution_id:
            raise ValueError("Normal users must be linked to an institution")
        if not db.get_institution(institution_id):
            raise LookupError(f"Institution {institution_id} not found")
    return db.create_user(
        email=email,
        name=name,
        role=role,
        password_hash=hash_password(password),
        institution_id=institution_id,
    )

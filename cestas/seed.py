"""
Demo data for local runs: a few families, two institutions and an admin user.

Records that already exist are skipped and logged rather than treated as errors.
"""

from __future__ import annotations

import logging
from datetime import date

from cestas.auth import create_user
from cestas.constants import UserRole
from cestas.data import DataAccess
from cestas.eligibility import compute_block_until

logger = logging.getLogger(__name__)

MOCK_FAMILIES = [
    {
        "name": "Família Santos",
        "address": "Rua das Palmeiras, 123 - Centro",
        "phone": "(11) 98765-4321",
        "members": 4,
        "income": 1200.00,
    },
    {
        "name": "Família Rodrigues",
        "address": "Av. Brasil, 456 - Vila Nova",
        "phone": "(11) 98765-4322",
        "members": 3,
        "income": 950.00,
    },
    {
        "name": "Família Ferreira",
        "address": "Rua do Comércio, 789 - Centro",
        "phone": "(11) 98765-4323",
        "members": 5,
        "income": 1800.00,
        "blocked_days": 30,
    },
]

MOCK_INSTITUTIONS = [
    {
        "name": "Centro Social Esperança",
        "address": "Rua da Esperança, 100 - Jardim Primavera",
        "phone": "(11) 91234-5678",
        "inventory": {"baskets": 25},
    },
    {
        "name": "Associação Comunitária Unidos",
        "address": "Av. Solidariedade, 200 - Vila União",
        "phone": "(11) 91234-5679",
        "inventory": {"baskets": 40},
    },
]


def seed_families(data: DataAccess) -> int:
    existing = {(f.name, f.phone) for f in data.db.list_families()}
    created = 0
    for family in MOCK_FAMILIES:
        if (family["name"], family["phone"]) in existing:
            logger.info("Family %s already exists; skipping", family["name"])
            continue
        fields = dict(family)
        blocked_days = fields.pop("blocked_days", None)
        record = data.create_family(**fields)
        if blocked_days:
            data.block_family(
                record.family_id, compute_block_until(date.today(), blocked_days)
            )
        created += 1
    return created


def seed_institutions(data: DataAccess) -> int:
    existing = {i.name for i in data.db.list_institutions()}
    created = 0
    for institution in MOCK_INSTITUTIONS:
        if institution["name"] in existing:
            logger.info("Institution %s already exists; skipping", institution["name"])
            continue
        data.create_institution(**institution)
        created += 1
    return created


def seed_demo_data(data: DataAccess) -> tuple[int, int]:
    """Create the mock families and institutions. Returns the counts created."""
    families = seed_families(data)
    institutions = seed_institutions(data)
    logger.info(
        "Seeded %s families and %s institutions", families, institutions
    )
    return families, institutions


def ensure_admin(data: DataAccess, email: str, password: str, name: str = "Administrador") -> bool:
    """Create an admin account unless the email is already registered."""
    if data.db.get_user_by_email(email):
        logger.info("User %s already exists; skipping", email)
        return False
    try:
        create_user(
            data.db,
            email=email,
            name=name,
            password=password,
            role=UserRole.ADMIN,
        )
    except ValueError as exc:
        logger.warning("Could not create admin %s: %s", email, exc)
        return False
    return True

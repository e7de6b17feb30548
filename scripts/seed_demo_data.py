"""
CLI helper to load demo families, institutions and an admin account.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cestas.data import DataAccess
from cestas.dependencies import get_cache_client, get_db_client
from cestas.seed import ensure_admin, seed_demo_data


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument(
        "--admin-email",
        type=str,
        default=None,
        help="Also create an admin account with this email",
    )
    parser.add_argument(
        "--admin-password",
        type=str,
        default=None,
        help="Password for the admin account",
    )
    parser.add_argument(
        "--admin-name",
        type=str,
        default="Administrador",
        help="Display name for the admin account",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    if args.admin_email and not args.admin_password:
        parser.error("--admin-password is required with --admin-email")

    data = DataAccess(get_db_client(), get_cache_client())
    families, institutions = seed_demo_data(data)
    print(f"Created {families} families and {institutions} institutions")
    if args.admin_email:
        created = ensure_admin(
            data, args.admin_email, args.admin_password, name=args.admin_name
        )
        print(f"Admin {args.admin_email}: {'created' if created else 'already exists'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

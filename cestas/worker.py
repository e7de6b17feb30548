"""
Polling loop that reactivates families whose block period has passed.

Families stay blocked until an administrator unblocks them unless this worker
is running. Intended to be run under systemd/supervisor.
"""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import Optional

from cestas.cache import QueryCache
from cestas.config import get_settings
from cestas.data import DataAccess
from cestas.db import DbClient
from cestas.dependencies import get_cache_client, get_db_client
from cestas.workflow import release_expired_blocks

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


def sweep_once(
    *,
    db: Optional[DbClient] = None,
    cache: Optional[QueryCache] = None,
    today: Optional[date] = None,
) -> int:
    """
    Release every expired block once. Returns the number of families released.
    """
    data = DataAccess(db or get_db_client(), cache or get_cache_client())
    return release_expired_blocks(data, today)


def run_loop(poll_interval_seconds: Optional[float] = None) -> None:
    settings = get_settings()
    interval = poll_interval_seconds or settings.expiry_sweep_interval_seconds
    db = get_db_client()
    cache = get_cache_client()
    while True:
        try:
            released = sweep_once(db=db, cache=cache)
            logger.info("Expiry sweep released %s families", released)
        except Exception:
            logger.exception("Expiry sweep failed")
        time.sleep(interval)


if __name__ == "__main__":
    run_loop()

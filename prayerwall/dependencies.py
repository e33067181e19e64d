"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import hmac
import logging
import threading
from typing import Optional

from fastapi import Header, HTTPException, status

from prayerwall.config import get_settings
from prayerwall.db import DbClient, InMemoryDbClient, PostgresDbClient

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_db_client_lock = threading.Lock()


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    with _db_client_lock:
        # Another request thread may have built it while we waited.
        if _db_client:
            return _db_client
        settings = get_settings()
        if settings.use_in_memory_backends or not settings.database_url:
            logger.info("Using in-memory record store")
            _db_client = InMemoryDbClient()
        else:
            logger.info("Using SQL record store (%s)", settings.database_url.split("://", 1)[0])
            _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def verify_admin_token(
    x_admin_token: Optional[str] = Header(default=None),
) -> None:
    """
    Gate /admin routes when ADMIN_TOKEN is configured.

    Without a configured token the routes stay open and the admin gate lives
    in the client.
    """
    expected = get_settings().admin_token
    if not expected:
        return
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required"
        )

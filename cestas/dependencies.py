"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cestas.auth import AuthContext, resolve_session
from cestas.cache import InMemoryQueryCache, QueryCache, RedisQueryCache
from cestas.config import get_settings
from cestas.data import DataAccess
from cestas.db import DbClient, InMemoryDbClient, PostgresDbClient
from cestas.storage import CosStorageClient, InMemoryStorageClient, StorageClient

_db_client: DbClient | None = None
_cache_client: QueryCache | None = None
_storage_client: StorageClient | None = None

bearer_scheme = HTTPBearer(auto_error=False)


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_cache_client() -> QueryCache:
    """
    Return a singleton query cache shared by all requests.
    """
    global _cache_client
    if _cache_client:
        return _cache_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.redis_url:
        _cache_client = InMemoryQueryCache(ttl_seconds=settings.cache_ttl_seconds)
    else:
        _cache_client = RedisQueryCache(
            url=settings.redis_url,
            key_prefix=settings.cache_key_prefix,
            ttl_seconds=settings.cache_ttl_seconds,
        )
    return _cache_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.cos_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = CosStorageClient(
            bucket=settings.cos_bucket,
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            key_prefix=settings.cos_key_prefix,
        )
    return _storage_client


def get_data_access(
    db: DbClient = Depends(get_db_client),
    cache: QueryCache = Depends(get_cache_client),
) -> DataAccess:
    return DataAccess(db, cache)


def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: DbClient = Depends(get_db_client),
) -> AuthContext:
    """Resolve the bearer token into the acting user's context."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    auth = resolve_session(db, credentials.credentials)
    if not auth:
        raise HTTPException(status_code=401, detail="Session expired or invalid")
    return auth


def require_admin(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    if not auth.is_admin:
        raise HTTPException(status_code=403, detail="Administrators only")
    return auth

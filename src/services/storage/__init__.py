from typing import Optional
from ...core.config import settings
from .idempotency import IdempotencyStore
from .idempotency_base import IdempotencyStoreBase
from .idempotency_sqlite import SQLiteIdempotencyStore


def create_idempotency_store(db_path: Optional[str] = None) -> IdempotencyStoreBase:
    """
    Build the idempotency store for a batch.

    SQLite when a database path is configured, otherwise a fresh in-memory
    store scoped to the caller.
    """
    path = db_path or settings.idempotency_db_path
    if path:
        return SQLiteIdempotencyStore(path)
    return IdempotencyStore()


__all__ = [
    "IdempotencyStore",
    "IdempotencyStoreBase",
    "SQLiteIdempotencyStore",
    "create_idempotency_store",
]

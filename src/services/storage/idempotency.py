"""
In-memory idempotency store (the per-batch default).
Use the SQLite store when keys must survive process restarts.
"""
from datetime import datetime, UTC
from typing import Dict, Optional
from .idempotency_base import IdempotencyStoreBase


class IdempotencyStore(IdempotencyStoreBase):
    def __init__(self):
        self._keys: Dict[str, dict] = {}

    def contains(self, key: str) -> bool:
        return key in self._keys

    def add(self, key: str, metadata: Optional[dict] = None) -> None:
        """Record a processed key (first write wins)"""
        if key in self._keys:
            return
        self._keys[key] = {
            "key": key,
            "metadata": metadata or {},
            "processed_at": datetime.now(UTC).isoformat(),
        }

    def get(self, key: str) -> Optional[dict]:
        return self._keys.get(key)

    def list_all(self) -> list:
        """List all processed keys (for debugging)"""
        return list(self._keys.values())

    def __len__(self) -> int:
        return len(self._keys)

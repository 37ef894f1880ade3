"""
Abstract base class for idempotency key stores.

Defines the interface the orchestrator relies on to skip bill groups that
were already submitted, so storage backends can be swapped freely.
"""

from abc import ABC, abstractmethod
from typing import Optional


class IdempotencyStoreBase(ABC):
    """
    Abstract base class for processed-key tracking.

    Implementations can use:
    - In-memory storage (per batch, the default)
    - SQLite (durable across runs on a single instance)
    """

    @abstractmethod
    def contains(self, key: str) -> bool:
        """
        Check whether a key has already been recorded.

        Args:
            key: Idempotency key (e.g. ``bill_B1``)

        Returns:
            True if the key was recorded by an earlier success
        """
        pass

    @abstractmethod
    def add(self, key: str, metadata: Optional[dict] = None) -> None:
        """
        Record a key after its bill group succeeded.

        Args:
            key: Idempotency key
            metadata: Optional details to keep with the key (bill id, invoice id)
        """
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[dict]:
        """
        Get the record stored for a key.

        Returns:
            Dictionary with keys ``key``, ``metadata``, ``processed_at``,
            or None if the key is unknown
        """
        pass

    @abstractmethod
    def list_all(self) -> list:
        """
        List all recorded keys.

        Returns:
            List of records (same format as get)
        """
        pass

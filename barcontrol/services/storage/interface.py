"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the key-value store.
This allows us to:
1. Use a directory of files on disk in the app
2. Use in-memory storage with a tiny quota for testing
3. Keep the persistence policy (what to write, how to degrade)
   decoupled from where bytes end up

The interface mirrors browser local storage on purpose: string keys,
string values, a finite capacity. Nothing more.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStore(ABC):
    """
    Abstract interface for a local, key-scoped store with finite capacity.

    Any storage implementation must implement these methods.
    """

    @property
    @abstractmethod
    def capacity_bytes(self) -> int:
        """Total bytes the store may hold."""
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Args:
            key: The key to read

        Returns:
            The stored string, or None if the key is absent

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value, replacing any previous value for the key.

        A failed write leaves the previous value in place.

        Args:
            key: The key to write
            value: The string to store

        Raises:
            StorageQuotaError: If the value does not fit in the remaining capacity
            StorageError: If the write fails for any other reason
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Remove a key. Removing an absent key is a no-op.

        Raises:
            StorageError: If the backend cannot be written
        """
        pass

    @abstractmethod
    def used_bytes(self) -> int:
        """Bytes currently occupied by all keys and values."""
        pass

    def remaining_bytes(self) -> int:
        return max(0, self.capacity_bytes - self.used_bytes())


def entry_size(key: str, value: str) -> int:
    """Bytes one key/value pair occupies against the quota."""
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))

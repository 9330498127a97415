"""
Local Key-Value Store Implementations

Two backends for the KeyValueStore interface:

- MemoryKeyValueStore: a dict with a byte quota. Used in tests and when
  the app runs without a writable directory.
- FileKeyValueStore: one file per key inside a directory. Writes go to a
  temporary file first and are moved into place, so a failed write never
  leaves a half-written value behind.

Both enforce a finite capacity the same way a browser enforces its local
storage quota: a write that would push the total over capacity is
rejected with StorageQuotaError and the previous value survives.
"""

import errno
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from barcontrol.exceptions import StorageError, StorageQuotaError
from barcontrol.services.storage.interface import KeyValueStore, entry_size


_VALID_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")

# Disk-full style errors are quota errors, not transient ones
_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}

_VALUE_SUFFIX = ".value"


def _validate_key(key: str) -> str:
    if not _VALID_KEY.match(key):
        raise StorageError(f"Invalid storage key: {key!r}")
    return key


def _is_transient_os_error(exc: BaseException) -> bool:
    return isinstance(exc, OSError) and exc.errno not in _QUOTA_ERRNOS


class MemoryKeyValueStore(KeyValueStore):
    """In-memory store with a byte quota."""

    def __init__(self, capacity_bytes: int = 5 * 1024 * 1024):
        self._capacity = capacity_bytes
        self._data: dict[str, str] = {}

    @property
    def capacity_bytes(self) -> int:
        return self._capacity

    def get(self, key: str) -> Optional[str]:
        return self._data.get(_validate_key(key))

    def set(self, key: str, value: str) -> None:
        _validate_key(key)
        current = self._data.get(key)
        freed = entry_size(key, current) if current is not None else 0
        required = self.used_bytes() - freed + entry_size(key, value)
        if required > self._capacity:
            raise StorageQuotaError(key, required, self._capacity)
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(_validate_key(key), None)

    def used_bytes(self) -> int:
        return sum(entry_size(k, v) for k, v in self._data.items())

    def keys(self) -> list[str]:
        return sorted(self._data)


class FileKeyValueStore(KeyValueStore):
    """
    Directory-backed store: `<directory>/<key>.value` per key.

    Transient OS errors on write are retried a few times before being
    reported as StorageError. Disk-full errors are reported straight away
    as StorageQuotaError so the caller can degrade what it writes.
    """

    def __init__(self, directory: Path, capacity_bytes: int = 5 * 1024 * 1024):
        self._directory = Path(directory)
        self._capacity = capacity_bytes
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage directory {self._directory}: {e}") from e

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def capacity_bytes(self) -> int:
        return self._capacity

    def _path_for(self, key: str) -> Path:
        return self._directory / f"{_validate_key(key)}{_VALUE_SUFFIX}"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            with open(path, "r", encoding="utf-8", newline="") as handle:
                return handle.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read '{key}': {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        current = self._entry_bytes(path)
        required = self.used_bytes() - current + entry_size(key, value)
        if required > self._capacity:
            raise StorageQuotaError(key, required, self._capacity)

        try:
            self._write_atomically(path, value)
        except OSError as e:
            if e.errno in _QUOTA_ERRNOS:
                raise StorageQuotaError(key, required, self._capacity) from e
            raise StorageError(f"Failed to write '{key}': {e}") from e

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete '{key}': {e}") from e

    def used_bytes(self) -> int:
        return sum(self._entry_bytes(path) for path in self._directory.glob(f"*{_VALUE_SUFFIX}"))

    def keys(self) -> list[str]:
        return sorted(path.name[: -len(_VALUE_SUFFIX)] for path in self._directory.glob(f"*{_VALUE_SUFFIX}"))

    def _entry_bytes(self, path: Path) -> int:
        try:
            size = path.stat().st_size
        except FileNotFoundError:
            return 0
        key = path.name[: -len(_VALUE_SUFFIX)]
        return len(key.encode("utf-8")) + size

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, max=0.5),
        retry=retry_if_exception(_is_transient_os_error),
        reraise=True,
    )
    def _write_atomically(self, path: Path, value: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(value)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

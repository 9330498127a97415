"""
Persistence Service

Round-trips the tab, the history and the budget configuration through a
KeyValueStore so they survive restarts.

RESILIENCE POLICY:
1. Loading is best effort per key. An absent or unreadable value makes
   that slice fall back to its default; the other slices still load.
   One corrupted key must never stop the app from starting.
2. Saving never raises. Each save reports a SaveOutcome instead.
3. History is the only slice that grows without bound, so it is the one
   that degrades: when the store is full, the history is written again
   without the photos of every session past the newest five. If even that
   does not fit, the history stays in memory only for this run.
4. Saves for the same key are serialized, so a save triggered by a later
   mutation can never land before an earlier one.
"""

import json
import threading
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from barcontrol.audit import AuditLogger
from barcontrol.exceptions import StorageError, StorageQuotaError
from barcontrol.models.consumption import (
    BudgetConfig,
    ConsumptionItem,
    ConsumptionSession,
)
from barcontrol.services.storage.interface import KeyValueStore
from barcontrol.state import AppState


ITEMS_KEY = "bar_active_items"
HISTORY_KEY = "bar_history"
BUDGET_LIMIT_KEY = "bar_budget_limit"
BUDGET_LOCATION_KEY = "bar_budget_location"
SCHEMA_VERSION_KEY = "bar_schema_version"

SCHEMA_VERSION = 2  # 1 = bare arrays without location/schema key

_ITEMS_ADAPTER = TypeAdapter(list[ConsumptionItem])
_HISTORY_ADAPTER = TypeAdapter(list[ConsumptionSession])


class SaveOutcome(str, Enum):
    """What happened to a save request."""
    SAVED = "saved"          # Written as-is
    DEGRADED = "degraded"    # Written in reduced form (older photos dropped)
    FAILED = "failed"        # Not written; data is in memory only


def _to_json(payload: object) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def serialize_items(items: list[ConsumptionItem]) -> str:
    return _to_json(_ITEMS_ADAPTER.dump_python(items, mode="json", by_alias=True))


def serialize_history(
    sessions: list[ConsumptionSession],
    keep_photos: Optional[int] = None,
) -> str:
    """
    Encode the history as stored JSON.

    Args:
        sessions: History, newest first
        keep_photos: If given, sessions at index >= keep_photos are written
                     without the `photo` field on their items. Every other
                     field is kept.
    """
    payload = _HISTORY_ADAPTER.dump_python(sessions, mode="json", by_alias=True)
    if keep_photos is not None:
        for session in payload[keep_photos:]:
            for item in session.get("items", []):
                item.pop("photo", None)
    return _to_json(payload)


class PersistenceService:
    """
    Loads and saves application state through a KeyValueStore.

    Usage:
        persistence = PersistenceService(FileKeyValueStore(path))
        state = persistence.load()
        persistence.save_items(state.items)
    """

    def __init__(
        self,
        store: KeyValueStore,
        audit_logger: Optional[AuditLogger] = None,
        history_photo_keep: int = 5,
        default_budget_limit: Decimal = Decimal("0"),
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        self._history_photo_keep = history_photo_keep
        self._default_budget_limit = default_budget_limit
        self._locks = {
            key: threading.Lock()
            for key in (ITEMS_KEY, HISTORY_KEY, BUDGET_LIMIT_KEY, BUDGET_LOCATION_KEY, SCHEMA_VERSION_KEY)
        }

    @property
    def store(self) -> KeyValueStore:
        return self._store

    # =========================================================================
    # LOAD
    # =========================================================================

    def load(self) -> AppState:
        """
        Load every slice of application state.

        Never raises: each slice that cannot be read falls back to its
        default (empty tab, empty history, default budget).
        """
        self._check_schema_version()

        items = self._load_list(ITEMS_KEY, ConsumptionItem)
        history = self._load_list(HISTORY_KEY, ConsumptionSession)
        budget = self._load_budget()

        self._audit_logger.log_state_loaded(
            item_count=len(items),
            session_count=len(history),
            limit=str(budget.limit),
        )
        return AppState(items=items, history=history, budget=budget)

    def _read(self, key: str) -> Optional[str]:
        try:
            return self._store.get(key)
        except StorageError as e:
            self._audit_logger.log_slice_load_failed(key, str(e))
            return None

    def _load_list(self, key: str, model: type[BaseModel]) -> list:
        """
        Validate a stored JSON array record by record.

        A record that does not validate is skipped and logged; the rest
        of the slice still loads.
        """
        raw = self._read(key)
        if raw is None or not raw.strip():
            return []
        try:
            records = json.loads(raw, parse_float=Decimal)
        except ValueError as e:
            self._audit_logger.log_slice_load_failed(key, f"invalid JSON: {e}")
            return []
        if not isinstance(records, list):
            self._audit_logger.log_slice_load_failed(key, f"expected a list, got {type(records).__name__}")
            return []

        loaded = []
        for index, record in enumerate(records):
            try:
                loaded.append(model.model_validate(record))
            except PydanticValidationError as e:
                self._audit_logger.log_slice_load_failed(
                    key, f"record {index} skipped: {e.error_count()} validation errors"
                )
        return loaded

    def _load_budget(self) -> BudgetConfig:
        limit = self._load_budget_limit()
        location = self._read(BUDGET_LOCATION_KEY)
        try:
            return BudgetConfig(limit=limit, location=location)
        except PydanticValidationError as e:
            self._audit_logger.log_slice_load_failed(BUDGET_LOCATION_KEY, f"{e.error_count()} validation errors")
            return BudgetConfig(limit=limit)

    def _load_budget_limit(self) -> Decimal:
        raw = self._read(BUDGET_LIMIT_KEY)
        if raw is None or not raw.strip():
            return self._default_budget_limit
        try:
            limit = Decimal(raw.strip())
        except InvalidOperation:
            self._audit_logger.log_slice_load_failed(BUDGET_LIMIT_KEY, f"not a number: {raw[:20]!r}")
            return self._default_budget_limit
        if not limit.is_finite() or limit < 0:
            self._audit_logger.log_slice_load_failed(BUDGET_LIMIT_KEY, f"out of range: {raw[:20]!r}")
            return self._default_budget_limit
        return limit

    def _check_schema_version(self) -> None:
        raw = self._read(SCHEMA_VERSION_KEY)
        if raw is None:
            return
        try:
            version = int(raw)
        except ValueError:
            self._audit_logger.log_slice_load_failed(SCHEMA_VERSION_KEY, f"not an integer: {raw[:20]!r}")
            return
        if version > SCHEMA_VERSION:
            self._audit_logger.log_error(
                error_type="newer_schema",
                error_message=f"Stored schema version {version} is newer than {SCHEMA_VERSION}",
            )

    # =========================================================================
    # SAVE
    # =========================================================================

    def save_items(self, items: list[ConsumptionItem]) -> SaveOutcome:
        """
        Persist the active tab.

        Active items are not degraded: they are what the user is looking at
        right now, and stripping their photos would silently change the tab.
        A failed write is logged and the tab stays in memory.
        """
        with self._locks[ITEMS_KEY]:
            outcome = self._write(ITEMS_KEY, serialize_items(items))
        self._stamp_schema_version(outcome)
        return outcome

    def save_history(self, sessions: list[ConsumptionSession]) -> SaveOutcome:
        """
        Persist the history, dropping older photos if the store is full.

        Returns:
            SAVED, DEGRADED (written without photos past the newest
            `history_photo_keep` sessions) or FAILED (in memory only)
        """
        with self._locks[HISTORY_KEY]:
            try:
                self._store.set(HISTORY_KEY, serialize_history(sessions))
                outcome = SaveOutcome.SAVED
            except StorageQuotaError:
                outcome = self._save_reduced_history(sessions)
            except StorageError as e:
                self._audit_logger.log_save_failed(HISTORY_KEY, str(e))
                outcome = SaveOutcome.FAILED
        self._stamp_schema_version(outcome)
        return outcome

    def _save_reduced_history(self, sessions: list[ConsumptionSession]) -> SaveOutcome:
        keep = self._history_photo_keep
        reduced = serialize_history(sessions, keep_photos=keep)
        try:
            self._store.set(HISTORY_KEY, reduced)
        except StorageError as e:
            self._audit_logger.log_save_failed(HISTORY_KEY, str(e))
            return SaveOutcome.FAILED

        stripped = sum(
            1 for session in sessions[keep:]
            if any(item.photo for item in session.items)
        )
        self._audit_logger.log_save_degraded(HISTORY_KEY, stripped)
        return SaveOutcome.DEGRADED

    def save_budget(self, budget: BudgetConfig) -> SaveOutcome:
        """Persist the budget limit (numeric string) and location (plain text)."""
        with self._locks[BUDGET_LIMIT_KEY]:
            limit_outcome = self._write(BUDGET_LIMIT_KEY, format(budget.limit, "f"))
        with self._locks[BUDGET_LOCATION_KEY]:
            if budget.location:
                location_outcome = self._write(BUDGET_LOCATION_KEY, budget.location)
            else:
                location_outcome = self._delete(BUDGET_LOCATION_KEY)

        if SaveOutcome.FAILED in (limit_outcome, location_outcome):
            return SaveOutcome.FAILED
        self._stamp_schema_version(SaveOutcome.SAVED)
        return SaveOutcome.SAVED

    def _write(self, key: str, value: str) -> SaveOutcome:
        try:
            self._store.set(key, value)
        except StorageError as e:
            self._audit_logger.log_save_failed(key, str(e))
            return SaveOutcome.FAILED
        return SaveOutcome.SAVED

    def _delete(self, key: str) -> SaveOutcome:
        try:
            self._store.delete(key)
        except StorageError as e:
            self._audit_logger.log_save_failed(key, str(e))
            return SaveOutcome.FAILED
        return SaveOutcome.SAVED

    def _stamp_schema_version(self, outcome: SaveOutcome) -> None:
        if outcome == SaveOutcome.FAILED:
            return
        with self._locks[SCHEMA_VERSION_KEY]:
            try:
                if self._store.get(SCHEMA_VERSION_KEY) != str(SCHEMA_VERSION):
                    self._store.set(SCHEMA_VERSION_KEY, str(SCHEMA_VERSION))
            except StorageError as e:
                self._audit_logger.log_save_failed(SCHEMA_VERSION_KEY, str(e))

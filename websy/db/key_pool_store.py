"""Durable storage for the provider key pool record.

One record per pool, overwritten on every mutation (last writer wins).
Each save bumps ``PoolState.version``; the counter is informational and no
optimistic check is made against it, so two processes sharing one record can
still lose each other's updates.
"""

import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError

from websy.core.config import Settings
from websy.core.exceptions import PersistenceError
from websy.models.key_pool import PoolState

logger = logging.getLogger(__name__)


class KeyPoolStore(Protocol):
    """Load/save contract for the persisted pool record."""

    def load(self) -> PoolState | None:
        """Return the persisted state, or None when absent or unreadable."""
        ...

    def save(self, state: PoolState) -> None:
        """Overwrite the persisted state."""
        ...


class InMemoryKeyPoolStore:
    """Process-local store; the record lives as long as the instance."""

    def __init__(self, initial: PoolState | None = None) -> None:
        self._record: dict[str, Any] | None = initial.to_record() if initial else None
        self.save_count = 0

    def load(self) -> PoolState | None:
        if self._record is None:
            return None
        return PoolState.from_record(self._record)

    def save(self, state: PoolState) -> None:
        self._record = state.to_record()
        self.save_count += 1

    @property
    def record(self) -> dict[str, Any] | None:
        return self._record


class JsonFileKeyPoolStore:
    """Store the record as a single JSON document on local disk.

    Writes go to a temporary sibling file that then replaces the target,
    so a crash mid-write leaves the previous record intact.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> PoolState | None:
        if not self._path.exists():
            return None
        try:
            record = json.loads(self._path.read_text(encoding="utf-8"))
            return PoolState.from_record(record)
        except (OSError, json.JSONDecodeError, PydanticValidationError):
            logger.warning(
                "Ignoring unreadable key pool record", extra={"path": str(self._path)}, exc_info=True
            )
            return None

    def save(self, state: PoolState) -> None:
        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state.to_record(), fh, indent=2)
            os.replace(tmp_name, self._path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            logger.exception("Failed to write key pool record", extra={"path": str(self._path)})
            raise PersistenceError(f"Failed to write key pool record: {e}") from e


class SupabaseKeyPoolStore:
    """Store the record as one row ``{id, state, updated_at}`` in a Supabase table."""

    def __init__(self, client: Any, table: str, record_id: str) -> None:
        """Initialize the store.

        Args:
            client: Supabase ``Client`` (or compatible query builder).
            table: Table holding pool records.
            record_id: Primary key of this pool's row.
        """
        self._client = client
        self._table = table
        self._record_id = record_id

    def load(self) -> PoolState | None:
        try:
            response = (
                self._client.table(self._table)
                .select("state")
                .eq("id", self._record_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.exception("Error reading key pool record", extra={"table": self._table})
            raise PersistenceError(f"Failed to read key pool record: {e}") from e

        rows = response.data or []
        if not rows:
            return None
        try:
            return PoolState.from_record(rows[0]["state"])
        except (KeyError, TypeError, PydanticValidationError):
            logger.warning(
                "Ignoring unreadable key pool record", extra={"table": self._table}, exc_info=True
            )
            return None

    def save(self, state: PoolState) -> None:
        row = {
            "id": self._record_id,
            "state": state.to_record(),
            "updated_at": datetime.now(UTC).isoformat(),
        }
        try:
            self._client.table(self._table).upsert(row).execute()
        except Exception as e:
            logger.exception("Error writing key pool record", extra={"table": self._table})
            raise PersistenceError(f"Failed to write key pool record: {e}") from e


def build_key_pool_store(settings: Settings) -> KeyPoolStore:
    """Select the store backend named by ``KEY_POOL_STORE``."""
    if settings.KEY_POOL_STORE == "memory":
        return InMemoryKeyPoolStore()
    if settings.KEY_POOL_STORE == "supabase":
        from websy.db.supabase import SupabaseClient

        return SupabaseKeyPoolStore(
            SupabaseClient.get_client(), settings.KEY_POOL_TABLE, settings.KEY_POOL_RECORD_ID
        )
    return JsonFileKeyPoolStore(settings.KEY_POOL_STATE_PATH)

"""Persisted lock records.

A record is created when a run starts and updated with the provisioning
status text, MAC address and IMEI as they become known.
"""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

UPDATABLE_FIELDS = frozenset({"lock_mac", "imei", "provisioning"})


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class LockRecord:
    id: int
    lock_mac: str | None = None
    imei: str | None = None
    provisioning: str | None = None
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LockRecord:
        return cls(**{k: data[k] for k in cls.__dataclass_fields__ if k in data})


class LockStore(Protocol):
    def create(self) -> LockRecord: ...

    def update(self, record_id: int, **fields: Any) -> LockRecord: ...

    def get(self, record_id: int) -> LockRecord | None: ...

    def list(self) -> list[LockRecord]: ...


class MemoryLockStore:
    """Lock records kept in process memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[int, LockRecord] = {}
        self._next_id = 1

    def create(self) -> LockRecord:
        with self._lock:
            record = LockRecord(id=self._next_id)
            self._records[record.id] = record
            self._next_id += 1
            self._saved()
            return record

    def update(self, record_id: int, **fields: Any) -> LockRecord:
        """Set fields on a record.

        Raises:
            KeyError: If the record does not exist.
            ValueError: If a field is not updatable.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        with self._lock:
            record = self._records[record_id]
            for name, value in fields.items():
                setattr(record, name, value)
            record.updated_at = _now()
            self._saved()
            return record

    def get(self, record_id: int) -> LockRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def list(self) -> list[LockRecord]:
        with self._lock:
            return [self._records[k] for k in sorted(self._records)]

    def _saved(self) -> None:
        """Hook called with the store lock held after every change."""


class JsonLockStore(MemoryLockStore):
    """Lock records persisted to a single JSON file, rewritten on each change."""

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self._path = Path(path)
        if self._path.exists():
            data = json.loads(self._path.read_text(encoding="utf-8"))
            for item in data.get("locks", []):
                record = LockRecord.from_dict(item)
                self._records[record.id] = record
            self._next_id = max(self._records, default=0) + 1

    @property
    def path(self) -> Path:
        return self._path

    def _saved(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = {"locks": [self._records[k].to_dict() for k in sorted(self._records)]}
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(self._path)

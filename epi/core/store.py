"""
Replicated store adapter.

A thin CRUD facade over a key-value backend. Every collection (children,
records, users, vaccinators) is persisted as one ordered JSON array keyed
by collection name; entities inside it are keyed by ``id``.

Mutating calls stamp ``updated_at`` from the injected clock. That stamp is
the only input to conflict resolution during sync, so ``replace_all`` (used
by sync and by the record commit protocol) never restamps.
"""

import json
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from util.logging import logger

from .config import KNOWN_COLLECTIONS
from .db import get_db, init_db
from .errors import StoreUnavailable
from .schema import ENTITY_TYPES, Child, User, VaccinationRecord, Vaccinator, format_timestamp, parse_timestamp, utc_now

LAST_SYNC_KEY = "lastSync"

E = TypeVar("E")


class KeyValueBackend(ABC):
    """get/put/delete of string values by name."""

    @abstractmethod
    def get(self, name: str) -> Optional[str]:
        pass

    @abstractmethod
    def put(self, name: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, name: str) -> None:
        pass

    def put_many(self, items: Dict[str, str]) -> None:
        """Write several values, in order. Backends that can do so write them atomically."""
        for name, value in items.items():
            self.put(name, value)


class MemoryBackend(KeyValueBackend):
    """In-process backend, used for tests and as a stand-in remote."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, name: str) -> Optional[str]:
        with self._lock:
            return self._data.get(name)

    def put(self, name: str, value: str) -> None:
        with self._lock:
            self._data[name] = value

    def delete(self, name: str) -> None:
        with self._lock:
            self._data.pop(name, None)

    def put_many(self, items: Dict[str, str]) -> None:
        with self._lock:
            self._data.update(items)


class SQLiteBackend(KeyValueBackend):
    """One SQLite file per replica, one row per collection."""

    def __init__(self, path: str):
        self.path = path
        try:
            init_db(path)
        except sqlite3.Error as e:
            raise StoreUnavailable("init", path, e)

    def get(self, name: str) -> Optional[str]:
        try:
            with get_db(self.path) as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT value FROM kv WHERE name = ?", (name,))
                row = cursor.fetchone()
                return row[0] if row else None
        except sqlite3.Error as e:
            raise StoreUnavailable("read", name, e)

    def put(self, name: str, value: str) -> None:
        self.put_many({name: value})

    def delete(self, name: str) -> None:
        try:
            with get_db(self.path) as conn:
                conn.execute("DELETE FROM kv WHERE name = ?", (name,))
                conn.commit()
        except sqlite3.Error as e:
            raise StoreUnavailable("delete", name, e)

    def put_many(self, items: Dict[str, str]) -> None:
        try:
            with get_db(self.path) as conn:
                for name, value in items.items():
                    conn.execute(
                        "INSERT INTO kv (name, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP) "
                        "ON CONFLICT(name) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP",
                        (name, value)
                    )
                conn.commit()
        except sqlite3.Error as e:
            raise StoreUnavailable("write", ",".join(items), e)


class Collection(Generic[E]):
    """Typed view of one named collection."""

    def __init__(self, store: 'ReplicatedStore', name: str, entity_type):
        self.store = store
        self.name = name
        self.entity_type = entity_type

    def _decode(self, raw: Optional[str]) -> List[E]:
        if not raw:
            return []
        try:
            items = json.loads(raw)
            return [self.entity_type.from_dict(item) for item in items]
        except (ValueError, KeyError, TypeError) as e:
            raise StoreUnavailable("decode", self.name, e)

    def encode(self, entities: Iterable[E]) -> str:
        return json.dumps([entity.to_dict() for entity in entities])

    def list(self) -> List[E]:
        return self._decode(self.store.backend.get(self.name))

    def get_by_id(self, entity_id: str) -> Optional[E]:
        for entity in self.list():
            if entity.id == entity_id:
                return entity
        return None

    def filter(self, predicate: Callable[[E], bool]) -> List[E]:
        return [entity for entity in self.list() if predicate(entity)]

    def upsert(self, entity: E) -> E:
        """Insert if absent, else replace by id in place. Returns the stamped entity."""
        stamped = replace(entity, updated_at=self.store.now())
        with self.store.lock:
            entities = self.list()
            for index, existing in enumerate(entities):
                if existing.id == stamped.id:
                    entities[index] = stamped
                    operation = "update"
                    break
            else:
                entities.append(stamped)
                operation = "insert"
            self.store.backend.put(self.name, self.encode(entities))
        logger.log_store_operation(self.store.label, self.name, operation, stamped.id)
        return stamped

    def delete_by_id(self, entity_id: str) -> bool:
        if self.name == "children":
            return self.store.delete_child(entity_id)
        with self.store.lock:
            entities = self.list()
            remaining = [entity for entity in entities if entity.id != entity_id]
            if len(remaining) == len(entities):
                return False
            self.store.backend.put(self.name, self.encode(remaining))
        logger.log_store_operation(self.store.label, self.name, "delete", entity_id)
        return True

    def replace_all(self, entities: Iterable[E]) -> None:
        """Overwrite the whole collection without touching timestamps."""
        with self.store.lock:
            self.store.backend.put(self.name, self.encode(entities))


class ReplicatedStore:
    """Per-replica facade bundling the four collections and the sync marker."""

    def __init__(self, backend: KeyValueBackend, clock: Callable[[], datetime] = utc_now,
                 label: str = "local"):
        self.backend = backend
        self.clock = clock
        self.label = label
        self.lock = threading.RLock()
        self.children: Collection[Child] = Collection(self, "children", Child)
        self.records: Collection[VaccinationRecord] = Collection(self, "records", VaccinationRecord)
        self.users: Collection[User] = Collection(self, "users", User)
        self.vaccinators: Collection[Vaccinator] = Collection(self, "vaccinators", Vaccinator)

    @classmethod
    def from_path(cls, path: str, clock: Callable[[], datetime] = utc_now,
                  label: str = "local") -> 'ReplicatedStore':
        return cls(SQLiteBackend(path), clock=clock, label=label)

    def now(self) -> datetime:
        return self.clock()

    def collection(self, name: str) -> Collection:
        if name not in ENTITY_TYPES:
            raise KeyError(f"Unknown collection: {name}")
        return getattr(self, name)

    def initialize(self):
        """Create empty collections that do not exist yet."""
        with self.lock:
            for name in KNOWN_COLLECTIONS:
                if self.backend.get(name) is None:
                    self.backend.put(name, "[]")

    def records_for_child(self, child_id: str) -> List[VaccinationRecord]:
        return self.records.filter(lambda r: r.child_id == child_id)

    def delete_child(self, child_id: str) -> bool:
        """
        Delete a child and its vaccination records.

        Records are removed before the child so an interrupted cascade never
        leaves records without an owner. Orphans from an earlier interrupted
        cascade are removed even when the child itself is already gone.
        """
        with self.lock:
            children = self.children.list()
            remaining_children = [c for c in children if c.id != child_id]
            records = self.records.list()
            remaining_records = [r for r in records if r.child_id != child_id]
            removed_records = len(records) - len(remaining_records)

            updates = {}
            if removed_records:
                updates["records"] = self.records.encode(remaining_records)
            if len(remaining_children) != len(children):
                updates["children"] = self.children.encode(remaining_children)
            if updates:
                self.backend.put_many(updates)

        found = len(remaining_children) != len(children)
        logger.log_store_operation(self.label, "children", "delete", child_id,
                                   {"found": found, "records_removed": removed_records})
        return found

    def vaccinators_for_facility(self, facility: str) -> List[str]:
        return [v.name for v in self.vaccinators.list() if v.facility == facility]

    def add_vaccinator(self, facility: str, name: str) -> Vaccinator:
        """Add a name to a facility's directory if it is not already there."""
        vaccinator_id = str(uuid.uuid5(uuid.NAMESPACE_URL, f"epi:vaccinator:{facility}:{name}"))
        existing = self.vaccinators.get_by_id(vaccinator_id)
        if existing is not None:
            return existing
        return self.vaccinators.upsert(Vaccinator(id=vaccinator_id, facility=facility, name=name))

    def get_last_sync(self) -> Optional[datetime]:
        return parse_timestamp(self.backend.get(LAST_SYNC_KEY))

    def set_last_sync(self, when: datetime) -> None:
        self.backend.put(LAST_SYNC_KEY, format_timestamp(when))

"""
Offline-first synchronization between a local and a remote replica.

Each collection is reconciled with a merge-by-id, last-writer-wins
reduction: the remote collection is the base, local entities missing from
it are appended, and an entity present on both sides is replaced only when
the local ``updated_at`` is strictly newer. Equal or missing timestamps keep
the base entity. The merged collection is then written to both replicas.

At most one pass runs per engine at a time. A second caller gets
SyncInProgressError instead of waiting, since its merged snapshot would be
computed from data the running pass is about to overwrite.
"""

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from util.logging import logger

from .config import get_sync_collections
from .errors import OfflineError, StoreUnavailable, SyncInProgressError
from .schema import ENTITY_TYPES, format_timestamp
from .store import ReplicatedStore

E = TypeVar("E")


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"


@dataclass
class MergeOutcome(Generic[E]):
    merged: List[E]
    added: int = 0
    replaced: int = 0
    kept: int = 0


@dataclass
class CollectionSyncStats:
    name: str
    local_count: int
    remote_count: int
    merged_count: int
    pushed: int
    pulled: int
    conflicts_won_by_local: int

    def to_dict(self) -> Dict:
        return {
            "local_count": self.local_count,
            "remote_count": self.remote_count,
            "merged_count": self.merged_count,
            "pushed": self.pushed,
            "pulled": self.pulled,
            "conflicts_won_by_local": self.conflicts_won_by_local,
        }


@dataclass
class SyncResult:
    started_at: datetime
    finished_at: datetime
    collections: Dict[str, CollectionSyncStats] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "started_at": format_timestamp(self.started_at),
            "finished_at": format_timestamp(self.finished_at),
            "collections": {name: stats.to_dict() for name, stats in self.collections.items()},
        }


def _is_newer(candidate, current) -> bool:
    if candidate.updated_at is None or current.updated_at is None:
        return False
    return candidate.updated_at > current.updated_at


def merge_by_id(base: Sequence[E], incoming: Sequence[E], collection: str = "") -> MergeOutcome[E]:
    """Last-writer-wins merge of ``incoming`` onto ``base``, keyed by entity id."""
    merged = list(base)
    position: Dict[str, int] = {}
    for index, entity in enumerate(merged):
        position.setdefault(entity.id, index)

    outcome = MergeOutcome(merged=merged)
    for entity in incoming:
        index = position.get(entity.id)
        if index is None:
            position[entity.id] = len(merged)
            merged.append(entity)
            outcome.added += 1
            logger.log_merge_decision(collection, entity.id, "added")
        elif _is_newer(entity, merged[index]):
            merged[index] = entity
            outcome.replaced += 1
            logger.log_merge_decision(collection, entity.id, "replaced")
        else:
            outcome.kept += 1
            logger.log_merge_decision(collection, entity.id, "kept")
    return outcome


def _count_changed(before: Sequence, after: Sequence) -> int:
    """Entities in ``after`` that are new or differ from ``before``."""
    previous = {entity.id: entity for entity in before}
    return sum(1 for entity in after if previous.get(entity.id) != entity)


class SyncEngine:
    """Reconciles the configured collections of two replicas."""

    def __init__(self, local: ReplicatedStore, remote: ReplicatedStore,
                 is_online: Callable[[], bool],
                 clock: Optional[Callable[[], datetime]] = None,
                 collections: Optional[Sequence[str]] = None):
        self.local = local
        self.remote = remote
        self.is_online = is_online
        self.clock = clock or local.clock
        self.collections = list(collections) if collections is not None else get_sync_collections()
        for name in self.collections:
            if name not in ENTITY_TYPES:
                raise ValueError(f"Unknown collection: {name}")

        self._lock = threading.Lock()
        self._state = SyncState.IDLE
        self._listeners: List[Callable[[SyncResult], None]] = []
        self.last_result: Optional[SyncResult] = None
        self.last_error: Optional[Exception] = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def last_sync(self) -> Optional[datetime]:
        return self.local.get_last_sync()

    def add_listener(self, callback: Callable[[SyncResult], None]):
        """Register a callback invoked with the result of every successful pass."""
        if not callable(callback):
            raise ValueError(f"Listener must be callable: {callback}")
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[SyncResult], None]):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def sync(self) -> SyncResult:
        """
        Run one reconciliation pass.

        Raises:
            OfflineError: connectivity signal is off
            SyncInProgressError: another pass holds this engine
            StoreUnavailable: a replica could not be read or written; collections
                written before the failure stay written
        """
        if not self.is_online():
            error = OfflineError()
            self.last_error = error
            logger.log_sync_failed("offline", str(error))
            raise error

        if not self._lock.acquire(blocking=False):
            raise SyncInProgressError()

        try:
            self._state = SyncState.SYNCING
            started_at = self.clock()
            start_time = time.monotonic()
            logger.log_sync_started(self.collections)

            stats = {}
            for name in self.collections:
                stats[name] = self._sync_collection(name)

            finished_at = self.clock()
            self.local.set_last_sync(finished_at)
            result = SyncResult(started_at=started_at, finished_at=finished_at, collections=stats)
            self.last_result = result
            self.last_error = None

            logger.log_sync_completed((time.monotonic() - start_time) * 1000,
                                      {name: s.to_dict() for name, s in stats.items()})
        except StoreUnavailable as e:
            self.last_error = e
            logger.log_sync_failed("store_unavailable", str(e), {"collection": e.name})
            raise
        finally:
            self._state = SyncState.IDLE
            self._lock.release()

        self._notify(result)
        return result

    def _sync_collection(self, name: str) -> CollectionSyncStats:
        local_collection = self.local.collection(name)
        remote_collection = self.remote.collection(name)

        # Local writers block until both replicas hold the merged collection
        with self.local.lock, self.remote.lock:
            local_items = local_collection.list()
            remote_items = remote_collection.list()

            outcome = merge_by_id(remote_items, local_items, name)

            remote_collection.replace_all(outcome.merged)
            local_collection.replace_all(outcome.merged)

        return CollectionSyncStats(
            name=name,
            local_count=len(local_items),
            remote_count=len(remote_items),
            merged_count=len(outcome.merged),
            pushed=outcome.added + outcome.replaced,
            pulled=_count_changed(local_items, outcome.merged),
            conflicts_won_by_local=outcome.replaced,
        )

    def _notify(self, result: SyncResult):
        for callback in list(self._listeners):
            try:
                callback(result)
            except Exception as e:
                logger.warning(f"Sync listener {callback!r} failed: {e}")

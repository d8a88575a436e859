"""
Record commit protocol for one administration event.

An event adds or corrects one or more vaccines of a single schedule group
for one child. Existing records of that child for the submitted vaccines
are removed and fresh records are written in a single rewrite of the
records collection; a correction never patches the old record in place.
Corrections keep an audit trail by tagging the notes with a reason.
"""

import threading
import uuid
import weakref
from datetime import date
from typing import List, Optional, Sequence

from util.logging import logger

from .catalog import get_group
from .errors import ChildNotFound, EmptySelection, MissingVaccinator, UnknownGroup, UnknownVaccine
from .schema import VaccinationRecord, parse_date
from .store import ReplicatedStore
from .validation import DateLike, check_administration

UNKNOWN_VACCINATOR = "Unknown"

CORRECTION_REASONS = (
    "Previous data entry error",
    "Incorrect date recorded",
    "Correction of provider details",
    "Update to vaccine batch information",
    "Incorrect vaccine series selected previously",
    "Other (see notes)",
)


class ChildLocks:
    """
    One lock per child id, so commits for the same child run one at a time.

    A lock is dropped once no caller holds a reference to it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()

    def for_child(self, child_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(child_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[child_id] = lock
            return lock

    def __len__(self):
        return len(self._locks)


_default_locks = ChildLocks()


def correction_note(reason: Optional[str], notes: str) -> str:
    reason = reason or CORRECTION_REASONS[0]
    return f"[CORRECTION: {reason}] {notes}".strip()


def commit_administration(store: ReplicatedStore, child_id: str, group_id: str,
                          vaccine_ids: Sequence[str], administered_on: DateLike,
                          administered_by: str, health_center: str, notes: str = "",
                          correction_reason: Optional[str] = None,
                          unknown_vaccinator: bool = False,
                          today: Optional[date] = None,
                          locks: Optional[ChildLocks] = None) -> List[VaccinationRecord]:
    """
    Validate and commit one administration event.

    Args:
        store: Replica to write to
        child_id: Child receiving the vaccines
        group_id: Schedule group the vaccines belong to
        vaccine_ids: Vaccines given in this event
        administered_on: Administration date
        administered_by: Vaccinator name (ignored when unknown_vaccinator is set)
        health_center: Facility recording the event
        notes: Free-text notes
        correction_reason: Reason tag used when the event replaces earlier records
        unknown_vaccinator: Record the vaccinator as unknown
        today: Reference date for the future-date rule

    Returns:
        The freshly written records

    Raises:
        ChildNotFound, or a ValidationError subclass describing the rejected input
    """
    group = get_group(group_id)
    if group is None:
        raise UnknownGroup(group_id)

    child = store.children.get_by_id(child_id)
    if child is None:
        raise ChildNotFound(child_id)

    check_administration(administered_on, child.dob, group.min_eligible_weeks, today)

    selected = list(dict.fromkeys(vaccine_ids))
    if not selected:
        raise EmptySelection()

    vaccinator = UNKNOWN_VACCINATOR if unknown_vaccinator else (administered_by or "").strip()
    if not vaccinator:
        raise MissingVaccinator()

    for vaccine_id in selected:
        if group.get_vaccine(vaccine_id) is None:
            raise UnknownVaccine(vaccine_id, group_id)

    administered = parse_date(administered_on)

    with (locks or _default_locks).for_child(child_id):
        with store.lock:
            records = store.records.list()
            previous = [r for r in records if r.child_id == child_id and r.vaccine_id in selected]
            is_correction = bool(previous)
            final_notes = correction_note(correction_reason, notes) if is_correction else notes

            kept = [r for r in records if not (r.child_id == child_id and r.vaccine_id in selected)]
            stamp = store.now()
            fresh = [
                VaccinationRecord(
                    id=uuid.uuid4().hex,
                    child_id=child_id,
                    vaccine_id=vaccine_id,
                    dose_number=group.get_vaccine(vaccine_id).dose_number,
                    date_administered=administered,
                    administered_by=vaccinator,
                    health_center=health_center,
                    notes=final_notes,
                    status="completed",
                    not_administered=False,
                    updated_at=stamp,
                )
                for vaccine_id in selected
            ]
            store.records.replace_all(kept + fresh)

    if not unknown_vaccinator:
        store.add_vaccinator(health_center, vaccinator)

    logger.log_record_commit(child_id, selected, is_correction, len(previous),
                             {"group_id": group_id, "notes": final_notes})
    return fresh

"""
Progress and defaulter engine.

Both computations read a child and that child's records and return a fresh
result on every call. Nothing is cached: records can change between calls.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from .catalog import all_groups, total_vaccine_count
from .schema import Child, VaccinationRecord, utc_now


@dataclass(frozen=True)
class DefaulterEntry:
    """One overdue, not-yet-administered vaccine."""
    vaccine_id: str
    vaccine_name: str
    group_id: str
    group_name: str
    due_date: datetime
    days_overdue: int

    def to_dict(self) -> Dict:
        return {
            "vaccine_id": self.vaccine_id,
            "vaccine_name": self.vaccine_name,
            "group_id": self.group_id,
            "group_name": self.group_name,
            "due_date": self.due_date.date().isoformat(),
            "days_overdue": self.days_overdue,
        }


@dataclass
class DefaulterSummary:
    child: Child
    missed: List[DefaulterEntry] = field(default_factory=list)

    @property
    def most_days_overdue(self) -> int:
        return self.missed[0].days_overdue if self.missed else 0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_progress(child: Optional[Child], records: Sequence[VaccinationRecord]) -> int:
    """
    Percentage of the schedule completed for a child.

    Counts raw completed records (status 'completed' and not flagged as not
    administered) against the catalog size. Duplicate completed records for
    the same vaccine are counted as they are stored.
    """
    if child is None:
        return 0
    completed = sum(1 for record in records if record.counts_as_completed)
    return round_half_up(completed / total_vaccine_count() * 100)


def _birth_instant(child: Child) -> datetime:
    return datetime(child.dob.year, child.dob.month, child.dob.day, tzinfo=timezone.utc)


def iter_overdue(child: Optional[Child], records: Iterable[VaccinationRecord],
                 now: Optional[datetime] = None) -> Iterator[DefaulterEntry]:
    """Yield overdue entries in catalog order."""
    if child is None or child.dob is None:
        return
    if now is None:
        now = utc_now()
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    birth = _birth_instant(child)
    completed_ids = {record.vaccine_id for record in records if record.status == "completed"}

    for group in all_groups():
        due = birth + timedelta(weeks=group.min_eligible_weeks)
        if not due < now:
            continue
        days_overdue = math.floor((now - due) / timedelta(days=1))
        for vaccine in group.vaccines:
            if vaccine.id in completed_ids:
                continue
            yield DefaulterEntry(
                vaccine_id=vaccine.id,
                vaccine_name=vaccine.name,
                group_id=group.id,
                group_name=group.name,
                due_date=due,
                days_overdue=days_overdue,
            )


def compute_overdue_list(child: Optional[Child], records: Iterable[VaccinationRecord],
                         now: Optional[datetime] = None) -> List[DefaulterEntry]:
    """Overdue vaccines for a child, most overdue first."""
    return sorted(iter_overdue(child, records, now), key=lambda e: e.days_overdue, reverse=True)


def is_defaulter(child: Optional[Child], records: Iterable[VaccinationRecord],
                 now: Optional[datetime] = None) -> bool:
    return next(iter_overdue(child, records, now), None) is not None


def group_records_by_child(records: Iterable[VaccinationRecord]) -> Dict[str, List[VaccinationRecord]]:
    by_child: Dict[str, List[VaccinationRecord]] = {}
    for record in records:
        by_child.setdefault(record.child_id, []).append(record)
    return by_child


def list_defaulters(children: Iterable[Child], records: Iterable[VaccinationRecord],
                    now: Optional[datetime] = None,
                    facility: Optional[str] = None) -> List[DefaulterSummary]:
    """
    Every child with at least one overdue vaccine, in registration order.

    Args:
        children: Registered children
        records: Vaccination records for any children
        now: Reference instant (defaults to the current UTC time)
        facility: Only include children registered at this facility
    """
    if now is None:
        now = utc_now()
    by_child = group_records_by_child(records)

    defaulters = []
    for child in children:
        if facility and child.health_center != facility:
            continue
        missed = compute_overdue_list(child, by_child.get(child.id, []), now)
        if missed:
            defaulters.append(DefaulterSummary(child=child, missed=missed))
    return defaulters

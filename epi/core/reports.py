"""
Facility-level summaries built on the progress engine.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .catalog import all_vaccines
from .progress import compute_progress, group_records_by_child, round_half_up
from .schema import Child, VaccinationRecord, utc_now


@dataclass
class VaccineCoverage:
    vaccine_id: str
    name: str
    count: int
    percent: int


def dashboard_stats(children: Iterable[Child], records: Iterable[VaccinationRecord],
                    now: Optional[datetime] = None, facility: Optional[str] = None) -> Dict[str, int]:
    """Registered children, vaccinations given this calendar month, mean completion rate."""
    if now is None:
        now = utc_now()
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    children = [c for c in children if not facility or c.health_center == facility]
    child_ids = {c.id for c in children}
    records = [r for r in records if r.child_id in child_ids]
    by_child = group_records_by_child(records)

    this_month = sum(
        1 for r in records
        if r.date_administered.year == now.year and r.date_administered.month == now.month
    )

    if children:
        total = sum(compute_progress(c, by_child.get(c.id, [])) for c in children)
        completion_rate = round_half_up(total / len(children))
    else:
        completion_rate = 0

    return {
        "total_children": len(children),
        "vaccinations_this_month": this_month,
        "completion_rate": completion_rate,
    }


def vaccine_coverage(children: Iterable[Child], records: Iterable[VaccinationRecord]) -> List[VaccineCoverage]:
    """Per-vaccine record count and percent of registered children, in catalog order."""
    child_count = len(list(children))
    counts: Dict[str, int] = {}
    for record in records:
        counts[record.vaccine_id] = counts.get(record.vaccine_id, 0) + 1

    coverage = []
    for vaccine in all_vaccines():
        count = counts.get(vaccine.id, 0)
        percent = round_half_up(count / child_count * 100) if child_count else 0
        coverage.append(VaccineCoverage(vaccine_id=vaccine.id, name=vaccine.name, count=count, percent=percent))
    return coverage

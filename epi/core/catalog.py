"""
Schedule catalog - the national EPI childhood schedule.

Groups are ordered by the age (in weeks since birth) at which they become
due. The catalog is fixed at build time; nothing mutates it at runtime.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Vaccine:
    id: str
    name: str
    dose_number: int


@dataclass(frozen=True)
class VaccineGroup:
    id: str
    name: str
    age_description: str
    min_eligible_weeks: int
    vaccines: Tuple[Vaccine, ...]

    def vaccine_ids(self) -> Tuple[str, ...]:
        return tuple(v.id for v in self.vaccines)

    def get_vaccine(self, vaccine_id: str) -> Optional[Vaccine]:
        for vaccine in self.vaccines:
            if vaccine.id == vaccine_id:
                return vaccine
        return None


VACCINE_SCHEDULE: Tuple[VaccineGroup, ...] = (
    VaccineGroup("birth", "Birth or later", "At birth", 0, (
        Vaccine("bcg", "BCG Injection", 1),
        Vaccine("hepb", "Hepatitis B", 1),
        Vaccine("opv0", "Oral Polio 0", 1),
    )),
    VaccineGroup("2months", "2 Months or later", "At 2 months", 8, (
        Vaccine("opv1", "Oral Polio 1", 1),
        Vaccine("penta1", "Pentavalent 1", 1),
        Vaccine("pneumo1", "Pneumo 1", 1),
        Vaccine("rota1", "Rota 1", 1),
    )),
    VaccineGroup("3months", "3 Months or later", "At 3 months", 12, (
        Vaccine("opv2", "Oral Polio 2", 2),
        Vaccine("penta2", "Pentavalent 2", 2),
        Vaccine("pneumo2", "Pneumo 2", 2),
        Vaccine("rota2", "Rota 2", 2),
    )),
    VaccineGroup("4months", "4 Months or later", "At 4 months", 16, (
        Vaccine("opv3", "Oral Polio 3", 3),
        Vaccine("penta3", "Pentavalent 3", 3),
        Vaccine("pneumo3", "Pneumo 3", 3),
        Vaccine("ipv", "IPV", 1),
    )),
    VaccineGroup("9months", "9 Months or later", "At 9 months", 39, (
        Vaccine("opv4", "Oral Polio 4", 4),
        Vaccine("mr1", "MR 1", 1),
        Vaccine("yf", "Yellow Fever", 1),
    )),
    VaccineGroup("1year", "1 Year", "At 12 months", 52, (
        Vaccine("mena", "Meningitis A", 1),
    )),
    # Approximates 12 months after Penta 3 (4m + 12m)
    VaccineGroup("1year_penta3", "1 Year after Penta 3", "12 months after Penta 3", 68, (
        Vaccine("dpt_b", "DPT Booster", 1),
    )),
    VaccineGroup("18months", "18 Months or later", "At 18 months", 78, (
        Vaccine("opv_b", "Polio Booster", 1),
        Vaccine("mr2", "MR 2", 2),
    )),
)


def validate_catalog(groups: Tuple[VaccineGroup, ...] = VACCINE_SCHEDULE) -> List[str]:
    """Check catalog invariants and return any issues."""
    issues = []
    seen: Dict[str, str] = {}
    previous_weeks = None

    for group in groups:
        if group.min_eligible_weeks < 0:
            issues.append(f"Group '{group.id}' has negative min_eligible_weeks")
        if previous_weeks is not None and group.min_eligible_weeks < previous_weeks:
            issues.append(f"Group '{group.id}' is out of age order")
        previous_weeks = group.min_eligible_weeks

        for vaccine in group.vaccines:
            if vaccine.id in seen:
                issues.append(f"Vaccine id '{vaccine.id}' appears in '{seen[vaccine.id]}' and '{group.id}'")
            else:
                seen[vaccine.id] = group.id

    return issues


_catalog_issues = validate_catalog()
if _catalog_issues:
    raise RuntimeError(f"Invalid vaccine schedule: {_catalog_issues}")

_GROUP_BY_VACCINE: Dict[str, VaccineGroup] = {
    vaccine.id: group for group in VACCINE_SCHEDULE for vaccine in group.vaccines
}
_GROUP_BY_ID: Dict[str, VaccineGroup] = {group.id: group for group in VACCINE_SCHEDULE}


def all_groups() -> Tuple[VaccineGroup, ...]:
    return VACCINE_SCHEDULE


def all_vaccines() -> List[Vaccine]:
    return [vaccine for group in VACCINE_SCHEDULE for vaccine in group.vaccines]


def group_containing(vaccine_id: str) -> Optional[VaccineGroup]:
    """Return the group holding a vaccine, or None when the id is not in the schedule."""
    return _GROUP_BY_VACCINE.get(vaccine_id)


def get_group(group_id: str) -> Optional[VaccineGroup]:
    return _GROUP_BY_ID.get(group_id)


def get_vaccine(vaccine_id: str) -> Optional[Vaccine]:
    group = group_containing(vaccine_id)
    if group is None:
        return None
    return group.get_vaccine(vaccine_id)


def total_vaccine_count() -> int:
    return len(_GROUP_BY_VACCINE)

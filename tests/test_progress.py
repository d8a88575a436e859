"""
Tests for completion progress and defaulter detection.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import make_record
from epi.core.catalog import all_vaccines
from epi.core.progress import (
    compute_overdue_list,
    compute_progress,
    is_defaulter,
    iter_overdue,
    list_defaulters,
)
from epi.core.schema import Child

MARCH_1 = datetime(2024, 3, 1, tzinfo=timezone.utc)


class TestComputeProgress:
    """Test completion percentage."""

    def test_no_records_is_zero(self, child):
        assert compute_progress(child, []) == 0

    def test_missing_child_is_zero(self):
        assert compute_progress(None, [make_record("r1", "bcg")]) == 0

    def test_full_schedule_is_hundred(self, child):
        records = [make_record(f"r{i}", v.id) for i, v in enumerate(all_vaccines())]
        assert compute_progress(child, records) == 100

    def test_only_completed_and_administered_count(self, child):
        records = [
            make_record("r1", "bcg"),
            make_record("r2", "hepb", status="missed"),
            make_record("r3", "opv0", status="scheduled"),
            make_record("r4", "opv1", not_administered=True),
        ]
        # 1 of 24 -> 4.17%
        assert compute_progress(child, records) == 4

    def test_rounds_half_up(self, child):
        records = [make_record(f"r{i}", v.id) for i, v in enumerate(all_vaccines()[:3])]
        # 3 of 24 -> 12.5%
        assert compute_progress(child, records) == 13

    def test_duplicate_completed_records_counted_raw(self, child):
        records = [make_record("r1", "bcg"), make_record("r2", "bcg")]
        # 2 of 24 -> 8.33%
        assert compute_progress(child, records) == 8


class TestOverdueList:
    """Test overdue detection for a single child."""

    def test_entries_for_due_groups(self, child):
        entries = compute_overdue_list(child, [], MARCH_1)

        assert [e.vaccine_id for e in entries] == [
            "bcg", "hepb", "opv0", "opv1", "penta1", "pneumo1", "rota1"
        ]
        # Jan 1 -> Mar 1 in a leap year
        assert entries[0].days_overdue == 60
        assert entries[0].group_id == "birth"
        # Feb 26 -> Mar 1
        assert entries[-1].days_overdue == 4
        assert entries[-1].group_name == "2 Months or later"

    def test_sorted_most_overdue_first(self, child):
        now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        entries = compute_overdue_list(child, [], now)
        days = [e.days_overdue for e in entries]
        assert days == sorted(days, reverse=True)
        assert days[0] == 152
        assert len(entries) == 15

    def test_completed_vaccines_excluded(self, child):
        records = [make_record("r1", "bcg"), make_record("r2", "penta1")]
        ids = [e.vaccine_id for e in compute_overdue_list(child, records, MARCH_1)]
        assert "bcg" not in ids
        assert "penta1" not in ids
        assert len(ids) == 5

    def test_missed_status_still_overdue(self, child):
        records = [make_record("r1", "bcg", status="missed")]
        ids = [e.vaccine_id for e in compute_overdue_list(child, records, MARCH_1)]
        assert "bcg" in ids

    def test_group_due_exactly_now_not_overdue(self, child):
        now = datetime(2024, 2, 26, tzinfo=timezone.utc)
        groups = {e.group_id for e in compute_overdue_list(child, [], now)}
        assert groups == {"birth"}

    @pytest.mark.parametrize("days_after_birth", [0, 1, 55, 57, 90, 300, 600])
    def test_never_includes_future_due_dates(self, child, days_after_birth):
        now = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc) + timedelta(days=days_after_birth)
        for entry in compute_overdue_list(child, [], now):
            assert entry.due_date < now
            assert entry.days_overdue >= 0

    def test_naive_now_treated_as_utc(self, child):
        entries = compute_overdue_list(child, [], datetime(2024, 3, 1))
        assert entries[0].days_overdue == 60

    def test_recomputed_on_each_call(self, child):
        records = []
        before = compute_overdue_list(child, records, MARCH_1)
        records.append(make_record("r1", "bcg"))
        after = compute_overdue_list(child, records, MARCH_1)
        assert len(after) == len(before) - 1

    def test_iter_overdue_is_lazy_and_restartable(self, child):
        first = next(iter_overdue(child, [], MARCH_1))
        again = next(iter_overdue(child, [], MARCH_1))
        assert first == again

    def test_is_defaulter(self, child):
        assert is_defaulter(child, [], MARCH_1) is True
        newborn = Child(id="c2", full_name="Lamin Ceesay", dob=date(2024, 3, 1))
        assert is_defaulter(newborn, [], MARCH_1) is False

    def test_entry_to_dict(self, child):
        entry = compute_overdue_list(child, [], MARCH_1)[0]
        data = entry.to_dict()
        assert data["due_date"] == "2024-01-01"
        assert data["days_overdue"] == 60


class TestListDefaulters:
    """Test the facility-wide defaulter list."""

    def test_only_children_with_overdue_vaccines(self, child):
        newborn = Child(id="c2", full_name="Lamin Ceesay", dob=date(2024, 3, 1),
                        health_center="Sukuta Health Centre")
        summaries = list_defaulters([child, newborn], [], MARCH_1)
        assert [s.child.id for s in summaries] == ["c1"]
        assert summaries[0].most_days_overdue == 60

    def test_records_grouped_per_child(self, child):
        sibling = Child(id="c2", full_name="Fatou Jallow", dob=date(2024, 1, 1),
                        health_center="Sukuta Health Centre")
        birth_doses = [make_record(f"r{v}", v, child_id="c2") for v in ("bcg", "hepb", "opv0")]
        summaries = list_defaulters([child, sibling], birth_doses, MARCH_1)
        by_child = {s.child.id: len(s.missed) for s in summaries}
        assert by_child == {"c1": 7, "c2": 4}

    def test_facility_filter(self, child):
        elsewhere = Child(id="c3", full_name="Musa Bah", dob=date(2024, 1, 1),
                          health_center="Brufut Health Centre")
        summaries = list_defaulters([child, elsewhere], [], MARCH_1, facility="Brufut Health Centre")
        assert [s.child.id for s in summaries] == ["c3"]

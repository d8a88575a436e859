"""
Tests for the schedule catalog.
"""

import pytest

from epi.core.catalog import (
    Vaccine,
    VaccineGroup,
    all_groups,
    all_vaccines,
    get_group,
    get_vaccine,
    group_containing,
    total_vaccine_count,
    validate_catalog,
)


class TestScheduleCatalog:
    """Test catalog lookups."""

    def test_groups_in_age_order(self):
        weeks = [group.min_eligible_weeks for group in all_groups()]
        assert weeks == [0, 8, 12, 16, 39, 52, 68, 78]

    def test_total_vaccine_count(self):
        assert total_vaccine_count() == 24
        assert len(all_vaccines()) == 24

    def test_group_containing_known_vaccine(self):
        group = group_containing("penta3")
        assert group is not None
        assert group.id == "4months"
        assert group.min_eligible_weeks == 16

    def test_group_containing_unknown_vaccine(self):
        """Unknown ids give an explicit None, never a default group."""
        assert group_containing("covid19") is None

    def test_get_vaccine(self):
        vaccine = get_vaccine("mr2")
        assert vaccine.name == "MR 2"
        assert vaccine.dose_number == 2
        assert get_vaccine("nope") is None

    def test_get_group(self):
        assert get_group("birth").vaccine_ids() == ("bcg", "hepb", "opv0")
        assert get_group("missing") is None

    def test_catalog_is_immutable(self):
        group = get_group("birth")
        with pytest.raises(AttributeError):
            group.min_eligible_weeks = 4


class TestCatalogValidation:
    """Test catalog invariant checks."""

    def test_shipped_catalog_is_valid(self):
        assert validate_catalog() == []

    def test_duplicate_vaccine_id_detected(self):
        groups = (
            VaccineGroup("a", "A", "", 0, (Vaccine("x", "X", 1),)),
            VaccineGroup("b", "B", "", 4, (Vaccine("x", "X again", 2),)),
        )
        issues = validate_catalog(groups)
        assert len(issues) == 1
        assert "'x'" in issues[0]

    def test_out_of_order_and_negative_weeks_detected(self):
        groups = (
            VaccineGroup("a", "A", "", 8, (Vaccine("x", "X", 1),)),
            VaccineGroup("b", "B", "", -1, (Vaccine("y", "Y", 1),)),
        )
        issues = validate_catalog(groups)
        assert any("negative" in issue for issue in issues)
        assert any("out of age order" in issue for issue in issues)

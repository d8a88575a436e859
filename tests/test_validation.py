"""
Tests for administration date validation.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from epi.core import validation
from epi.core.catalog import all_groups
from epi.core.errors import BeforeBirth, FutureDate, TooYoung, ValidationError
from epi.core.validation import check_administration, earliest_eligible_date, validate_administration

BIRTH = date(2024, 1, 1)
FAR_FUTURE = date(2030, 1, 1)


class TestValidationRules:
    """Test each rule and the order they are checked in."""

    @pytest.mark.parametrize("weeks", [g.min_eligible_weeks for g in all_groups()])
    def test_before_birth_regardless_of_weeks(self, weeks):
        error = validate_administration(BIRTH - timedelta(days=1), BIRTH, weeks, today=FAR_FUTURE)
        assert isinstance(error, BeforeBirth)

    @pytest.mark.parametrize("weeks", [g.min_eligible_weeks for g in all_groups() if g.min_eligible_weeks > 0])
    def test_one_day_short_is_too_young(self, weeks):
        admin = BIRTH + timedelta(weeks=weeks) - timedelta(days=1)
        error = validate_administration(admin, BIRTH, weeks, today=FAR_FUTURE)
        assert isinstance(error, TooYoung)
        assert error.required_weeks == weeks

    @pytest.mark.parametrize("weeks", [g.min_eligible_weeks for g in all_groups()])
    def test_eligibility_boundary_passes(self, weeks):
        admin = BIRTH + timedelta(weeks=weeks)
        assert validate_administration(admin, BIRTH, weeks, today=FAR_FUTURE) is None

    def test_two_month_scenario(self):
        """8 weeks from 2024-01-01 is 2024-02-26."""
        today = date(2024, 6, 1)
        error = validate_administration("2024-02-25", "2024-01-01", 8, today=today)
        assert isinstance(error, TooYoung)
        assert validate_administration("2024-02-26", "2024-01-01", 8, today=today) is None

    def test_future_date(self):
        today = date(2024, 6, 1)
        error = validate_administration(date(2024, 6, 2), BIRTH, 0, today=today)
        assert isinstance(error, FutureDate)

    def test_today_is_not_future(self):
        today = date(2024, 6, 1)
        assert validate_administration(today, BIRTH, 0, today=today) is None

    def test_too_young_checked_before_future_date(self):
        birth = date(2024, 5, 30)
        error = validate_administration(date(2024, 6, 5), birth, 8, today=date(2024, 6, 1))
        assert isinstance(error, TooYoung)

    def test_timestamp_strings_compare_by_day(self):
        error = validate_administration("2024-02-26T23:59:00", "2024-01-01T08:00:00", 8, today=FAR_FUTURE)
        assert error is None

    def test_default_today_is_utc_date(self, monkeypatch):
        # 23:30 UTC on May 31 is already June 1 in UTC+1
        monkeypatch.setattr(validation, "utc_now", lambda: datetime(2024, 5, 31, 23, 30, tzinfo=timezone.utc))

        assert isinstance(validate_administration(date(2024, 6, 1), BIRTH, 0), FutureDate)
        assert validate_administration(date(2024, 5, 31), BIRTH, 0) is None

    def test_earliest_eligible_date(self):
        assert earliest_eligible_date("2024-01-01", 8) == date(2024, 2, 26)


class TestValidationErrors:
    """Test the raising form and error payloads."""

    def test_check_administration_raises(self):
        with pytest.raises(TooYoung) as exc_info:
            check_administration("2024-02-25", "2024-01-01", 8, today=FAR_FUTURE)
        assert isinstance(exc_info.value, ValidationError)

    def test_check_administration_passes_silently(self):
        check_administration("2024-02-26", "2024-01-01", 8, today=FAR_FUTURE)

    def test_too_young_payload_carries_weeks(self):
        payload = TooYoung(12).to_dict()
        assert payload["code"] == "too_young"
        assert payload["required_weeks"] == 12
        assert "12 weeks" in payload["message"]

    def test_codes_are_distinct(self):
        codes = {BeforeBirth().code, TooYoung(1).code, FutureDate().code}
        assert codes == {"before_birth", "too_young", "future_date"}

"""
Administration date validation.

Checked before any vaccination record is committed, and again on every
correction since a record can be re-dated several times. Rules run in order
and the first failure wins:

1. administered before birth           -> BeforeBirth
2. administered before birth + N weeks -> TooYoung (carries N)
3. administered after today            -> FutureDate

Comparison is by calendar day, so the eligibility boundary itself passes.
"""

from datetime import date, timedelta
from typing import Optional, Union

from .errors import BeforeBirth, FutureDate, TooYoung, ValidationError
from .schema import parse_date, utc_now

DateLike = Union[date, str]


def earliest_eligible_date(birth_date: DateLike, min_eligible_weeks: int) -> date:
    return parse_date(birth_date) + timedelta(weeks=min_eligible_weeks)


def validate_administration(administered_on: DateLike, birth_date: DateLike,
                            min_eligible_weeks: int,
                            today: Optional[date] = None) -> Optional[ValidationError]:
    """Return the first rule violation, or None when the date is acceptable."""
    admin = parse_date(administered_on)
    birth = parse_date(birth_date)
    if today is None:
        today = utc_now().date()

    if admin < birth:
        return BeforeBirth(admin, birth)
    if admin < birth + timedelta(weeks=min_eligible_weeks):
        return TooYoung(min_eligible_weeks)
    if admin > today:
        return FutureDate(admin)
    return None


def check_administration(administered_on: DateLike, birth_date: DateLike,
                         min_eligible_weeks: int, today: Optional[date] = None) -> None:
    """Raising form of validate_administration."""
    error = validate_administration(administered_on, birth_date, min_eligible_weeks, today)
    if error is not None:
        raise error

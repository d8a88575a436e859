"""
Error kinds raised by the schedule and synchronization engines.

Validation errors are recoverable and meant to be rendered back to the
worker entering data. Sync and store errors are fatal to the attempt in
progress and are recovered by retrying.
"""

from datetime import date
from typing import Optional


class ValidationError(Exception):
    """Base class for administration and commit validation failures."""
    code = "validation_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"code": self.code, "message": self.message}


class BeforeBirth(ValidationError):
    code = "before_birth"

    def __init__(self, administered_on: Optional[date] = None, birth_date: Optional[date] = None):
        super().__init__("Cannot record vaccine before birth date.")
        self.administered_on = administered_on
        self.birth_date = birth_date


class TooYoung(ValidationError):
    code = "too_young"

    def __init__(self, required_weeks: int):
        super().__init__(f"Child must be at least {required_weeks} weeks old for this vaccine.")
        self.required_weeks = required_weeks

    def to_dict(self):
        data = super().to_dict()
        data["required_weeks"] = self.required_weeks
        return data


class FutureDate(ValidationError):
    code = "future_date"

    def __init__(self, administered_on: Optional[date] = None):
        super().__init__("Cannot record future dates.")
        self.administered_on = administered_on


class EmptySelection(ValidationError):
    code = "empty_selection"

    def __init__(self):
        super().__init__("Select at least one vaccine.")


class MissingVaccinator(ValidationError):
    code = "missing_vaccinator"

    def __init__(self):
        super().__init__("Please provide the name of the vaccinator.")


class UnknownVaccine(ValidationError):
    code = "unknown_vaccine"

    def __init__(self, vaccine_id: str, group_id: Optional[str] = None):
        if group_id:
            message = f"Vaccine '{vaccine_id}' is not part of group '{group_id}'."
        else:
            message = f"Vaccine '{vaccine_id}' is not in the schedule."
        super().__init__(message)
        self.vaccine_id = vaccine_id
        self.group_id = group_id


class UnknownGroup(ValidationError):
    code = "unknown_group"

    def __init__(self, group_id: str):
        super().__init__(f"Vaccine group '{group_id}' is not in the schedule.")
        self.group_id = group_id


class ChildNotFound(LookupError):
    """Raised when an operation names a child that the store does not hold."""

    def __init__(self, child_id: str):
        super().__init__(f"Child '{child_id}' not found")
        self.child_id = child_id


class OfflineError(Exception):
    """Sync attempted without connectivity. Not retried automatically."""
    code = "offline"

    def __init__(self, message: str = "Cannot sync while offline"):
        super().__init__(message)


class SyncInProgressError(Exception):
    """A reconciliation pass already holds the local replica."""
    code = "sync_in_progress"

    def __init__(self, message: str = "A sync is already running for this replica"):
        super().__init__(message)


class StoreUnavailable(Exception):
    """The backing key-value store could not be read or written."""
    code = "store_unavailable"

    def __init__(self, operation: str, name: str, cause: Optional[BaseException] = None):
        message = f"Store unavailable during {operation} of '{name}'"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
        self.operation = operation
        self.name = name
        self.cause = cause

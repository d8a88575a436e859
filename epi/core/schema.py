"""
Replicated entities and their persisted layout.

Collections are stored as JSON arrays of camelCase objects, the same shape
the field app writes to the device. Keys a replica does not know about are
kept in ``extra`` so a record survives a round trip through an older peer.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

RECORD_STATUSES = ("completed", "missed", "scheduled")


def utc_now() -> datetime:
    """Default wall-clock source: timezone-aware UTC."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, treating naive values and 'Z' as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_date(value: Any) -> Optional[date]:
    """Parse a calendar date; full timestamps are truncated to their date part."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _split_extra(data: Dict[str, Any], known) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if k not in known}


@dataclass
class Child:
    id: str
    full_name: str
    dob: date
    health_center: str = ""
    mother_name: str = ""
    address: str = ""
    parent_contact: str = ""
    mc_number: str = ""
    gender: str = ""
    status: str = "active"
    registered_by: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = ("id", "fullName", "motherName", "address", "parentContact", "mcNumber", "dob",
             "gender", "location", "status", "registeredBy", "createdAt", "updatedAt")

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "id": self.id,
            "fullName": self.full_name,
            "motherName": self.mother_name,
            "address": self.address,
            "parentContact": self.parent_contact,
            "mcNumber": self.mc_number,
            "dob": self.dob.isoformat(),
            "gender": self.gender,
            "location": {
                "lat": self.latitude,
                "lng": self.longitude,
                "healthCenter": self.health_center,
            },
            "status": self.status,
            "registeredBy": self.registered_by,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Child':
        location = data.get("location") or {}
        return cls(
            id=str(data["id"]),
            full_name=data.get("fullName", ""),
            dob=parse_date(data["dob"]),
            health_center=location.get("healthCenter", data.get("healthCenter", "")),
            mother_name=data.get("motherName", ""),
            address=data.get("address", ""),
            parent_contact=data.get("parentContact", ""),
            mc_number=data.get("mcNumber", ""),
            gender=data.get("gender", ""),
            status=data.get("status", "active"),
            registered_by=data.get("registeredBy", ""),
            latitude=location.get("lat"),
            longitude=location.get("lng"),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
            extra=_split_extra(data, cls._KEYS + ("healthCenter",)),
        )


@dataclass
class VaccinationRecord:
    id: str
    child_id: str
    vaccine_id: str
    dose_number: int
    date_administered: date
    administered_by: str = ""
    health_center: str = ""
    notes: str = ""
    status: str = "completed"
    not_administered: bool = False
    reason_not_administered: Optional[str] = None
    batch_number: Optional[str] = None
    next_due_date: Optional[date] = None
    updated_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = ("id", "childId", "vaccineId", "doseNumber", "dateAdministered", "nextDueDate",
             "administeredBy", "healthCenter", "batchNumber", "notes", "status",
             "notAdministered", "reasonNotAdministered", "updatedAt")

    def __post_init__(self):
        if self.status not in RECORD_STATUSES:
            raise ValueError(f"Invalid record status: {self.status}")

    @property
    def counts_as_completed(self) -> bool:
        return self.status == "completed" and not self.not_administered

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "id": self.id,
            "childId": self.child_id,
            "vaccineId": self.vaccine_id,
            "doseNumber": self.dose_number,
            "dateAdministered": self.date_administered.isoformat(),
            "administeredBy": self.administered_by,
            "healthCenter": self.health_center,
            "notes": self.notes,
            "status": self.status,
            "notAdministered": self.not_administered,
            "updatedAt": format_timestamp(self.updated_at),
        })
        # Optional fields are omitted rather than written as null
        if self.reason_not_administered is not None:
            data["reasonNotAdministered"] = self.reason_not_administered
        if self.batch_number is not None:
            data["batchNumber"] = self.batch_number
        if self.next_due_date is not None:
            data["nextDueDate"] = self.next_due_date.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VaccinationRecord':
        return cls(
            id=str(data["id"]),
            child_id=str(data["childId"]),
            vaccine_id=data["vaccineId"],
            dose_number=int(data.get("doseNumber", 1)),
            date_administered=parse_date(data["dateAdministered"]),
            administered_by=data.get("administeredBy", ""),
            health_center=data.get("healthCenter", ""),
            notes=data.get("notes") or "",
            status=data.get("status", "completed"),
            not_administered=bool(data.get("notAdministered", False)),
            reason_not_administered=data.get("reasonNotAdministered"),
            batch_number=data.get("batchNumber"),
            next_due_date=parse_date(data.get("nextDueDate")),
            updated_at=parse_timestamp(data.get("updatedAt")),
            extra=_split_extra(data, cls._KEYS),
        )


@dataclass
class User:
    id: str
    email: str
    full_name: str = ""
    health_center: str = ""
    user_role: str = "New User"
    approval_status: str = "pending"
    phone_number: str = ""
    position: str = ""
    profile_completed: bool = False
    account_deletion_requested: bool = False
    updated_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = ("id", "email", "fullName", "healthCenter", "userRole", "approvalStatus",
             "phoneNumber", "position", "profileCompleted", "accountDeletionRequested", "updatedAt")

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "id": self.id,
            "email": self.email,
            "fullName": self.full_name,
            "healthCenter": self.health_center,
            "userRole": self.user_role,
            "approvalStatus": self.approval_status,
            "phoneNumber": self.phone_number,
            "position": self.position,
            "profileCompleted": self.profile_completed,
            "accountDeletionRequested": self.account_deletion_requested,
            "updatedAt": format_timestamp(self.updated_at),
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        return cls(
            id=str(data["id"]),
            email=data.get("email", ""),
            full_name=data.get("fullName", ""),
            health_center=data.get("healthCenter", ""),
            user_role=data.get("userRole", "New User"),
            approval_status=data.get("approvalStatus", "pending"),
            phone_number=data.get("phoneNumber", ""),
            position=data.get("position", ""),
            profile_completed=bool(data.get("profileCompleted", False)),
            account_deletion_requested=bool(data.get("accountDeletionRequested", False)),
            updated_at=parse_timestamp(data.get("updatedAt")),
            extra=_split_extra(data, cls._KEYS),
        )


@dataclass
class Vaccinator:
    """One name in a facility's vaccinator directory."""
    id: str
    facility: str
    name: str
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "facility": self.facility,
            "name": self.name,
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Vaccinator':
        return cls(
            id=str(data["id"]),
            facility=data.get("facility", ""),
            name=data.get("name", ""),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


ENTITY_TYPES = {
    "children": Child,
    "records": VaccinationRecord,
    "users": User,
    "vaccinators": Vaccinator,
}

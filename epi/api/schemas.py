"""
Request and response models for the immunization API.
"""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ErrorDetail(BaseModel):
    code: str
    message: str
    required_weeks: Optional[int] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    child_count: int
    record_count: int


class ChildRequest(BaseModel):
    id: Optional[str] = None
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

    @field_validator('full_name')
    @classmethod
    def full_name_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('full_name cannot be empty')
        return v.strip()

    @field_validator('dob')
    @classmethod
    def dob_must_not_be_in_future(cls, v):
        if v > date.today():
            raise ValueError('dob cannot be in the future')
        return v

    @field_validator('status')
    @classmethod
    def status_must_be_valid(cls, v):
        valid_statuses = ['active', 'completed', 'inactive']
        if v not in valid_statuses:
            raise ValueError(f'status must be one of: {valid_statuses}')
        return v


class ChildResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: str
    dob: date
    health_center: str
    mother_name: str
    address: str
    parent_contact: str
    mc_number: str
    gender: str
    status: str
    registered_by: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ChildListResponse(BaseModel):
    items: List[ChildResponse]


class RecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    child_id: str
    vaccine_id: str
    dose_number: int
    date_administered: date
    administered_by: str
    health_center: str
    notes: str
    status: str
    not_administered: bool
    updated_at: Optional[datetime] = None


class RecordListResponse(BaseModel):
    items: List[RecordResponse]


class VaccinationRequest(BaseModel):
    group_id: str
    vaccine_ids: List[str]
    administered_on: date
    administered_by: str = ""
    health_center: str
    notes: str = ""
    correction_reason: Optional[str] = None
    unknown_vaccinator: bool = False


class ValidateRequest(BaseModel):
    administered_on: date
    birth_date: date
    min_eligible_weeks: int = Field(ge=0)


class ValidateResponse(BaseModel):
    valid: bool
    error: Optional[ErrorDetail] = None


class ProgressResponse(BaseModel):
    child_id: str
    progress: int
    completed_records: int
    total_vaccines: int


class DefaulterEntryResponse(BaseModel):
    vaccine_id: str
    vaccine_name: str
    group_id: str
    group_name: str
    due_date: date
    days_overdue: int


class OverdueResponse(BaseModel):
    child_id: str
    is_defaulter: bool
    entries: List[DefaulterEntryResponse]


class DefaulterResponse(BaseModel):
    child_id: str
    full_name: str
    health_center: str
    missed: List[DefaulterEntryResponse]


class DefaulterListResponse(BaseModel):
    count: int
    items: List[DefaulterResponse]


class DashboardResponse(BaseModel):
    total_children: int
    vaccinations_this_month: int
    completion_rate: int


class CoverageItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    vaccine_id: str
    name: str
    count: int
    percent: int


class CoverageResponse(BaseModel):
    items: List[CoverageItem]


class CatalogVaccine(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    dose_number: int


class CatalogGroup(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    age_description: str
    min_eligible_weeks: int
    vaccines: List[CatalogVaccine]


class CatalogResponse(BaseModel):
    total_vaccines: int
    groups: List[CatalogGroup]


class CollectionStatsResponse(BaseModel):
    local_count: int
    remote_count: int
    merged_count: int
    pushed: int
    pulled: int
    conflicts_won_by_local: int


class SyncResponse(BaseModel):
    started_at: datetime
    finished_at: datetime
    collections: Dict[str, CollectionStatsResponse]


class SyncStatusResponse(BaseModel):
    state: str
    online: bool
    last_sync: Optional[datetime] = None
    last_error: Optional[str] = None

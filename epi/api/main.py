"""
HTTP surface over the schedule and synchronization engines.

Replicas and the sync engine are provided through ``get_services`` so tests
can swap in in-memory stores with ``app.dependency_overrides``.
"""

import uuid
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from util.logging import audit_event

from ..core.catalog import all_groups, total_vaccine_count
from ..core.commit import commit_administration
from ..core.config import DB_PATH, REMOTE_DB_PATH, VERSION, debug_enabled, is_online
from ..core.db import health_check
from ..core.errors import ChildNotFound, OfflineError, StoreUnavailable, SyncInProgressError, ValidationError
from ..core.progress import compute_overdue_list, compute_progress, list_defaulters
from ..core.reports import dashboard_stats, vaccine_coverage
from ..core.schema import Child
from ..core.store import ReplicatedStore, SQLiteBackend
from ..core.sync import SyncEngine
from ..core.validation import validate_administration
from .schemas import (
    CatalogGroup,
    CatalogResponse,
    ChildListResponse,
    ChildRequest,
    ChildResponse,
    CoverageItem,
    CoverageResponse,
    DashboardResponse,
    DefaulterEntryResponse,
    DefaulterListResponse,
    DefaulterResponse,
    ErrorDetail,
    HealthResponse,
    OverdueResponse,
    ProgressResponse,
    RecordListResponse,
    RecordResponse,
    SyncResponse,
    SyncStatusResponse,
    ValidateRequest,
    ValidateResponse,
    VaccinationRequest,
)


class Services:
    """Local replica, remote counterpart and the engine reconciling them."""

    def __init__(self, local: ReplicatedStore, remote: ReplicatedStore, engine: SyncEngine,
                 db_path: Optional[str] = None):
        self.local = local
        self.remote = remote
        self.engine = engine
        self.db_path = db_path

    def db_healthy(self) -> bool:
        if self.db_path is None:
            return True
        return health_check(self.db_path)


_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    if _services is None:
        local = ReplicatedStore(SQLiteBackend(DB_PATH), label="local")
        remote = ReplicatedStore(SQLiteBackend(REMOTE_DB_PATH), label="remote")
        local.initialize()
        _services = Services(local, remote, SyncEngine(local, remote, is_online), db_path=DB_PATH)
    return _services


app = FastAPI(
    title="EPI Immunization API",
    version=VERSION,
    description="Immunization schedule, defaulter tracking and offline-first sync",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _store_error(e: StoreUnavailable) -> HTTPException:
    return HTTPException(status_code=503, detail={"code": e.code, "message": str(e)})


def _require_child(services: Services, child_id: str) -> Child:
    child = services.local.children.get_by_id(child_id)
    if child is None:
        raise HTTPException(status_code=404, detail="Child not found")
    return child


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint(services: Services = Depends(get_services)):
    """Check system health."""
    db_health = services.db_healthy()
    try:
        child_count = len(services.local.children.list())
        record_count = len(services.local.records.list())
    except StoreUnavailable:
        db_health = False
        child_count = record_count = 0

    return HealthResponse(
        status="healthy" if db_health else "unhealthy",
        version=VERSION,
        db_health=db_health,
        child_count=child_count,
        record_count=record_count
    )


@app.get("/catalog", response_model=CatalogResponse)
def catalog_endpoint():
    return CatalogResponse(
        total_vaccines=total_vaccine_count(),
        groups=[CatalogGroup.model_validate(group) for group in all_groups()]
    )


@app.get("/children", response_model=ChildListResponse)
def list_children_endpoint(facility: Optional[str] = None, services: Services = Depends(get_services)):
    children = services.local.children.list()
    if facility:
        children = [c for c in children if c.health_center == facility]
    return ChildListResponse(items=[ChildResponse.model_validate(c) for c in children])


@app.put("/children", response_model=ChildResponse)
def put_child_endpoint(req: ChildRequest, services: Services = Depends(get_services)):
    """Register a child, or replace an existing registration by id."""
    child_id = req.id or uuid.uuid4().hex
    existing = services.local.children.get_by_id(child_id)
    fields = req.model_dump(exclude={"id"})
    child = Child(
        id=child_id,
        created_at=existing.created_at if existing else services.local.now(),
        extra=existing.extra if existing else {},
        **fields
    )
    try:
        stored = services.local.children.upsert(child)
    except StoreUnavailable as e:
        raise _store_error(e)
    audit_event("children.put", {"child_id": child_id, "created": existing is None}, payload=fields)
    return ChildResponse.model_validate(stored)


@app.get("/children/{child_id}", response_model=ChildResponse)
def get_child_endpoint(child_id: str, services: Services = Depends(get_services)):
    return ChildResponse.model_validate(_require_child(services, child_id))


@app.delete("/children/{child_id}")
def delete_child_endpoint(child_id: str, services: Services = Depends(get_services)):
    """Delete a child together with its vaccination records."""
    try:
        found = services.local.delete_child(child_id)
    except StoreUnavailable as e:
        raise _store_error(e)
    if not found:
        raise HTTPException(status_code=404, detail="Child not found")
    audit_event("children.delete", {"child_id": child_id})
    return {"success": True, "id": child_id}


@app.get("/children/{child_id}/records", response_model=RecordListResponse)
def list_records_endpoint(child_id: str, services: Services = Depends(get_services)):
    _require_child(services, child_id)
    records = services.local.records_for_child(child_id)
    return RecordListResponse(items=[RecordResponse.model_validate(r) for r in records])


@app.get("/children/{child_id}/progress", response_model=ProgressResponse)
def progress_endpoint(child_id: str, services: Services = Depends(get_services)):
    child = _require_child(services, child_id)
    records = services.local.records_for_child(child_id)
    return ProgressResponse(
        child_id=child_id,
        progress=compute_progress(child, records),
        completed_records=sum(1 for r in records if r.counts_as_completed),
        total_vaccines=total_vaccine_count()
    )


def _entries(entries):
    return [DefaulterEntryResponse(**entry.to_dict()) for entry in entries]


@app.get("/children/{child_id}/overdue", response_model=OverdueResponse)
def overdue_endpoint(child_id: str, services: Services = Depends(get_services)):
    child = _require_child(services, child_id)
    entries = compute_overdue_list(child, services.local.records_for_child(child_id), services.local.now())
    return OverdueResponse(child_id=child_id, is_defaulter=bool(entries), entries=_entries(entries))


@app.post("/children/{child_id}/vaccinations", response_model=RecordListResponse)
def commit_vaccinations_endpoint(child_id: str, req: VaccinationRequest,
                                 services: Services = Depends(get_services)):
    """Record an administration event; replaces earlier records for the same vaccines."""
    try:
        records = commit_administration(
            services.local,
            child_id=child_id,
            group_id=req.group_id,
            vaccine_ids=req.vaccine_ids,
            administered_on=req.administered_on,
            administered_by=req.administered_by,
            health_center=req.health_center,
            notes=req.notes,
            correction_reason=req.correction_reason,
            unknown_vaccinator=req.unknown_vaccinator,
            today=services.local.now().date()
        )
    except ChildNotFound:
        raise HTTPException(status_code=404, detail="Child not found")
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())
    except StoreUnavailable as e:
        raise _store_error(e)
    return RecordListResponse(items=[RecordResponse.model_validate(r) for r in records])


@app.post("/validate", response_model=ValidateResponse)
def validate_endpoint(req: ValidateRequest, services: Services = Depends(get_services)):
    error = validate_administration(req.administered_on, req.birth_date, req.min_eligible_weeks,
                                    today=services.local.now().date())
    if error is None:
        return ValidateResponse(valid=True)
    return ValidateResponse(valid=False, error=ErrorDetail(**error.to_dict()))


@app.get("/defaulters", response_model=DefaulterListResponse)
def defaulters_endpoint(facility: Optional[str] = None, services: Services = Depends(get_services)):
    summaries = list_defaulters(
        services.local.children.list(),
        services.local.records.list(),
        now=services.local.now(),
        facility=facility
    )
    items = [
        DefaulterResponse(
            child_id=s.child.id,
            full_name=s.child.full_name,
            health_center=s.child.health_center,
            missed=_entries(s.missed)
        )
        for s in summaries
    ]
    return DefaulterListResponse(count=len(items), items=items)


@app.get("/reports/dashboard", response_model=DashboardResponse)
def dashboard_endpoint(facility: Optional[str] = None, services: Services = Depends(get_services)):
    stats = dashboard_stats(
        services.local.children.list(),
        services.local.records.list(),
        now=services.local.now(),
        facility=facility
    )
    return DashboardResponse(**stats)


@app.get("/reports/coverage", response_model=CoverageResponse)
def coverage_endpoint(services: Services = Depends(get_services)):
    coverage = vaccine_coverage(services.local.children.list(), services.local.records.list())
    return CoverageResponse(items=[CoverageItem.model_validate(c) for c in coverage])


@app.post("/sync", response_model=SyncResponse)
def sync_endpoint(services: Services = Depends(get_services)):
    """Run one reconciliation pass against the remote counterpart."""
    try:
        result = services.engine.sync()
    except OfflineError as e:
        raise HTTPException(status_code=503, detail={"code": e.code, "message": str(e)})
    except SyncInProgressError as e:
        raise HTTPException(status_code=409, detail={"code": e.code, "message": str(e)})
    except StoreUnavailable as e:
        raise _store_error(e)
    return SyncResponse(**result.to_dict())


@app.get("/sync/status", response_model=SyncStatusResponse)
def sync_status_endpoint(services: Services = Depends(get_services)):
    engine = services.engine
    return SyncStatusResponse(
        state=engine.state.value,
        online=bool(engine.is_online()),
        last_sync=engine.last_sync,
        last_error=str(engine.last_error) if engine.last_error else None
    )

"""
HTTP routes for the distribution API.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from cestas import auth as auth_service
from cestas import dashboard, reports, workflow
from cestas.auth import AuthContext
from cestas.config import get_settings
from cestas.constants import BASKETS_KEY, ReportKind, StatusFilter, UserRole
from cestas.data import DataAccess
from cestas.db import DbClient, DeliveryRecord, FamilyRecord, InstitutionRecord
from cestas.dependencies import (
    get_auth_context,
    get_data_access,
    get_db_client,
    get_storage_client,
    require_admin,
)
from cestas.eligibility import filter_families
from cestas.schemas import (
    CreateUserRequest,
    DashboardResponse,
    DeliveryRequest,
    DeliveryResponse,
    DeliveryResultResponse,
    FamilyCreateRequest,
    FamilyResponse,
    FamilyUpdateRequest,
    InstitutionCreateRequest,
    InstitutionResponse,
    InstitutionUpdateRequest,
    InventoryItemRequest,
    ListDeliveriesResponse,
    ListFamiliesResponse,
    ListInstitutionsResponse,
    LoginRequest,
    LoginResponse,
    ReleaseExpiredResponse,
    ReportArchiveResponse,
    ReportSummaryResponse,
    SeedResponse,
    StatusResponse,
    UserResponse,
)
from cestas.seed import seed_demo_data
from cestas.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter()


def _raise_http(exc: workflow.WorkflowError) -> NoReturn:
    if isinstance(exc, workflow.DeliveryWriteError):
        raise HTTPException(
            status_code=502,
            detail="Could not record the delivery. Please try again.",
        ) from exc
    if isinstance(exc, workflow.DeliveryRejected):
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if isinstance(exc, workflow.PermissionDenied):
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    if isinstance(exc, workflow.NotFound):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    raise HTTPException(status_code=400, detail=str(exc)) from exc


def _family_response(family: FamilyRecord) -> FamilyResponse:
    return FamilyResponse(**family.as_dict())


def _institution_response(institution: InstitutionRecord) -> InstitutionResponse:
    return InstitutionResponse(**institution.as_dict())


def _delivery_response(delivery: DeliveryRecord) -> DeliveryResponse:
    return DeliveryResponse(**delivery.as_dict())


def _user_response(auth: AuthContext) -> UserResponse:
    payload = auth.user.as_dict()
    payload["institution"] = (
        _institution_response(auth.institution) if auth.institution else None
    )
    return UserResponse(**payload)


def _visible_institutions(
    auth: AuthContext, data: DataAccess
) -> list[InstitutionRecord]:
    institutions = data.institutions()
    if auth.is_admin:
        return institutions
    return [i for i in institutions if i.institution_id == auth.institution_id]


def _visible_deliveries(
    auth: AuthContext, data: DataAccess, institution_id: Optional[str] = None
) -> list[DeliveryRecord]:
    if auth.is_admin:
        return data.deliveries(institution_id)
    if institution_id and institution_id != auth.institution_id:
        raise HTTPException(status_code=403, detail="Not your institution")
    if not auth.institution_id:
        return []
    return data.deliveries(auth.institution_id)


def _get_family_or_404(data: DataAccess, family_id: str) -> FamilyRecord:
    family = data.get_family(family_id)
    if not family:
        raise HTTPException(status_code=404, detail="Family not found")
    return family


# Authentication


@router.post("/auth/login", response_model=LoginResponse)
def login(payload: LoginRequest, db: DbClient = Depends(get_db_client)):
    settings = get_settings()
    result = auth_service.login(
        db, payload.email, payload.password, settings.session_ttl_hours * 3600
    )
    if not result:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    session, _ = result
    auth = auth_service.resolve_session(db, session.token)
    return LoginResponse(
        token=session.token, expires_at=session.expires_at, user=_user_response(auth)
    )


@router.post("/auth/logout", response_model=StatusResponse)
def logout(
    auth: AuthContext = Depends(get_auth_context),
    db: DbClient = Depends(get_db_client),
):
    auth_service.logout(db, auth.token)
    return StatusResponse(status="ok")


@router.get("/auth/me", response_model=UserResponse)
def me(auth: AuthContext = Depends(get_auth_context)):
    return _user_response(auth)


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(
    payload: CreateUserRequest,
    _: AuthContext = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
):
    try:
        user = auth_service.create_user(
            db,
            email=payload.email,
            name=payload.name,
            password=payload.password,
            role=UserRole(payload.role),
            institution_id=payload.institution_id,
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        status = 409 if "already exists" in str(exc) else 400
        raise HTTPException(status_code=status, detail=str(exc)) from exc
    institution = db.get_institution(user.institution_id) if user.institution_id else None
    return _user_response(AuthContext(user=user, institution=institution))


# Families


@router.get("/families", response_model=ListFamiliesResponse)
def list_families(
    status: StatusFilter = Query(StatusFilter.ALL),
    search: Optional[str] = Query(None, max_length=200),
    _: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
):
    families = filter_families(data.families(), status, search)
    return ListFamiliesResponse(families=[_family_response(f) for f in families])


@router.post("/families", response_model=FamilyResponse, status_code=201)
def create_family(
    payload: FamilyCreateRequest,
    auth: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
):
    family = data.create_family(**payload.model_dump())
    logger.info("Family %s registered by %s", family.family_id, auth.user.user_id)
    return _family_response(family)


@router.post("/families/release-expired", response_model=ReleaseExpiredResponse)
def release_expired(
    _: AuthContext = Depends(require_admin),
    data: DataAccess = Depends(get_data_access),
):
    return ReleaseExpiredResponse(released=workflow.release_expired_blocks(data))


@router.get("/families/{family_id}", response_model=FamilyResponse)
def get_family(
    family_id: str,
    _: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
):
    return _family_response(_get_family_or_404(data, family_id))


@router.put("/families/{family_id}", response_model=FamilyResponse)
def update_family(
    family_id: str,
    payload: FamilyUpdateRequest,
    _: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
):
    family = data.update_family(family_id, **payload.model_dump(exclude_none=True))
    if not family:
        raise HTTPException(status_code=404, detail="Family not found")
    return _family_response(family)


@router.post("/families/{family_id}/unblock", response_model=FamilyResponse)
def unblock_family(
    family_id: str,
    auth: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
):
    try:
        family = workflow.unblock_family(auth, data, family_id)
    except workflow.WorkflowError as exc:
        _raise_http(exc)
    return _family_response(family)


@router.get("/families/{family_id}/deliveries", response_model=ListDeliveriesResponse)
def list_family_deliveries(
    family_id: str,
    auth: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
):
    _get_family_or_404(data, family_id)
    deliveries = data.family_deliveries(family_id)
    if not auth.is_admin:
        deliveries = [d for d in deliveries if d.institution_id == auth.institution_id]
    return ListDeliveriesResponse(deliveries=[_delivery_response(d) for d in deliveries])


# Institutions


@router.get("/institutions", response_model=ListInstitutionsResponse)
def list_institutions(
    auth: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
):
    institutions = _visible_institutions(auth, data)
    return ListInstitutionsResponse(
        institutions=[_institution_response(i) for i in institutions]
    )


@router.post("/institutions", response_model=InstitutionResponse, status_code=201)
def create_institution(
    payload: InstitutionCreateRequest,
    _: AuthContext = Depends(require_admin),
    data: DataAccess = Depends(get_data_access),
):
    institution = data.create_institution(
        name=payload.name,
        address=payload.address,
        phone=payload.phone,
        inventory={BASKETS_KEY: payload.baskets},
    )
    return _institution_response(institution)


@router.get("/institutions/{institution_id}", response_model=InstitutionResponse)
def get_institution(
    institution_id: str,
    auth: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
):
    if not auth.can_manage_institution(institution_id):
        raise HTTPException(status_code=403, detail="Not your institution")
    institution = data.get_institution(institution_id)
    if not institution:
        raise HTTPException(status_code=404, detail="Institution not found")
    return _institution_response(institution)


@router.put("/institutions/{institution_id}", response_model=InstitutionResponse)
def update_institution(
    institution_id: str,
    payload: InstitutionUpdateRequest,
    _: AuthContext = Depends(require_admin),
    data: DataAccess = Depends(get_data_access),
):
    institution = data.update_institution(
        institution_id, **payload.model_dump(exclude_none=True)
    )
    if not institution:
        raise HTTPException(status_code=404, detail="Institution not found")
    return _institution_response(institution)


@router.post(
    "/institutions/{institution_id}/inventory", response_model=InstitutionResponse
)
def add_inventory_item(
    institution_id: str,
    payload: InventoryItemRequest,
    auth: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
):
    try:
        institution = workflow.add_inventory_item(
            auth, data, institution_id, payload.item, payload.quantity
        )
    except workflow.WorkflowError as exc:
        _raise_http(exc)
    return _institution_response(institution)


# Deliveries


@router.get("/deliveries", response_model=ListDeliveriesResponse)
def list_deliveries(
    institution_id: Optional[str] = Query(None),
    auth: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
):
    deliveries = _visible_deliveries(auth, data, institution_id)
    return ListDeliveriesResponse(deliveries=[_delivery_response(d) for d in deliveries])


@router.post("/deliveries", response_model=DeliveryResultResponse, status_code=201)
def create_delivery(
    payload: DeliveryRequest,
    auth: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
):
    try:
        result = workflow.record_delivery(
            auth,
            data,
            family_id=payload.family_id,
            basket_count=payload.basket_count,
            other_items=payload.other_items,
            block_period_days=payload.block_period_days,
            institution_id=payload.institution_id,
        )
    except workflow.WorkflowError as exc:
        _raise_http(exc)
    return DeliveryResultResponse(
        delivery=_delivery_response(result.delivery),
        family=_family_response(result.family),
        institution=_institution_response(result.institution),
    )


# Dashboard and reports


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    auth: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
):
    deliveries = _visible_deliveries(auth, data)
    stats = dashboard.dashboard_stats(
        auth, data.families(), data.institutions(), deliveries
    )
    return DashboardResponse(
        **stats,
        monthly_baskets=dashboard.monthly_baskets(deliveries),
        recent_deliveries=[
            _delivery_response(d) for d in dashboard.recent_deliveries(deliveries)
        ],
    )


@router.get("/reports/summary", response_model=ReportSummaryResponse)
def get_report_summary(
    auth: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
):
    summary = dashboard.report_summary(
        data.families(),
        _visible_institutions(auth, data),
        _visible_deliveries(auth, data),
        date.today(),
    )
    return ReportSummaryResponse(**summary)


def _build_report(kind: ReportKind, auth: AuthContext, data: DataAccess) -> str:
    if kind == ReportKind.FAMILIES:
        rows = reports.format_families(data.families())
    elif kind == ReportKind.INSTITUTIONS:
        rows = reports.format_institutions(_visible_institutions(auth, data))
    else:
        rows = reports.format_deliveries(_visible_deliveries(auth, data))
    return reports.to_csv(rows)


@router.get("/reports/{kind}.csv")
def export_report(
    kind: ReportKind,
    auth: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
):
    content = _build_report(kind, auth, data)
    filename = reports.report_filename(kind, date.today())
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/reports/{kind}/archive", response_model=ReportArchiveResponse)
def archive_report(
    kind: ReportKind,
    auth: AuthContext = Depends(get_auth_context),
    data: DataAccess = Depends(get_data_access),
    storage: StorageClient = Depends(get_storage_client),
):
    settings = get_settings()
    content = _build_report(kind, auth, data)
    filename = reports.report_filename(kind, date.today())
    path = (
        f"reports/{filename}"
        if auth.is_admin
        else f"reports/{auth.institution_id}/{filename}"
    )
    storage.upload_bytes(path, content.encode("utf-8"), content_type="text/csv")
    logger.info("Archived %s report to %s", kind.value, path)
    url = storage.presign_get(path, expires_in=settings.report_url_expires_in)
    return ReportArchiveResponse(path=path, url=url)


# Demo data


@router.post("/seed-demo-data", response_model=SeedResponse)
def seed(
    _: AuthContext = Depends(require_admin),
    data: DataAccess = Depends(get_data_access),
):
    families, institutions = seed_demo_data(data)
    return SeedResponse(families_created=families, institutions_created=institutions)

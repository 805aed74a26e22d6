"""Reports API surface: submission, voting, triage and listings."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from civic.api.deps import get_actor, get_report_service_dep
from civic.api.schemas import (
    ImageOut,
    ReportIn,
    ReportListOut,
    ReportOut,
    StatusChangeIn,
    VoteOut,
)
from civic.domain.reports.errors import ValidationError
from civic.domain.reports.models import UNCATEGORIZED, Category, ReportFilters, ReportStatus, ReportView, SortOrder
from civic.domain.reports.service import ReportService
from civic.infra.auth import AuthenticatedUser, get_optional_user

router = APIRouter(tags=["reports"])

_CATEGORY_FILTERS = {category.value for category in Category} | {UNCATEGORIZED}


def build_filters(
    status_filter: Optional[ReportStatus] = Query(default=None, alias="status"),
    category: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=200),
    sort: SortOrder = Query(default=SortOrder.NEWEST),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> ReportFilters:
    if category is not None and category.lower() not in _CATEGORY_FILTERS:
        raise ValidationError(f"unknown_category:{category}")
    return ReportFilters(
        status=status_filter,
        category=category.lower() if category else None,
        search=search.strip() if search and search.strip() else None,
        sort=sort,
        limit=limit,
        offset=offset,
    )


def _list_out(views: list[ReportView]) -> ReportListOut:
    items = [ReportOut.from_view(view) for view in views]
    return ReportListOut(items=items, count=len(items))


@router.post("/reports", response_model=ReportOut, status_code=status.HTTP_201_CREATED)
async def create_report(
    body: ReportIn,
    actor: Optional[AuthenticatedUser] = Depends(get_actor),
    service: ReportService = Depends(get_report_service_dep),
) -> ReportOut:
    report = await service.submit_report(
        actor,
        body.raw_text,
        latitude=body.latitude,
        longitude=body.longitude,
        image_ref=body.image_ref,
    )
    return ReportOut.from_view(ReportView(report=report, votes_count=0, user_has_voted=False))


@router.post("/reports/images", response_model=ImageOut, status_code=status.HTTP_201_CREATED)
async def upload_report_image(
    file: UploadFile = File(...),
    actor: Optional[AuthenticatedUser] = Depends(get_actor),
    service: ReportService = Depends(get_report_service_dep),
) -> ImageOut:
    payload = await file.read()
    url = await service.upload_image(actor, payload, file.content_type or "")
    return ImageOut(url=url)


@router.get("/reports", response_model=ReportListOut)
async def list_reports(
    filters: ReportFilters = Depends(build_filters),
    viewer: Optional[AuthenticatedUser] = Depends(get_optional_user),
    service: ReportService = Depends(get_report_service_dep),
) -> ReportListOut:
    return _list_out(list(await service.list_reports(filters, viewer)))


@router.get("/reports/{report_id}", response_model=ReportOut)
async def get_report(
    report_id: str,
    viewer: Optional[AuthenticatedUser] = Depends(get_optional_user),
    service: ReportService = Depends(get_report_service_dep),
) -> ReportOut:
    return ReportOut.from_view(await service.get_report(report_id, viewer))


@router.post("/reports/{report_id}/votes", response_model=VoteOut, status_code=status.HTTP_201_CREATED)
async def cast_vote(
    report_id: str,
    actor: Optional[AuthenticatedUser] = Depends(get_actor),
    service: ReportService = Depends(get_report_service_dep),
) -> VoteOut:
    return VoteOut.from_result(await service.cast_vote(actor, report_id))


@router.patch("/reports/{report_id}/status", response_model=ReportOut)
async def change_status(
    report_id: str,
    body: StatusChangeIn,
    actor: Optional[AuthenticatedUser] = Depends(get_actor),
    service: ReportService = Depends(get_report_service_dep),
) -> ReportOut:
    await service.change_status(actor, report_id, body.status)
    return ReportOut.from_view(await service.get_report(report_id, actor))


@router.get("/admin/reports", response_model=ReportListOut)
async def admin_queue(
    filters: ReportFilters = Depends(build_filters),
    actor: Optional[AuthenticatedUser] = Depends(get_actor),
    service: ReportService = Depends(get_report_service_dep),
) -> ReportListOut:
    return _list_out(list(await service.admin_queue(actor, filters)))

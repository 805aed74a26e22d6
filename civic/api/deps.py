"""Shared FastAPI dependencies for the reports API."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends

from civic.domain.reports.container import get_report_service
from civic.domain.reports.models import Identity
from civic.domain.reports.service import ReportService
from civic.infra.auth import AuthenticatedUser, get_optional_user


def get_report_service_dep() -> ReportService:
    return get_report_service()


async def get_actor(
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    service: ReportService = Depends(get_report_service_dep),
) -> Optional[AuthenticatedUser]:
    """Resolve the caller and make sure the ledger knows about them.

    Anonymous callers resolve to ``None``; the service decides whether that is allowed.
    """

    if user is None:
        return None
    await service.register_identity(
        Identity(id=user.id, email=user.email or "", role=user.role, display_name=user.display_name)
    )
    return user

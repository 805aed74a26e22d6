"""FastAPI routes for the all-time points leaderboard."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from civic.api.deps import get_report_service_dep
from civic.api.schemas import LeaderboardOut, LeaderboardRowOut
from civic.domain.reports.service import ReportService

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


@router.get("", response_model=LeaderboardOut)
async def leaderboard_endpoint(
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    service: ReportService = Depends(get_report_service_dep),
) -> LeaderboardOut:
    entries = await service.leaderboard(limit)
    return LeaderboardOut(items=[LeaderboardRowOut.from_entry(entry) for entry in entries])

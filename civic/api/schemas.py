"""Request and response models for the reports API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from civic.domain.reports.models import LeaderboardEntry, ReportStatus, ReportView, Role, VoteResult


class ReportIn(BaseModel):
    raw_text: str = Field(..., max_length=5000)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    image_ref: Optional[str] = Field(default=None, max_length=2048)


class StatusChangeIn(BaseModel):
    status: ReportStatus


class ReportOut(BaseModel):
    id: str
    author_id: str
    author_name: Optional[str] = None
    raw_text: str
    clean_text: Optional[str]
    category: Optional[str]
    status: ReportStatus
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    image_ref: Optional[str] = None
    created_at: datetime
    votes_count: int
    user_has_voted: bool

    @classmethod
    def from_view(cls, view: ReportView) -> "ReportOut":
        report = view.report
        location = report.location
        return cls(
            id=report.id,
            author_id=report.author_id,
            author_name=view.author_name,
            raw_text=report.raw_text,
            clean_text=report.clean_text,
            category=report.category.value if report.category else None,
            status=report.status,
            latitude=location.latitude if location else None,
            longitude=location.longitude if location else None,
            image_ref=report.image_ref,
            created_at=report.created_at,
            votes_count=view.votes_count,
            user_has_voted=view.user_has_voted,
        )


class ReportListOut(BaseModel):
    items: list[ReportOut]
    count: int


class VoteOut(BaseModel):
    report_id: str
    votes_count: int
    points: int

    @classmethod
    def from_result(cls, result: VoteResult) -> "VoteOut":
        return cls(report_id=result.report_id, votes_count=result.votes_count, points=result.voter_points)


class ImageOut(BaseModel):
    url: str


class LeaderboardRowOut(BaseModel):
    rank: int
    identity_id: str
    display_name: Optional[str]
    role: Role
    points: int

    @classmethod
    def from_entry(cls, entry: LeaderboardEntry) -> "LeaderboardRowOut":
        return cls(
            rank=entry.rank,
            identity_id=entry.identity_id,
            display_name=entry.display_name,
            role=entry.role,
            points=entry.points,
        )


class LeaderboardOut(BaseModel):
    items: list[LeaderboardRowOut]

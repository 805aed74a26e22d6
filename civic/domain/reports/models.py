"""Domain models for civic issue reports, votes and contribution points."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class Role(str, Enum):
    CITIZEN = "citizen"
    MODERATOR = "moderator"
    ADMIN = "admin"


# Ordering used for staff-only actions
ROLE_RANK = {
    Role.CITIZEN: 0,
    Role.MODERATOR: 1,
    Role.ADMIN: 2,
}


class ReportStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"


class Category(str, Enum):
    SANITATION = "sanitation"
    WATER = "water"
    ROAD = "road"
    ELECTRICITY = "electricity"
    CORRUPTION = "corruption"
    SAFETY = "safety"


UNCATEGORIZED = "uncategorized"


class LedgerEvent(str, Enum):
    REPORT_SUBMITTED = "report_submitted"
    VOTE_CAST = "vote_cast"
    STATUS_CHANGED = "status_changed"


POINT_AMOUNTS = {
    LedgerEvent.REPORT_SUBMITTED: 10,
    LedgerEvent.VOTE_CAST: 1,
    LedgerEvent.STATUS_CHANGED: 3,
}


class SortOrder(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    MOST_VOTES = "most_votes"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Identity:
    id: str
    email: str
    role: Role = Role.CITIZEN
    display_name: Optional[str] = None
    points: int = 0


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass
class Report:
    id: str
    author_id: str
    raw_text: str
    clean_text: Optional[str]
    category: Optional[Category]
    status: ReportStatus = ReportStatus.PENDING
    location: Optional[Location] = None
    image_ref: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def category_label(self) -> str:
        return self.category.value if self.category else UNCATEGORIZED

    def with_status(self, status: ReportStatus) -> "Report":
        return replace(self, status=status)


@dataclass(frozen=True)
class Vote:
    id: str
    voter_id: str
    report_id: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class ReportView:
    """Report enriched with engagement data for a particular viewer."""

    report: Report
    votes_count: int
    user_has_voted: bool = False
    author_name: Optional[str] = None


@dataclass(frozen=True)
class VoteResult:
    report_id: str
    votes_count: int
    voter_points: int


@dataclass
class ReportFilters:
    status: Optional[ReportStatus] = None
    # A category value, or UNCATEGORIZED to select reports without one
    category: Optional[str] = None
    search: Optional[str] = None
    sort: SortOrder = SortOrder.NEWEST
    limit: int = 50
    offset: int = 0


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    identity_id: str
    display_name: Optional[str]
    role: Role
    points: int

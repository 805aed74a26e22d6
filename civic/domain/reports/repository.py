"""Persistence contract for the reports core plus the in-memory reference store."""

from __future__ import annotations

import asyncio
import copy
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Optional, Protocol, Sequence

from civic.domain.reports.errors import NotFound
from civic.domain.reports.models import (
    UNCATEGORIZED,
    Identity,
    Report,
    ReportFilters,
    ReportStatus,
    ReportView,
    SortOrder,
    Vote,
)


class ReportsRepository(Protocol):
    """Storage layer contract for identities, reports and votes.

    ``transaction`` groups calls into a single commit-or-nothing unit of work.
    ``insert_vote_if_absent`` and ``increment_points`` must be atomic on their
    own, without a read-modify-write in the caller.
    """

    def transaction(self) -> AsyncContextManager[None]:
        ...

    async def get_identity(self, identity_id: str) -> Identity | None:
        ...

    async def upsert_identity(self, identity: Identity) -> Identity:
        ...

    async def increment_points(self, identity_id: str, amount: int) -> int:
        ...

    async def insert_report(self, report: Report) -> Report:
        ...

    async def get_report(self, report_id: str, *, for_update: bool = False) -> Report | None:
        ...

    async def update_report_status(self, report_id: str, status: ReportStatus) -> Report:
        ...

    async def insert_vote_if_absent(self, vote: Vote) -> bool:
        ...

    async def count_votes(self, report_id: str) -> int:
        ...

    async def has_voted(self, voter_id: str, report_id: str) -> bool:
        ...

    async def get_report_view(self, report_id: str, viewer_id: Optional[str] = None) -> ReportView | None:
        ...

    async def list_reports(self, filters: ReportFilters, viewer_id: Optional[str] = None) -> Sequence[ReportView]:
        ...

    async def top_identities(self, limit: int) -> Sequence[Identity]:
        ...


def matches_filters(report: Report, filters: ReportFilters) -> bool:
    if filters.status is not None and report.status != filters.status:
        return False
    if filters.category:
        if filters.category == UNCATEGORIZED:
            if report.category is not None:
                return False
        elif report.category is None or report.category.value != filters.category:
            return False
    if filters.search:
        needle = filters.search.lower()
        haystacks = (report.raw_text, report.clean_text or "")
        if not any(needle in text.lower() for text in haystacks):
            return False
    return True


def sort_views(views: list[ReportView], order: SortOrder) -> list[ReportView]:
    if order == SortOrder.OLDEST:
        return sorted(views, key=lambda view: (view.report.created_at, view.report.id))
    newest = sorted(views, key=lambda view: (view.report.created_at, view.report.id), reverse=True)
    if order == SortOrder.MOST_VOTES:
        # sorted() is stable, so equal vote counts keep newest-first order
        return sorted(newest, key=lambda view: view.votes_count, reverse=True)
    return newest


class InMemoryReportsRepository(ReportsRepository):
    """Reference repository used in tests and developer environments.

    Units of work are serialized by a lock and roll back to a snapshot when the
    wrapped block raises.
    """

    def __init__(self) -> None:
        self.identities: dict[str, Identity] = {}
        self.reports: dict[str, Report] = {}
        self.votes: dict[tuple[str, str], Vote] = {}
        self._lock = asyncio.Lock()
        self._owner: Optional[asyncio.Task] = None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        task = asyncio.current_task()
        if task is not None and task is self._owner:
            yield
            return
        async with self._lock:
            snapshot = copy.deepcopy((self.identities, self.reports, self.votes))
            self._owner = task
            try:
                yield
            except BaseException:
                self.identities, self.reports, self.votes = snapshot
                raise
            finally:
                self._owner = None

    async def get_identity(self, identity_id: str) -> Identity | None:
        identity = self.identities.get(identity_id)
        return copy.copy(identity) if identity else None

    async def upsert_identity(self, identity: Identity) -> Identity:
        existing = self.identities.get(identity.id)
        if existing is None:
            stored = copy.copy(identity)
            self.identities[identity.id] = stored
        else:
            existing.email = identity.email or existing.email
            existing.role = identity.role
            existing.display_name = identity.display_name or existing.display_name
            stored = existing
        return copy.copy(stored)

    async def increment_points(self, identity_id: str, amount: int) -> int:
        identity = self.identities.get(identity_id)
        if identity is None:
            raise NotFound(f"identity_not_found:{identity_id}")
        identity.points += amount
        return identity.points

    async def insert_report(self, report: Report) -> Report:
        self.reports[report.id] = report
        return report

    async def get_report(self, report_id: str, *, for_update: bool = False) -> Report | None:
        return self.reports.get(report_id)

    async def update_report_status(self, report_id: str, status: ReportStatus) -> Report:
        report = self.reports.get(report_id)
        if report is None:
            raise NotFound(f"report_not_found:{report_id}")
        updated = report.with_status(status)
        self.reports[report_id] = updated
        return updated

    async def insert_vote_if_absent(self, vote: Vote) -> bool:
        key = (vote.voter_id, vote.report_id)
        if key in self.votes:
            return False
        self.votes[key] = vote
        return True

    async def count_votes(self, report_id: str) -> int:
        return sum(1 for _, voted_report in self.votes if voted_report == report_id)

    async def has_voted(self, voter_id: str, report_id: str) -> bool:
        return (voter_id, report_id) in self.votes

    async def get_report_view(self, report_id: str, viewer_id: Optional[str] = None) -> ReportView | None:
        report = self.reports.get(report_id)
        if report is None:
            return None
        return await self._view(report, viewer_id)

    async def list_reports(self, filters: ReportFilters, viewer_id: Optional[str] = None) -> Sequence[ReportView]:
        views = [
            await self._view(report, viewer_id)
            for report in self.reports.values()
            if matches_filters(report, filters)
        ]
        ordered = sort_views(views, filters.sort)
        return ordered[filters.offset : filters.offset + filters.limit]

    async def top_identities(self, limit: int) -> Sequence[Identity]:
        ranked = sorted(self.identities.values(), key=lambda identity: (-identity.points, identity.id))
        return [copy.copy(identity) for identity in ranked[:limit]]

    async def _view(self, report: Report, viewer_id: Optional[str]) -> ReportView:
        author = self.identities.get(report.author_id)
        return ReportView(
            report=report,
            votes_count=await self.count_votes(report.id),
            user_has_voted=bool(viewer_id) and (viewer_id, report.id) in self.votes,
            author_name=(author.display_name or author.email) if author else None,
        )

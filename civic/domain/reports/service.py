"""Report use cases: submission, voting, status changes and read models."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

import ulid

from civic.domain.reports import lifecycle
from civic.domain.reports.enhancer import TwoTierCategorizer
from civic.domain.reports.errors import NotFound, StorageError, ValidationError
from civic.domain.reports.ledger import EngagementLedger
from civic.domain.reports.models import (
    POINT_AMOUNTS,
    Identity,
    LeaderboardEntry,
    LedgerEvent,
    Location,
    Report,
    ReportFilters,
    ReportStatus,
    ReportView,
    VoteResult,
)
from civic.domain.reports.notifications import ReportNotifier
from civic.domain.reports.policy import Action, Actor, ensure_allowed
from civic.domain.reports.repository import ReportsRepository
from civic.domain.reports.storage import ImageStorage
from civic.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def make_location(latitude: Optional[float], longitude: Optional[float]) -> Optional[Location]:
    """Build a location from an optional coordinate pair; both or neither must be given."""

    if latitude is None and longitude is None:
        return None
    if latitude is None or longitude is None:
        raise ValidationError("location_incomplete")
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise ValidationError("location_invalid")
    if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
        raise ValidationError("location_out_of_range")
    return Location(latitude=float(latitude), longitude=float(longitude))


@dataclass
class ReportService:
    repository: ReportsRepository
    ledger: EngagementLedger
    categorizer: TwoTierCategorizer
    notifier: ReportNotifier | None = None
    storage: ImageStorage | None = None
    min_description_length: int = 10
    leaderboard_limit: int = 20

    async def register_identity(self, identity: Identity) -> Identity:
        """Record an identity supplied by the auth boundary; points are never touched."""

        return await self.repository.upsert_identity(identity)

    async def submit_report(
        self,
        actor: Optional[Actor],
        raw_text: str,
        *,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        image_ref: Optional[str] = None,
    ) -> Report:
        author = ensure_allowed(actor, Action.SUBMIT_REPORT)
        if not isinstance(raw_text, str) or len(raw_text.strip()) < self.min_description_length:
            raise ValidationError("description_too_short")
        location = make_location(latitude, longitude)

        processed = await self.categorizer.process(raw_text)
        report = Report(
            id=str(ulid.new()),
            author_id=author.id,
            raw_text=raw_text,
            clean_text=processed.clean_text,
            category=processed.category,
            status=ReportStatus.PENDING,
            location=location,
            image_ref=image_ref or None,
        )
        async with self.repository.transaction():
            report = await self.repository.insert_report(report)
            await self.ledger.credit_for(author.id, LedgerEvent.REPORT_SUBMITTED)

        obs_metrics.REPORTS_SUBMITTED_TOTAL.labels(category=report.category_label).inc()
        obs_metrics.POINTS_CREDITED_TOTAL.labels(reason=LedgerEvent.REPORT_SUBMITTED.value).inc(
            POINT_AMOUNTS[LedgerEvent.REPORT_SUBMITTED]
        )
        logger.info(
            "report submitted",
            extra={"report_id": report.id, "author_id": author.id, "category": report.category_label},
        )
        await self._notify_submitted(report)
        return report

    async def cast_vote(self, actor: Optional[Actor], report_id: str) -> VoteResult:
        ensure_allowed(actor, Action.VOTE)
        if await self.repository.get_report(report_id) is None:
            raise NotFound(f"report_not_found:{report_id}")
        return await self.ledger.cast_vote(actor, report_id)

    async def change_status(self, actor: Optional[Actor], report_id: str, target_status: str | ReportStatus) -> Report:
        moderator = ensure_allowed(actor, Action.CHANGE_STATUS)
        target = lifecycle.parse_status(target_status)
        async with self.repository.transaction():
            report = await self.repository.get_report(report_id, for_update=True)
            if report is None:
                raise NotFound(f"report_not_found:{report_id}")
            step = lifecycle.transition(report, target, moderator.role)
            if step.changed:
                report = await self.repository.update_report_status(report_id, step.report.status)
                await self.ledger.credit_for(moderator.id, LedgerEvent.STATUS_CHANGED)

        obs_metrics.STATUS_TRANSITIONS_TOTAL.labels(transition=step.label).inc()
        if step.changed:
            obs_metrics.POINTS_CREDITED_TOTAL.labels(reason=LedgerEvent.STATUS_CHANGED.value).inc(
                POINT_AMOUNTS[LedgerEvent.STATUS_CHANGED]
            )
            logger.info(
                "report status changed",
                extra={"report_id": report_id, "transition": step.label, "actor_id": moderator.id},
            )
        return report

    async def get_report(self, report_id: str, viewer: Optional[Actor] = None) -> ReportView:
        view = await self.repository.get_report_view(report_id, viewer.id if viewer else None)
        if view is None:
            raise NotFound(f"report_not_found:{report_id}")
        return view

    async def list_reports(self, filters: ReportFilters, viewer: Optional[Actor] = None) -> Sequence[ReportView]:
        if filters.limit < 1 or filters.offset < 0:
            raise ValidationError("pagination_invalid")
        return await self.repository.list_reports(filters, viewer.id if viewer else None)

    async def admin_queue(self, actor: Optional[Actor], filters: ReportFilters) -> Sequence[ReportView]:
        staff = ensure_allowed(actor, Action.VIEW_ADMIN_QUEUE)
        return await self.list_reports(filters, staff)

    async def leaderboard(self, limit: Optional[int] = None) -> list[LeaderboardEntry]:
        size = limit if limit is not None else self.leaderboard_limit
        if size < 1:
            raise ValidationError("limit_invalid")
        identities = await self.repository.top_identities(size)
        return [
            LeaderboardEntry(
                rank=position,
                identity_id=identity.id,
                display_name=identity.display_name,
                role=identity.role,
                points=identity.points,
            )
            for position, identity in enumerate(identities, start=1)
        ]

    async def upload_image(self, actor: Optional[Actor], payload: bytes, content_type: str) -> str:
        owner = ensure_allowed(actor, Action.SUBMIT_REPORT)
        if self.storage is None:
            raise StorageError("storage_not_configured")
        return await self.storage.store(owner.id, payload, content_type)

    async def _notify_submitted(self, report: Report) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.report_submitted(report)
        except Exception:  # noqa: BLE001 - notification failures should not block submission
            obs_metrics.NOTIFICATIONS_TOTAL.labels(outcome="failed").inc()
            logger.exception("failed to dispatch report notification", extra={"report_id": report.id})
            return
        obs_metrics.NOTIFICATIONS_TOTAL.labels(outcome="sent").inc()

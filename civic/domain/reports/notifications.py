"""Outbound notifications for finalized reports."""

from __future__ import annotations

from typing import Protocol

from civic.domain.reports.models import Report
from civic.infra.redis import RedisProxy


class ReportNotifier(Protocol):
    async def report_submitted(self, report: Report) -> None:
        ...


class RedisStreamNotifier(ReportNotifier):
    """Publishes new reports to a Redis stream consumed by notification workers."""

    def __init__(self, redis: RedisProxy, stream: str, *, maxlen: int = 10_000) -> None:
        self._redis = redis
        self._stream = stream
        self._maxlen = maxlen

    async def report_submitted(self, report: Report) -> None:
        await self._redis.xadd(
            self._stream,
            {
                "event": "report.submitted",
                "report_id": report.id,
                "author_id": report.author_id,
                "category": report.category_label,
                "status": report.status.value,
                "created_at": report.created_at.isoformat(),
            },
            maxlen=self._maxlen,
        )

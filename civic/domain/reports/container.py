"""Lightweight service container for the reports core."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import asyncpg
from redis.asyncio import Redis

from civic.domain.reports.enhancer import HttpTextEnhancer, TextEnhancer, TwoTierCategorizer
from civic.domain.reports.ledger import EngagementLedger
from civic.domain.reports.notifications import RedisStreamNotifier, ReportNotifier
from civic.domain.reports.repository import InMemoryReportsRepository, ReportsRepository
from civic.domain.reports.service import ReportService
from civic.domain.reports.storage import ImageStorage, LocalImageStorage
from civic.infra.redis import RedisProxy, redis_client
from civic.settings import settings


def _default_enhancer() -> TextEnhancer | None:
    if not settings.enhancer_url:
        return None
    return HttpTextEnhancer(
        settings.enhancer_url,
        timeout_seconds=settings.enhancer_timeout_seconds,
        max_attempts=settings.enhancer_max_attempts,
    )


def _default_notifier(redis_conn: Redis | RedisProxy) -> ReportNotifier | None:
    if not settings.notifications_enabled:
        return None
    proxy = redis_conn if isinstance(redis_conn, RedisProxy) else RedisProxy(redis_conn)
    return RedisStreamNotifier(proxy, settings.notifications_stream)


def _default_storage() -> ImageStorage:
    return LocalImageStorage(
        Path(settings.upload_dir),
        settings.upload_base_url,
        max_bytes=settings.max_image_bytes,
    )


def build_service(
    repository: ReportsRepository,
    *,
    enhancer: Optional[TextEnhancer] = None,
    notifier: Optional[ReportNotifier] = None,
    storage: Optional[ImageStorage] = None,
) -> ReportService:
    deadline = getattr(enhancer, "deadline_seconds", settings.enhancer_timeout_seconds * settings.enhancer_max_attempts)
    return ReportService(
        repository=repository,
        ledger=EngagementLedger(repository),
        categorizer=TwoTierCategorizer(enhancer, deadline_seconds=deadline),
        notifier=notifier,
        storage=storage,
        min_description_length=settings.min_description_length,
        leaderboard_limit=settings.leaderboard_limit,
    )


_repository: ReportsRepository = InMemoryReportsRepository()
_service: ReportService = build_service(
    _repository,
    enhancer=_default_enhancer(),
    notifier=_default_notifier(redis_client),
    storage=_default_storage(),
)


def configure(
    *,
    repository: Optional[ReportsRepository] = None,
    enhancer: Optional[TextEnhancer] = None,
    notifier: Optional[ReportNotifier] = None,
    storage: Optional[ImageStorage] = None,
) -> ReportService:
    """Swap collaborators; anything left as ``None`` falls back to the configured default."""

    global _repository, _service
    _repository = repository or InMemoryReportsRepository()
    _service = build_service(
        _repository,
        enhancer=enhancer or _default_enhancer(),
        notifier=notifier or _default_notifier(redis_client),
        storage=storage or _default_storage(),
    )
    return _service


def configure_postgres(pool: asyncpg.Pool, redis_conn: Redis | RedisProxy) -> ReportService:
    from civic.infra.reports_repo import PostgresReportsRepository

    global _repository, _service
    _repository = PostgresReportsRepository(pool)
    _service = build_service(
        _repository,
        enhancer=_default_enhancer(),
        notifier=_default_notifier(redis_conn),
        storage=_default_storage(),
    )
    return _service


def get_report_service() -> ReportService:
    return _service

"""PostgreSQL-backed repository for the reports core."""

from __future__ import annotations

from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, AsyncIterator, Optional, Sequence

import asyncpg

from civic.domain.reports.errors import NotFound, PersistenceError
from civic.domain.reports.models import (
    UNCATEGORIZED,
    Category,
    Identity,
    Location,
    Report,
    ReportFilters,
    ReportStatus,
    ReportView,
    Role,
    SortOrder,
    Vote,
)
from civic.domain.reports.repository import ReportsRepository

# Connection bound to the unit of work running in the current task
_CURRENT_CONN: ContextVar[Optional[asyncpg.Connection]] = ContextVar("civic_reports_conn", default=None)

_REPORT_COLUMNS = """
    r.id, r.author_id, r.raw_text, r.clean_text, r.category, r.status,
    r.latitude, r.longitude, r.image_ref, r.created_at
"""

_ORDER_BY = {
    SortOrder.NEWEST: "r.created_at DESC, r.id DESC",
    SortOrder.OLDEST: "r.created_at ASC, r.id ASC",
    SortOrder.MOST_VOTES: "votes_count DESC, r.created_at DESC, r.id DESC",
}


def _identity_from_record(record: asyncpg.Record) -> Identity:
    return Identity(
        id=str(record["id"]),
        email=record["email"] or "",
        role=Role(record["role"]),
        display_name=record["display_name"],
        points=int(record["points"]),
    )


def _report_from_record(record: asyncpg.Record) -> Report:
    location = None
    if record["latitude"] is not None and record["longitude"] is not None:
        location = Location(latitude=float(record["latitude"]), longitude=float(record["longitude"]))
    category = record["category"]
    return Report(
        id=str(record["id"]),
        author_id=str(record["author_id"]),
        raw_text=record["raw_text"],
        clean_text=record["clean_text"],
        category=Category(category) if category else None,
        status=ReportStatus(record["status"]),
        location=location,
        image_ref=record["image_ref"],
        created_at=record["created_at"],
    )


def _view_from_record(record: asyncpg.Record) -> ReportView:
    return ReportView(
        report=_report_from_record(record),
        votes_count=int(record["votes_count"]),
        user_has_voted=bool(record["user_has_voted"]),
        author_name=record["author_name"],
    )


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@asynccontextmanager
async def _translate_errors() -> AsyncIterator[None]:
    try:
        yield
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
        raise PersistenceError(exc.__class__.__name__) from exc


class PostgresReportsRepository(ReportsRepository):
    """Persists identities, reports and votes using asyncpg.

    Vote uniqueness relies on the ``UNIQUE (voter_id, report_id)`` constraint and
    point credits on an in-place ``points = points + $n`` update.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    def _executor(self) -> Any:
        return _CURRENT_CONN.get() or self.pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        existing = _CURRENT_CONN.get()
        if existing is not None:
            async with existing.transaction():
                yield
            return
        async with _translate_errors():
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    token = _CURRENT_CONN.set(conn)
                    try:
                        yield
                    finally:
                        _CURRENT_CONN.reset(token)

    async def get_identity(self, identity_id: str) -> Identity | None:
        query = "SELECT id, email, display_name, role, points FROM identities WHERE id = $1"
        async with _translate_errors():
            record = await self._executor().fetchrow(query, identity_id)
        return _identity_from_record(record) if record else None

    async def upsert_identity(self, identity: Identity) -> Identity:
        query = """
        INSERT INTO identities (id, email, display_name, role)
        VALUES ($1, $2, $3, $4)
        ON CONFLICT (id) DO UPDATE SET
            email = COALESCE(NULLIF(EXCLUDED.email, ''), identities.email),
            display_name = COALESCE(EXCLUDED.display_name, identities.display_name),
            role = EXCLUDED.role
        RETURNING id, email, display_name, role, points
        """
        async with _translate_errors():
            record = await self._executor().fetchrow(
                query,
                identity.id,
                identity.email or "",
                identity.display_name,
                identity.role.value,
            )
        if record is None:
            raise PersistenceError("identity_upsert_returned_nothing")
        return _identity_from_record(record)

    async def increment_points(self, identity_id: str, amount: int) -> int:
        query = "UPDATE identities SET points = points + $2 WHERE id = $1 RETURNING points"
        async with _translate_errors():
            value = await self._executor().fetchval(query, identity_id, amount)
        if value is None:
            raise NotFound(f"identity_not_found:{identity_id}")
        return int(value)

    async def insert_report(self, report: Report) -> Report:
        query = """
        INSERT INTO reports AS r (
            id, author_id, raw_text, clean_text, category, status, latitude, longitude, image_ref, created_at
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
        RETURNING
        """ + _REPORT_COLUMNS
        location = report.location
        try:
            async with _translate_errors():
                record = await self._executor().fetchrow(
                    query,
                    report.id,
                    report.author_id,
                    report.raw_text,
                    report.clean_text,
                    report.category.value if report.category else None,
                    report.status.value,
                    location.latitude if location else None,
                    location.longitude if location else None,
                    report.image_ref,
                    report.created_at,
                )
        except PersistenceError as exc:
            if isinstance(exc.__cause__, asyncpg.ForeignKeyViolationError):
                raise NotFound(f"identity_not_found:{report.author_id}") from exc
            raise
        if record is None:
            raise PersistenceError("report_insert_returned_nothing")
        return _report_from_record(record)

    async def get_report(self, report_id: str, *, for_update: bool = False) -> Report | None:
        query = f"SELECT {_REPORT_COLUMNS} FROM reports r WHERE r.id = $1"
        if for_update:
            query += " FOR UPDATE"
        async with _translate_errors():
            record = await self._executor().fetchrow(query, report_id)
        return _report_from_record(record) if record else None

    async def update_report_status(self, report_id: str, status: ReportStatus) -> Report:
        query = f"""
        UPDATE reports AS r SET status = $2, updated_at = now()
        WHERE r.id = $1
        RETURNING {_REPORT_COLUMNS}
        """
        async with _translate_errors():
            record = await self._executor().fetchrow(query, report_id, status.value)
        if record is None:
            raise NotFound(f"report_not_found:{report_id}")
        return _report_from_record(record)

    async def insert_vote_if_absent(self, vote: Vote) -> bool:
        query = """
        INSERT INTO votes (id, voter_id, report_id, created_at)
        VALUES ($1, $2, $3, $4)
        ON CONFLICT (voter_id, report_id) DO NOTHING
        RETURNING id
        """
        try:
            async with _translate_errors():
                inserted = await self._executor().fetchval(
                    query, vote.id, vote.voter_id, vote.report_id, vote.created_at
                )
        except PersistenceError as exc:
            if isinstance(exc.__cause__, asyncpg.UniqueViolationError):
                return False
            if isinstance(exc.__cause__, asyncpg.ForeignKeyViolationError):
                raise NotFound(f"vote_target_not_found:{vote.report_id}") from exc
            raise
        return inserted is not None

    async def count_votes(self, report_id: str) -> int:
        async with _translate_errors():
            value = await self._executor().fetchval("SELECT COUNT(*) FROM votes WHERE report_id = $1", report_id)
        return int(value or 0)

    async def has_voted(self, voter_id: str, report_id: str) -> bool:
        query = "SELECT 1 FROM votes WHERE voter_id = $1 AND report_id = $2"
        async with _translate_errors():
            row = await self._executor().fetchrow(query, voter_id, report_id)
        return row is not None

    async def get_report_view(self, report_id: str, viewer_id: Optional[str] = None) -> ReportView | None:
        query = f"""
        {_view_select()}
        WHERE r.id = $2
        """
        async with _translate_errors():
            record = await self._executor().fetchrow(query, viewer_id, report_id)
        return _view_from_record(record) if record else None

    async def list_reports(self, filters: ReportFilters, viewer_id: Optional[str] = None) -> Sequence[ReportView]:
        clauses, args = _filter_clauses(filters, first_index=2)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        limit_idx = len(args) + 2
        query = f"""
        {_view_select()}
        {where}
        ORDER BY {_ORDER_BY[filters.sort]}
        LIMIT ${limit_idx} OFFSET ${limit_idx + 1}
        """
        async with _translate_errors():
            records = await self._executor().fetch(query, viewer_id, *args, filters.limit, filters.offset)
        return [_view_from_record(record) for record in records]

    async def top_identities(self, limit: int) -> Sequence[Identity]:
        query = """
        SELECT id, email, display_name, role, points
        FROM identities
        ORDER BY points DESC, id ASC
        LIMIT $1
        """
        async with _translate_errors():
            records = await self._executor().fetch(query, limit)
        return [_identity_from_record(record) for record in records]


def _view_select() -> str:
    # $1 is always the viewer id (nullable)
    return f"""
        SELECT {_REPORT_COLUMNS},
               (SELECT COUNT(*) FROM votes v WHERE v.report_id = r.id) AS votes_count,
               EXISTS (
                   SELECT 1 FROM votes v WHERE v.report_id = r.id AND v.voter_id = $1::text
               ) AS user_has_voted,
               COALESCE(i.display_name, NULLIF(i.email, '')) AS author_name
        FROM reports r
        LEFT JOIN identities i ON i.id = r.author_id
    """


def _filter_clauses(filters: ReportFilters, *, first_index: int) -> tuple[list[str], list[Any]]:
    clauses: list[str] = []
    args: list[Any] = []

    def _placeholder() -> str:
        return f"${first_index + len(args)}"

    if filters.status is not None:
        clauses.append(f"r.status = {_placeholder()}")
        args.append(filters.status.value)
    if filters.category:
        if filters.category == UNCATEGORIZED:
            clauses.append("r.category IS NULL")
        else:
            clauses.append(f"r.category = {_placeholder()}")
            args.append(filters.category)
    if filters.search:
        placeholder = _placeholder()
        clauses.append(f"(r.raw_text ILIKE {placeholder} OR COALESCE(r.clean_text, '') ILIKE {placeholder})")
        args.append(f"%{_escape_like(filters.search)}%")
    return clauses, args

"""Error kinds surfaced by the reports core.

Every error carries a stable ``code`` so callers can branch on it without
parsing messages.
"""

from __future__ import annotations


class ReportsError(Exception):
    code = "reports_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class Forbidden(ReportsError):
    code = "forbidden"


class Unauthenticated(Forbidden):
    code = "unauthenticated"


class NotFound(ReportsError):
    code = "not_found"


class ValidationError(ReportsError):
    code = "validation_error"


class AlreadyVoted(ReportsError):
    code = "already_voted"


class StorageError(ReportsError):
    code = "storage_error"


class PersistenceError(ReportsError):
    code = "persistence_error"

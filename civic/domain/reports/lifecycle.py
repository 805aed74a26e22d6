"""Report status state machine.

Every status is directly reachable from every other one; ``resolved`` is not
terminal and may be reopened. Moving to the current status is a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from civic.domain.reports.errors import Forbidden, ValidationError
from civic.domain.reports.models import Report, ReportStatus, Role
from civic.domain.reports.policy import Action, allows


@dataclass(frozen=True)
class Transition:
    report: Report
    previous: ReportStatus

    @property
    def changed(self) -> bool:
        return self.report.status != self.previous

    @property
    def label(self) -> str:
        if not self.changed:
            return "noop"
        return f"{self.previous.value}_to_{self.report.status.value}"


def parse_status(value: str | ReportStatus) -> ReportStatus:
    try:
        return ReportStatus(value)
    except ValueError as exc:
        raise ValidationError(f"unknown_status:{value}") from exc


def transition(report: Report, target_status: str | ReportStatus, actor_role: Optional[Role]) -> Transition:
    """Validate and apply a status change, returning the updated report."""

    if not allows(actor_role, Action.CHANGE_STATUS):
        raise Forbidden("change_status_not_allowed")
    target = parse_status(target_status)
    if target == report.status:
        return Transition(report=report, previous=report.status)
    return Transition(report=report.with_status(target), previous=report.status)

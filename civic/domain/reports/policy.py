"""Authorization policy: which roles may perform which report actions."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Protocol

from civic.domain.reports.errors import Forbidden, Unauthenticated
from civic.domain.reports.models import ROLE_RANK, Role


class Action(str, Enum):
    SUBMIT_REPORT = "submit_report"
    VOTE = "vote"
    CHANGE_STATUS = "change_status"
    VIEW_ADMIN_QUEUE = "view_admin_queue"


# Lowest role allowed to perform each action
_MIN_ROLE = {
    Action.SUBMIT_REPORT: Role.CITIZEN,
    Action.VOTE: Role.CITIZEN,
    Action.CHANGE_STATUS: Role.MODERATOR,
    Action.VIEW_ADMIN_QUEUE: Role.MODERATOR,
}


class Actor(Protocol):
    id: str
    role: Role


def allows(role: Optional[Role], action: Action) -> bool:
    """Return whether ``role`` may perform ``action``.

    ``None`` stands for an anonymous caller and is never allowed anything.
    """

    if role is None:
        return False
    return ROLE_RANK[Role(role)] >= ROLE_RANK[_MIN_ROLE[action]]


def ensure_allowed(actor: Optional[Actor], action: Action) -> Actor:
    if actor is None:
        raise Unauthenticated("authentication_required")
    if not allows(actor.role, action):
        raise Forbidden(f"{action.value}_not_allowed")
    return actor

"""Engagement ledger: one vote per identity per report, and contribution points."""

from __future__ import annotations

import logging
from typing import Optional

import ulid

from civic.domain.reports.errors import AlreadyVoted, ValidationError
from civic.domain.reports.models import POINT_AMOUNTS, LedgerEvent, Vote, VoteResult
from civic.domain.reports.policy import Action, Actor, ensure_allowed
from civic.domain.reports.repository import ReportsRepository
from civic.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class EngagementLedger:
    """Records votes and credits points through the repository's atomic primitives."""

    def __init__(self, repository: ReportsRepository) -> None:
        self._repo = repository

    async def credit(self, identity_id: str, amount: int, *, reason: str = "manual") -> int:
        """Atomically add ``amount`` points to an identity and return the new total.

        Points never decrease, so negative amounts are rejected.
        """

        if amount < 0:
            raise ValidationError("credit_amount_negative")
        total = await self._repo.increment_points(identity_id, amount)
        logger.debug("points credited", extra={"identity_id": identity_id, "amount": amount, "reason": reason})
        return total

    async def credit_for(self, identity_id: str, event: LedgerEvent) -> int:
        return await self.credit(identity_id, POINT_AMOUNTS[event], reason=event.value)

    async def cast_vote(self, voter: Optional[Actor], report_id: str) -> VoteResult:
        """Record ``voter``'s vote on ``report_id`` and credit the vote point.

        The vote row and the point credit commit together; a repeated vote
        raises ``AlreadyVoted`` and changes nothing.
        """

        actor = ensure_allowed(voter, Action.VOTE)
        vote = Vote(id=str(ulid.new()), voter_id=actor.id, report_id=report_id)
        try:
            async with self._repo.transaction():
                if not await self._repo.insert_vote_if_absent(vote):
                    raise AlreadyVoted(f"already_voted:{report_id}")
                points = await self.credit_for(actor.id, LedgerEvent.VOTE_CAST)
                votes_count = await self._repo.count_votes(report_id)
        except AlreadyVoted:
            obs_metrics.VOTES_TOTAL.labels(outcome="duplicate").inc()
            raise
        obs_metrics.VOTES_TOTAL.labels(outcome="accepted").inc()
        obs_metrics.POINTS_CREDITED_TOTAL.labels(reason=LedgerEvent.VOTE_CAST.value).inc(
            POINT_AMOUNTS[LedgerEvent.VOTE_CAST]
        )
        logger.info("vote recorded", extra={"report_id": report_id, "voter_id": actor.id, "votes_count": votes_count})
        return VoteResult(report_id=report_id, votes_count=votes_count, voter_points=points)

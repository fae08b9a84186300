# app/services/lifecycle.py
"""
Vote-driven incident lifecycle.

A voter's relation to an incident is one of three states:

    NONE --upvote--> UP --downvote--> DOWN --downvote--> NONE
      \                \--upvote--> NONE     \--upvote--> UP
       \--downvote--> DOWN

`transition` is the pure table; IncidentLifecycle applies it to the store in
one transaction: lock the incident row, change the vote row, apply the counter
deltas with column arithmetic, then re-run the promotion rules. The promotion
rules are conditional UPDATEs, so re-running them converges to the same state.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from sqlalchemy import and_, case, delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import IncidentNotFoundError, InvalidInputError, NotReporterError, StoreError
from app.crud.incident import get_incident, get_vote
from app.db.models.incident import Incident
from app.db.models.incident_vote import IncidentVote
from app.services.weights import DEFAULT_POLICY, REPORTER_STATUSES, VOTE_KINDS, LifecyclePolicy
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


class VoteState(enum.Enum):
    NONE = None
    UP = "upvote"
    DOWN = "downvote"


@dataclass(frozen=True)
class VoteTransition:
    before: VoteState
    after: VoteState
    up_delta: int
    down_delta: int


def _counts(state: VoteState) -> tuple[int, int]:
    return (1 if state is VoteState.UP else 0, 1 if state is VoteState.DOWN else 0)


def transition(current: VoteState, kind: str) -> VoteTransition:
    """Same kind again retracts; the other kind swaps; no prior vote inserts."""
    if kind not in VOTE_KINDS:
        raise InvalidInputError(f"Invalid vote type: {kind}")
    cast = VoteState(kind)
    after = VoteState.NONE if current is cast else cast

    up_before, down_before = _counts(current)
    up_after, down_after = _counts(after)
    return VoteTransition(
        before=current,
        after=after,
        up_delta=up_after - up_before,
        down_delta=down_after - down_before,
    )


class IncidentLifecycle:
    def __init__(self, db: Session, policy: LifecyclePolicy = DEFAULT_POLICY):
        self.db = db
        self.policy = policy

    def vote(self, incident_id: int, voter_id: str, kind: str) -> Incident:
        if kind not in VOTE_KINDS:
            raise InvalidInputError(f"Invalid vote type: {kind}")

        try:
            incident = get_incident(self.db, incident_id, for_update=True)
            if incident is None:
                raise IncidentNotFoundError(incident_id)

            existing = get_vote(self.db, incident_id, voter_id)
            current = VoteState(existing.vote_type) if existing else VoteState.NONE
            step = transition(current, kind)

            if step.after is VoteState.NONE:
                self.db.execute(delete(IncidentVote).where(IncidentVote.id == existing.id))
            elif existing is None:
                self.db.add(IncidentVote(incident_id=incident_id, voter_id=voter_id, vote_type=step.after.value))
            else:
                existing.vote_type = step.after.value
            self.db.flush()

            self.db.execute(
                update(Incident)
                .where(Incident.id == incident_id)
                .values(
                    upvotes=Incident.upvotes + step.up_delta,
                    downvotes=Incident.downvotes + step.down_delta,
                )
                .execution_options(synchronize_session=False)
            )
            self._apply_promotion(incident_id)
            self.db.commit()
        except (IncidentNotFoundError, InvalidInputError):
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("vote failed incident=%s voter=%s", incident_id, voter_id)
            raise StoreError("Failed to vote on incident") from e

        logger.info(
            "vote incident=%s voter=%s %s -> %s",
            incident_id, voter_id, step.before.name, step.after.name,
        )
        return self._reload(incident_id)

    def reevaluate(self, incident_id: int) -> Incident:
        """Re-run auto-verification/dismissal alone; safe to call any number of times."""
        try:
            if get_incident(self.db, incident_id, for_update=True) is None:
                raise IncidentNotFoundError(incident_id)
            self._apply_promotion(incident_id)
            self.db.commit()
        except IncidentNotFoundError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("promotion check failed incident=%s", incident_id)
            raise StoreError("Failed to re-evaluate incident") from e
        return self._reload(incident_id)

    def set_status(self, incident_id: int, requester_id: str, new_status: str) -> Incident:
        incident = get_incident(self.db, incident_id)
        if incident is None:
            raise IncidentNotFoundError(incident_id)
        if incident.reporter_id != requester_id:
            raise NotReporterError("Not authorized to update this incident")
        if new_status not in REPORTER_STATUSES:
            raise InvalidInputError(f"Invalid status: {new_status}")

        incident.status = new_status
        incident.resolved_at = utcnow() if new_status == "resolved" else None
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("status update failed incident=%s", incident_id)
            raise StoreError("Failed to update incident status") from e

        logger.info("incident %s status -> %s by reporter", incident_id, new_status)
        return self._reload(incident_id)

    def _apply_promotion(self, incident_id: int) -> None:
        """
        Verification first, then dismissal; both read the committed counters of
        this transaction, and neither changes them.
        """
        p = self.policy
        verified = self.db.execute(
            update(Incident)
            .where(
                and_(
                    Incident.id == incident_id,
                    Incident.upvotes >= p.verify_upvotes,
                    Incident.verified.is_(False),
                    Incident.status != "dismissed",
                )
            )
            .values(
                verified=True,
                status=case(
                    (Incident.status.in_(sorted(p.promotable_statuses)), "verified"),
                    else_=Incident.status,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        if verified.rowcount:
            logger.info("incident %s auto-verified", incident_id)

        dismissed = self.db.execute(
            update(Incident)
            .where(
                and_(
                    Incident.id == incident_id,
                    Incident.status != "dismissed",
                    Incident.downvotes >= p.dismiss_downvotes,
                    Incident.downvotes > Incident.upvotes * p.dismiss_ratio,
                )
            )
            .values(status="dismissed")
            .execution_options(synchronize_session=False)
        )
        if dismissed.rowcount:
            logger.info("incident %s auto-dismissed", incident_id)

    def _reload(self, incident_id: int) -> Incident:
        incident = self.db.get(Incident, incident_id, populate_existing=True)
        if incident is None:
            raise IncidentNotFoundError(incident_id)
        return incident

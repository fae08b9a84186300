import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.errors import IncidentNotFoundError, InvalidInputError, NotReporterError
from app.crud.incident import create_incident
from app.db.base import Base
from app.db.models.incident import Incident
from app.db.models.incident_vote import IncidentVote
from app.services.lifecycle import IncidentLifecycle, VoteState, transition


@pytest.mark.parametrize("current,kind,after,up,down", [
    (VoteState.NONE, "upvote", VoteState.UP, 1, 0),
    (VoteState.NONE, "downvote", VoteState.DOWN, 0, 1),
    (VoteState.UP, "upvote", VoteState.NONE, -1, 0),
    (VoteState.UP, "downvote", VoteState.DOWN, -1, 1),
    (VoteState.DOWN, "downvote", VoteState.NONE, 0, -1),
    (VoteState.DOWN, "upvote", VoteState.UP, 1, -1),
])
def test_transition_table(current, kind, after, up, down):
    step = transition(current, kind)
    assert step.before is current
    assert step.after is after
    assert (step.up_delta, step.down_delta) == (up, down)


def test_transition_rejects_unknown_kind():
    with pytest.raises(InvalidInputError):
        transition(VoteState.NONE, "sideways")


def _votes(db, incident_id):
    return db.query(IncidentVote).filter_by(incident_id=incident_id).all()


def test_repeat_vote_retracts(db, add_incident):
    incident = add_incident()
    lifecycle = IncidentLifecycle(db)

    lifecycle.vote(incident.id, "alice", "upvote")
    after = lifecycle.vote(incident.id, "alice", "upvote")

    assert (after.upvotes, after.downvotes) == (0, 0)
    assert _votes(db, incident.id) == []


def test_opposite_vote_swaps(db, add_incident):
    incident = add_incident()
    lifecycle = IncidentLifecycle(db)

    lifecycle.vote(incident.id, "alice", "upvote")
    after = lifecycle.vote(incident.id, "alice", "downvote")

    assert (after.upvotes, after.downvotes) == (0, 1)
    votes = _votes(db, incident.id)
    assert len(votes) == 1
    assert votes[0].vote_type == "downvote"


def test_three_upvotes_verify(db, add_incident):
    incident = add_incident()
    lifecycle = IncidentLifecycle(db)

    lifecycle.vote(incident.id, "u1", "upvote")
    second = lifecycle.vote(incident.id, "u2", "upvote")
    assert second.verified is False
    assert second.status == "active"

    third = lifecycle.vote(incident.id, "u3", "upvote")
    assert third.upvotes == 3
    assert third.verified is True
    assert third.status == "verified"


def test_five_downvotes_dismiss(db, add_incident):
    incident = add_incident()
    lifecycle = IncidentLifecycle(db)
    lifecycle.vote(incident.id, "fan", "upvote")

    for i in range(4):
        current = lifecycle.vote(incident.id, f"d{i}", "downvote")
    assert current.status == "active"

    final = lifecycle.vote(incident.id, "d4", "downvote")
    assert (final.upvotes, final.downvotes) == (1, 5)
    assert final.status == "dismissed"


def test_downvotes_not_outnumbering_upvotes_do_not_dismiss(db, add_incident):
    incident = add_incident(status="investigating")
    lifecycle = IncidentLifecycle(db)
    for i in range(3):
        lifecycle.vote(incident.id, f"u{i}", "upvote")
    for i in range(6):
        current = lifecycle.vote(incident.id, f"d{i}", "downvote")

    # 6 > 2 * 3 is false
    assert current.status == "verified"
    assert current.verified is True


def test_verification_runs_before_dismissal(db, add_incident):
    incident = add_incident()
    db.query(Incident).filter_by(id=incident.id).update({"upvotes": 2, "downvotes": 7})
    db.commit()

    final = IncidentLifecycle(db).vote(incident.id, "u3", "upvote")

    assert final.verified is True
    assert final.status == "dismissed"


def test_resolved_incident_is_verified_without_status_change(db, add_incident):
    incident = add_incident(status="resolved")
    lifecycle = IncidentLifecycle(db)
    for i in range(3):
        final = lifecycle.vote(incident.id, f"u{i}", "upvote")

    assert final.verified is True
    assert final.status == "resolved"


def test_dismissed_incident_is_never_verified(db, add_incident):
    incident = add_incident(status="dismissed")
    lifecycle = IncidentLifecycle(db)
    for i in range(3):
        final = lifecycle.vote(incident.id, f"u{i}", "upvote")

    assert final.upvotes == 3
    assert final.verified is False
    assert final.status == "dismissed"


def test_reevaluate_is_idempotent(db, add_incident):
    incident = add_incident()
    db.query(Incident).filter_by(id=incident.id).update({"upvotes": 4})
    db.commit()
    lifecycle = IncidentLifecycle(db)

    first = lifecycle.reevaluate(incident.id)
    snapshot = (first.status, first.verified, first.upvotes, first.downvotes)
    second = lifecycle.reevaluate(incident.id)

    assert snapshot == ("verified", True, 4, 0)
    assert (second.status, second.verified, second.upvotes, second.downvotes) == snapshot


def test_vote_errors(db, add_incident):
    lifecycle = IncidentLifecycle(db)
    with pytest.raises(IncidentNotFoundError):
        lifecycle.vote(999, "alice", "upvote")

    incident = add_incident()
    with pytest.raises(InvalidInputError):
        lifecycle.vote(incident.id, "alice", "meh")
    assert _votes(db, incident.id) == []


def test_status_update_by_reporter(db, add_incident):
    incident = add_incident(reporter_id="rep")
    lifecycle = IncidentLifecycle(db)

    resolved = lifecycle.set_status(incident.id, "rep", "resolved")
    assert resolved.status == "resolved"
    assert resolved.resolved_at is not None

    reopened = lifecycle.set_status(incident.id, "rep", "active")
    assert reopened.status == "active"
    assert reopened.resolved_at is None


def test_status_update_errors(db, add_incident):
    incident = add_incident(reporter_id="rep")
    lifecycle = IncidentLifecycle(db)

    with pytest.raises(NotReporterError):
        lifecycle.set_status(incident.id, "someone-else", "resolved")
    with pytest.raises(InvalidInputError):
        lifecycle.set_status(incident.id, "rep", "verified")
    with pytest.raises(IncidentNotFoundError):
        lifecycle.set_status(12345, "rep", "resolved")

    db.refresh(incident)
    assert incident.status == "active"


def test_concurrent_votes_are_not_lost(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'votes.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    with Session() as setup:
        incident = create_incident(
            setup, reporter_id="reporter", lat=40.7128, lng=-74.0060,
            incident_type="theft", severity="medium", title="Bike stolen",
        )
        setup.commit()
        incident_id = incident.id

    voters = 12
    start = threading.Barrier(voters)
    errors = []

    def cast(i):
        with Session() as session:
            start.wait()
            try:
                IncidentLifecycle(session).vote(incident_id, f"v{i}", "downvote")
            except Exception as e:
                errors.append(e)

    threads = [threading.Thread(target=cast, args=(i,)) for i in range(voters)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    try:
        assert errors == []
        with Session() as check:
            row = check.get(Incident, incident_id)
            assert row.downvotes == voters
            assert row.upvotes == 0
            assert row.status == "dismissed"
            assert check.query(IncidentVote).filter_by(incident_id=incident_id).count() == voters
    finally:
        engine.dispose()

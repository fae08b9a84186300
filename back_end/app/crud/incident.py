from datetime import datetime, timedelta

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from app.core.errors import InvalidInputError
from app.db.models.incident import Incident
from app.db.models.incident_vote import IncidentVote
from app.services.geo import BoundingBox
from app.utils.clock import utcnow

# listing 에서 필터 가능한 컬럼만 허용 (값은 항상 bind parameter)
FILTERABLE_FIELDS = {
    "status": Incident.status,
    "type": Incident.type,
}


def create_incident(
    db: Session,
    *,
    reporter_id: str,
    lat: float,
    lng: float,
    incident_type: str,
    severity: str,
    title: str,
    description: str | None = None,
    address: str | None = None,
    reported_at: datetime | None = None,
    status: str = "active",
) -> Incident:
    """Adds the row and flushes; the caller owns the commit."""
    row = Incident(
        reporter_id=reporter_id,
        latitude=lat,
        longitude=lng,
        type=incident_type,
        severity=severity,
        title=title,
        description=description,
        address=address,
        status=status,
        upvotes=0,
        downvotes=0,
        verified=False,
        reported_at=reported_at or utcnow(),
    )
    db.add(row)
    db.flush()
    return row


def get_incident(db: Session, incident_id: int, *, for_update: bool = False) -> Incident | None:
    stmt = select(Incident).where(Incident.id == incident_id)
    if for_update:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalar_one_or_none()


def get_vote(db: Session, incident_id: int, voter_id: str) -> IncidentVote | None:
    stmt = select(IncidentVote).where(
        IncidentVote.incident_id == incident_id,
        IncidentVote.voter_id == voter_id,
    )
    return db.execute(stmt).scalar_one_or_none()


def find_in_box(
    db: Session,
    box: BoundingBox,
    *,
    statuses: list[str] | None = None,
    reported_since: datetime | None = None,
) -> list[Incident]:
    lng_clause = or_(*[Incident.longitude.between(lo, hi) for lo, hi in box.lng_ranges()])
    conditions = [Incident.latitude.between(box.min_lat, box.max_lat), lng_clause]
    if statuses:
        conditions.append(Incident.status.in_(statuses))
    if reported_since is not None:
        conditions.append(Incident.reported_at > reported_since)

    stmt = select(Incident).where(and_(*conditions))
    return list(db.execute(stmt).scalars().all())


def list_incidents(
    db: Session,
    *,
    filters: dict[str, str] | None = None,
    days: int = 7,
    limit: int = 500,
) -> list[Incident]:
    stmt = select(Incident).where(Incident.reported_at > utcnow() - timedelta(days=days))
    for name, value in (filters or {}).items():
        column = FILTERABLE_FIELDS.get(name)
        if column is None:
            raise InvalidInputError(f"Unsupported filter: {name}")
        stmt = stmt.where(column == value)
    stmt = stmt.order_by(Incident.reported_at.desc(), Incident.id.desc()).limit(limit)
    return list(db.execute(stmt).scalars().all())

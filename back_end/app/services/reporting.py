# app/services/reporting.py
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import InvalidInputError, StoreError
from app.crud.incident import create_incident
from app.db.models.incident import Incident
from app.services.geo import validate_coordinates
from app.services.pattern_store import PatternStore
from app.services.weights import INCIDENT_STATUSES, INCIDENT_TYPES, SEVERITY_WEIGHTS
from app.utils.clock import local_slot, to_naive_utc, utcnow

logger = logging.getLogger(__name__)


def report_incident(
    db: Session,
    *,
    reporter_id: str,
    lat: float,
    lng: float,
    incident_type: str,
    title: str,
    severity: str | None = None,
    description: str | None = None,
    address: str | None = None,
    reported_at: datetime | None = None,
    status: str = "active",
    patterns: PatternStore | None = None,
) -> Incident:
    """
    Store a new incident and learn it into the pattern bucket of its
    cell / hour / day, in one transaction.
    """
    lat, lng = validate_coordinates(lat, lng)
    if not reporter_id:
        raise InvalidInputError("Reporter identity required")
    if not title or not title.strip():
        raise InvalidInputError("Title is required")
    if incident_type not in INCIDENT_TYPES:
        raise InvalidInputError(f"Invalid incident type: {incident_type}")
    severity = severity or "medium"
    if severity not in SEVERITY_WEIGHTS:
        raise InvalidInputError(f"Invalid severity: {severity}")
    if status not in INCIDENT_STATUSES:
        raise InvalidInputError(f"Invalid status: {status}")

    when = to_naive_utc(reported_at) if reported_at else utcnow()
    hour, day = local_slot(when)
    patterns = patterns or PatternStore(db)

    try:
        incident = create_incident(
            db,
            reporter_id=reporter_id,
            lat=lat,
            lng=lng,
            incident_type=incident_type,
            severity=severity,
            title=title.strip(),
            description=description,
            address=address,
            reported_at=when,
            status=status,
        )
        patterns.record(lat, lng, incident_type, severity, hour, day, commit=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("report failed reporter=%s type=%s", reporter_id, incident_type)
        raise StoreError("Failed to report incident") from e

    db.refresh(incident)
    logger.info(
        "incident %s reported type=%s severity=%s at (%.5f, %.5f)",
        incident.id, incident_type, severity, lat, lng,
    )
    return incident

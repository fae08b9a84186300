# 데모용 샘플 제보. 일반 제보 경로를 그대로 타므로 pattern bucket 도 같이 쌓임
# 사용: python -m app.loader.seed_incidents
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.logging import setup_logging
from app.db.models.incident import Incident
from app.services.reporting import report_incident
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

SEED_REPORTER = "seed"


@dataclass
class SampleIncident:
    type: str
    severity: str
    title: str
    description: str
    latitude: float
    longitude: float
    status: str = "active"
    hours_ago: float = 0.0


# New York 주변 (40.7128, -74.0060)
SAMPLE_INCIDENTS: list[SampleIncident] = [
    SampleIncident("theft", "medium", "Bike stolen from rack",
                   "Mountain bike was taken from outside the coffee shop", 40.7138, -74.0070, hours_ago=2),
    SampleIncident("suspicious", "low", "Suspicious person near park",
                   "Individual seen looking into parked cars", 40.7118, -74.0050, hours_ago=5),
    SampleIncident("harassment", "high", "Verbal harassment incident",
                   "Person was verbally harassed near subway entrance", 40.7145, -74.0080, hours_ago=20),
    SampleIncident("assault", "critical", "Physical altercation reported",
                   "Two individuals involved in a physical fight", 40.7108, -74.0040,
                   status="investigating", hours_ago=30),
    SampleIncident("vandalism", "low", "Graffiti on building",
                   "Fresh graffiti spray painted on storefront", 40.7155, -74.0090, hours_ago=72),
    SampleIncident("robbery", "critical", "Phone snatched on street",
                   "Phone was grabbed from hand while walking", 40.7125, -74.0055, hours_ago=1),
    SampleIncident("carbreak", "medium", "Car window smashed",
                   "Passenger window broken, bag taken from seat", 40.7160, -74.0030, hours_ago=120),
    SampleIncident("accident", "high", "Cyclist hit at crossing",
                   "Cyclist struck by a turning car", 40.7100, -74.0075, hours_ago=240),
]


def seed_incidents(db: Session, samples: list[SampleIncident] | None = None) -> list[Incident]:
    now = utcnow()
    created: list[Incident] = []
    for s in samples if samples is not None else SAMPLE_INCIDENTS:
        created.append(report_incident(
            db,
            reporter_id=SEED_REPORTER,
            lat=s.latitude,
            lng=s.longitude,
            incident_type=s.type,
            severity=s.severity,
            title=s.title,
            description=s.description,
            reported_at=now - timedelta(hours=s.hours_ago),
            status=s.status,
        ))
    logger.info("seeded %d incidents", len(created))
    return created


if __name__ == "__main__":
    from app.db.base import Base
    from app.db.session import SessionLocal, engine
    import app.db.models  # noqa: F401

    setup_logging(settings.LOG_LEVEL)
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        seed_incidents(session)

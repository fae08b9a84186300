# app/services/proximity.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import InvalidInputError, StoreError
from app.crud.incident import find_in_box
from app.db.models.incident import Incident
from app.services.geo import bounding_box, haversine_m, validate_coordinates, validate_radius
from app.services.weights import INCIDENT_STATUSES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NearbyHit:
    incident: Incident
    distance_m: float


class ProximityIndex:
    """
    Radius search over incidents.

    1) bounding-box range query in the store (cheap, over-inclusive)
    2) exact haversine distance per candidate, drop anything past the radius
    3) ascending by distance
    """
    def __init__(self, db: Session):
        self.db = db

    def query(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        *,
        statuses: list[str] | None = None,
        reported_since: datetime | None = None,
    ) -> list[NearbyHit]:
        lat, lng = validate_coordinates(lat, lng)
        radius_m = validate_radius(radius_m)
        for status in statuses or ():
            if status not in INCIDENT_STATUSES:
                raise InvalidInputError(f"Invalid status: {status}")

        candidates = self.candidates(lat, lng, radius_m, statuses=statuses, reported_since=reported_since)

        hits = []
        for incident in candidates:
            distance = haversine_m(lat, lng, incident.latitude, incident.longitude)
            if distance <= radius_m:
                hits.append(NearbyHit(incident=incident, distance_m=distance))
        hits.sort(key=lambda h: (h.distance_m, h.incident.id))

        logger.debug(
            "proximity (%.5f, %.5f) r=%.0fm: %d candidates, %d within radius",
            lat, lng, radius_m, len(candidates), len(hits),
        )
        return hits

    def candidates(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        *,
        statuses: list[str] | None = None,
        reported_since: datetime | None = None,
    ) -> list[Incident]:
        """Bounding-box pre-filter only; may include corners outside the circle."""
        box = bounding_box(lat, lng, radius_m)
        try:
            return find_in_box(self.db, box, statuses=statuses, reported_since=reported_since)
        except SQLAlchemyError as e:
            logger.exception("bounding-box query failed")
            raise StoreError("Failed to query nearby incidents") from e

# app/services/pattern_store.py
"""
Historical pattern store: per grid cell x hour-of-day x day-of-week running
incident count and running mean severity weight.

Buckets are created on the first incident in their slot and only ever bumped
afterwards. The bump is a single UPDATE with column arithmetic, so two reports
landing in the same bucket cannot lose an update.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import InvalidInputError, StoreError
from app.db.models.historical_pattern import HistoricalIncidentPattern as Pattern
from app.services.geo import METERS_PER_DEGREE_LAT, bounding_box, validate_coordinates
from app.services.weights import DEFAULT_WEIGHTS, ScoringWeights
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

CELL_SIZE_M = 500
MATCH_RADIUS_M = 500


@dataclass(frozen=True)
class PatternSummary:
    mean_count: float
    mean_severity: float
    risk_factor: float


def cell_for(lat: float, lng: float, cell_size_m: float = CELL_SIZE_M) -> tuple[int, int]:
    """Grid cell (row, col); rows are fixed-height, columns widen toward the equator."""
    lat_step = cell_size_m / METERS_PER_DEGREE_LAT
    row = math.floor(lat / lat_step)
    col = math.floor(lng / _lng_step(row, lat_step, cell_size_m))
    return row, col


def cell_center(row: int, col: int, cell_size_m: float = CELL_SIZE_M) -> tuple[float, float]:
    lat_step = cell_size_m / METERS_PER_DEGREE_LAT
    lng_step = _lng_step(row, lat_step, cell_size_m)
    lat = max(-90.0, min(90.0, (row + 0.5) * lat_step))
    lng = max(-180.0, min(180.0, (col + 0.5) * lng_step))
    return lat, lng


def _lng_step(row: int, lat_step: float, cell_size_m: float) -> float:
    center_lat = max(-89.9, min(89.9, (row + 0.5) * lat_step))
    return cell_size_m / (METERS_PER_DEGREE_LAT * math.cos(math.radians(center_lat)))


def _validate_slot(hour: int | None, day: int | None) -> None:
    if hour is not None and not 0 <= hour <= 23:
        raise InvalidInputError(f"hour_of_day out of range: {hour}")
    if day is not None and not 0 <= day <= 6:
        raise InvalidInputError(f"day_of_week out of range: {day}")


def _slot_eq(column, value):
    return column.is_(None) if value is None else column == value


class PatternStore:
    def __init__(
        self,
        db: Session,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
        cell_size_m: float = CELL_SIZE_M,
        match_radius_m: float = MATCH_RADIUS_M,
    ):
        self.db = db
        self.weights = weights
        self.cell_size_m = cell_size_m
        self.match_radius_m = match_radius_m

    def lookup(self, lat: float, lng: float, hour: int, day: int) -> PatternSummary | None:
        """
        Average over every bucket whose centre falls in the box around (lat, lng)
        and whose hour/day equal the query or are the NULL wildcard.
        """
        lat, lng = validate_coordinates(lat, lng)
        _validate_slot(hour, day)

        box = bounding_box(lat, lng, self.match_radius_m)
        lng_clause = or_(*[Pattern.longitude.between(lo, hi) for lo, hi in box.lng_ranges()])
        stmt = select(
            func.avg(Pattern.incident_count),
            func.avg(Pattern.avg_severity),
        ).where(
            and_(
                Pattern.latitude.between(box.min_lat, box.max_lat),
                lng_clause,
                or_(Pattern.hour_of_day == hour, Pattern.hour_of_day.is_(None)),
                or_(Pattern.day_of_week == day, Pattern.day_of_week.is_(None)),
            )
        )
        try:
            avg_count, avg_severity = self.db.execute(stmt).one()
        except SQLAlchemyError as e:
            logger.exception("pattern lookup failed")
            raise StoreError("Failed to read historical patterns") from e

        if not avg_count or avg_count <= 0:
            return None

        mean_count = float(avg_count)
        mean_severity = float(avg_severity or 0.0)
        return PatternSummary(
            mean_count=mean_count,
            mean_severity=mean_severity,
            risk_factor=min(1.0, mean_count * mean_severity / 10),
        )

    def record(
        self,
        lat: float,
        lng: float,
        incident_type: str,
        severity: str,
        hour: int | None,
        day: int | None,
        *,
        commit: bool = True,
    ) -> None:
        """
        Upsert the (cell, hour, day) bucket with one more incident.
        With commit=False the caller's transaction carries the write.
        """
        lat, lng = validate_coordinates(lat, lng)
        _validate_slot(hour, day)
        row, col = cell_for(lat, lng, self.cell_size_m)
        weight = self.weights.severity_weight(severity)

        try:
            if not self._bump(row, col, hour, day, weight):
                try:
                    with self.db.begin_nested():
                        center_lat, center_lng = cell_center(row, col, self.cell_size_m)
                        self.db.add(Pattern(
                            cell_row=row,
                            cell_col=col,
                            latitude=center_lat,
                            longitude=center_lng,
                            hour_of_day=hour,
                            day_of_week=day,
                            incident_count=1,
                            avg_severity=weight,
                        ))
                    logger.info(
                        "pattern bucket created cell=(%d,%d) hour=%s day=%s type=%s",
                        row, col, hour, day, incident_type,
                    )
                except IntegrityError:
                    # 동시에 같은 bucket 이 만들어짐 -> 그 row 를 갱신
                    self._bump(row, col, hour, day, weight)
            if commit:
                self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("pattern record failed cell=(%d,%d)", row, col)
            raise StoreError("Failed to record historical pattern") from e

    def _bump(self, row: int, col: int, hour: int | None, day: int | None, weight: float) -> bool:
        # mean first: every right-hand side must see the pre-update count
        stmt = (
            update(Pattern)
            .where(
                Pattern.cell_row == row,
                Pattern.cell_col == col,
                _slot_eq(Pattern.hour_of_day, hour),
                _slot_eq(Pattern.day_of_week, day),
            )
            .ordered_values(
                (Pattern.avg_severity,
                 (Pattern.avg_severity * Pattern.incident_count + weight) / (Pattern.incident_count + 1)),
                (Pattern.incident_count, Pattern.incident_count + 1),
                (Pattern.last_updated, utcnow()),
            )
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount > 0

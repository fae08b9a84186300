from datetime import datetime

from sqlalchemy import DateTime, Float, Index, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.utils.clock import utcnow

# NULL hour/day 는 "any" 이므로 unique 비교용으로 -1 로 치환
WILDCARD_SLOT = -1


class HistoricalIncidentPattern(Base):
    """
    Running aggregate for one grid cell x hour-of-day x day-of-week.
    hour_of_day / day_of_week = NULL means "any hour" / "any day".
    """
    __tablename__ = "historical_incident_patterns"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    cell_row: Mapped[int] = mapped_column(Integer, nullable=False)
    cell_col: Mapped[int] = mapped_column(Integer, nullable=False)
    # cell centre, used by the bounding-box lookup
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)

    hour_of_day: Mapped[int | None] = mapped_column(Integer)
    day_of_week: Mapped[int | None] = mapped_column(Integer)

    incident_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_severity: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_patterns_lat_lng", "latitude", "longitude"),
    )


# a plain UNIQUE treats NULLs as distinct, which would allow twin wildcard buckets
Index(
    "uq_patterns_cell_slot",
    HistoricalIncidentPattern.cell_row,
    HistoricalIncidentPattern.cell_col,
    func.coalesce(HistoricalIncidentPattern.hour_of_day, WILDCARD_SLOT),
    func.coalesce(HistoricalIncidentPattern.day_of_week, WILDCARD_SLOT),
    unique=True,
)

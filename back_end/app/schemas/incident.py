from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, computed_field

from app.services.weights import INCIDENT_TYPES

# 제보 입력. 좌표 범위 / type / severity 검증은 서비스에서 (400)
class IncidentCreate(BaseModel):
    latitude: float
    longitude: float
    type: str
    severity: Optional[str] = None  # 없으면 medium
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    address: Optional[str] = Field(default=None, max_length=255)


class VoteRequest(BaseModel):
    # 잘못된 값은 서비스에서 400 으로 거름
    voteType: str


class StatusUpdate(BaseModel):
    status: str


class IncidentOut(BaseModel):
    id: int
    reporter_id: str
    type: str
    severity: str
    latitude: float
    longitude: float
    title: str
    description: Optional[str] = None
    address: Optional[str] = None
    status: str
    upvotes: int
    downvotes: int
    verified: bool
    reported_at: datetime
    resolved_at: Optional[datetime] = None

    @computed_field
    @property
    def type_label(self) -> str:
        entry = INCIDENT_TYPES.get(self.type)
        return str(entry["label"]) if entry else self.type

    class Config:
        from_attributes = True


class NearbyIncidentOut(IncidentOut):
    distance: float


class IncidentDetailOut(IncidentOut):
    user_vote: Optional[Literal["upvote", "downvote"]] = None


class IncidentTypeOut(BaseModel):
    label: str
    weight: float


class IncidentCatalogOut(BaseModel):
    types: dict[str, IncidentTypeOut]
    severities: dict[str, float]


class AlertOut(BaseModel):
    type: Literal["active_incidents", "historical_pattern", "time_warning"]
    severity: Literal["high", "warning", "info"]
    message: str
    incidents: Optional[list[NearbyIncidentOut]] = None


class ScoreStats(BaseModel):
    totalIncidents30Days: int
    activeIncidents: int
    currentHour: int
    isNightTime: bool


class SafetyScoreOut(BaseModel):
    score: int
    riskLevel: str
    riskLabel: str
    riskColor: str
    alerts: list[AlertOut]
    stats: ScoreStats


class HeatmapPoint(BaseModel):
    lat: float
    lng: float
    intensity: float

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import IncidentNotFoundError, InvalidInputError, StoreError
from app.crud.incident import get_incident, get_vote, list_incidents
from app.db.session import get_db
from app.schemas.incident import (
    AlertOut, HeatmapPoint, IncidentCatalogOut, IncidentCreate, IncidentDetailOut,
    IncidentOut, NearbyIncidentOut, SafetyScoreOut, ScoreStats, StatusUpdate, VoteRequest,
)
from app.services.lifecycle import IncidentLifecycle
from app.services.pattern_store import PatternStore
from app.services.proximity import NearbyHit, ProximityIndex
from app.services.reporting import report_incident
from app.services.risk_scorer import RiskScorer
from app.services.weights import INCIDENT_STATUSES, INCIDENT_TYPES, SEVERITY_WEIGHTS
from app.utils.clock import utcnow

router = APIRouter()
logger = logging.getLogger(__name__)

# nearby 기본 조회 상태
NEARBY_DEFAULT_STATUSES = ["active", "verified"]


# 인증은 앞단에서 끝나고 식별자만 헤더로 들어옴
def current_user(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing caller identity")
    return x_user_id


def get_scorer(db: Session = Depends(get_db)) -> RiskScorer:
    return RiskScorer(ProximityIndex(db), PatternStore(db))


def _nearby_out(hit: NearbyHit) -> NearbyIncidentOut:
    data = IncidentOut.model_validate(hit.incident).model_dump(exclude={"type_label"})
    return NearbyIncidentOut(**data, distance=hit.distance_m)


@router.get("/types", response_model=IncidentCatalogOut)
def incident_types():
    return IncidentCatalogOut(
        types={k: {"label": v["label"], "weight": v["weight"]} for k, v in INCIDENT_TYPES.items()},
        severities=dict(SEVERITY_WEIGHTS),
    )


@router.get("/nearby", response_model=list[NearbyIncidentOut])
def nearby(
    latitude: float,
    longitude: float,
    radius: float = Query(default=settings.NEARBY_DEFAULT_RADIUS_M, ge=0),
    status: list[str] | None = Query(default=None),
    days: int = Query(default=settings.NEARBY_DEFAULT_DAYS, ge=1, le=365),
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user),
):
    hits = ProximityIndex(db).query(
        latitude, longitude, radius,
        statuses=status or NEARBY_DEFAULT_STATUSES,
        reported_since=utcnow() - timedelta(days=days),
    )
    return [_nearby_out(h) for h in hits]


@router.get("/safety-score", response_model=SafetyScoreOut)
def safety_score(
    latitude: float,
    longitude: float,
    scorer: RiskScorer = Depends(get_scorer),
    user_id: str = Depends(current_user),
):
    result = scorer.score(latitude, longitude)
    alerts = [
        AlertOut(
            type=a["type"],
            severity=a["severity"],
            message=a["message"],
            incidents=[_nearby_out(h) for h in a["incidents"]] if "incidents" in a else None,
        )
        for a in result.alerts
    ]
    return SafetyScoreOut(
        score=result.score,
        riskLevel=result.risk_level,
        riskLabel=result.risk_label,
        riskColor=result.risk_color,
        alerts=alerts,
        stats=ScoreStats(**result.stats),
    )


@router.get("/heatmap/data", response_model=list[HeatmapPoint])
def heatmap_data(
    latitude: float,
    longitude: float,
    radius: float = Query(default=settings.HEATMAP_DEFAULT_RADIUS_M, ge=0),
    scorer: RiskScorer = Depends(get_scorer),
    user_id: str = Depends(current_user),
):
    return scorer.heatmap(latitude, longitude, radius)


@router.get("", response_model=list[IncidentOut])
def list_recent(
    status: str | None = None,
    type: str | None = None,
    days: int = Query(default=7, ge=1, le=365),
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user),
):
    filters: dict[str, str] = {}
    if status is not None:
        if status not in INCIDENT_STATUSES:
            raise InvalidInputError(f"Invalid status: {status}")
        filters["status"] = status
    if type is not None:
        if type not in INCIDENT_TYPES:
            raise InvalidInputError(f"Invalid incident type: {type}")
        filters["type"] = type
    try:
        return list_incidents(db, filters=filters, days=days, limit=settings.LIST_MAX_RESULTS)
    except SQLAlchemyError as e:
        logger.exception("listing failed filters=%s days=%s", filters, days)
        raise StoreError("Failed to list incidents") from e


@router.post("", response_model=IncidentOut, status_code=201)
def report(
    payload: IncidentCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user),
):
    return report_incident(
        db,
        reporter_id=user_id,
        lat=payload.latitude,
        lng=payload.longitude,
        incident_type=payload.type,
        severity=payload.severity,
        title=payload.title,
        description=payload.description,
        address=payload.address,
    )


@router.get("/{incident_id}", response_model=IncidentDetailOut)
def incident_detail(
    incident_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user),
):
    incident = get_incident(db, incident_id)
    if incident is None:
        raise IncidentNotFoundError(incident_id)
    vote = get_vote(db, incident_id, user_id)
    data = IncidentOut.model_validate(incident).model_dump(exclude={"type_label"})
    return IncidentDetailOut(**data, user_vote=vote.vote_type if vote else None)


@router.post("/{incident_id}/vote", response_model=IncidentOut)
def vote(
    incident_id: int,
    payload: VoteRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user),
):
    return IncidentLifecycle(db).vote(incident_id, user_id, payload.voteType)


@router.put("/{incident_id}/status", response_model=IncidentOut)
def update_status(
    incident_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user),
):
    return IncidentLifecycle(db).set_status(incident_id, user_id, payload.status)

# app/services/risk_scorer.py
"""
Composite 0-100 safety score for a point at a moment in time.

score starts at 100 and loses
  - a continuous impact per nearby incident (type x severity x distance x age)
  - a flat penalty per active incident of the last 24 hours
  - a historical-pattern penalty for this cell/hour/day
  - a time-of-day penalty (late night 0-4h, night 22-23h / 5h)
then is clamped to [0, 100] and rounded half up.
The only store access is the two reads; nothing is written.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from app.db.models.incident import Incident
from app.services.geo import validate_coordinates, validate_radius
from app.services.pattern_store import PatternStore, PatternSummary
from app.services.proximity import NearbyHit, ProximityIndex
from app.services.weights import DEFAULT_WEIGHTS, ScoringWeights
from app.utils.clock import local_slot, to_naive_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass
class SafetyScore:
    score: int
    risk_level: str
    risk_label: str
    risk_color: str
    alerts: list[dict] = field(default_factory=list)
    stats: dict = field(default_factory=dict)


def is_late_night(hour: int) -> bool:
    return 0 <= hour <= 4


def is_night(hour: int) -> bool:
    # overlaps late night on purpose; display only
    return hour >= 22 or hour <= 5


def time_of_day_penalty(hour: int, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    if is_late_night(hour):
        return weights.late_night_penalty
    if is_night(hour):
        return weights.night_penalty
    return 0.0


def age_days(reported_at: datetime, now_utc: datetime) -> float:
    return max(0.0, (now_utc - reported_at).total_seconds() / 86400)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class RiskScorer:
    def __init__(
        self,
        proximity: ProximityIndex,
        patterns: PatternStore,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
    ):
        self.proximity = proximity
        self.patterns = patterns
        self.weights = weights

    def incident_impact(self, incident: Incident, distance_m: float, now_utc: datetime) -> float:
        w = self.weights
        distance_factor = max(0.0, 1 - distance_m / w.scoring_radius_m)
        return (
            w.type_weight(incident.type)
            * w.severity_weight(incident.severity)
            * distance_factor
            * w.age_factor(age_days(incident.reported_at, now_utc))
            * w.impact_scale
        )

    def is_active(self, incident: Incident, now_utc: datetime) -> bool:
        hours = (now_utc - incident.reported_at).total_seconds() / 3600
        return incident.status == "active" and hours <= self.weights.active_window_hours

    def score(self, lat: float, lng: float, now: datetime | None = None) -> SafetyScore:
        w = self.weights
        lat, lng = validate_coordinates(lat, lng)
        now = now or datetime.now().astimezone()
        now_utc = to_naive_utc(now)
        hour, day = local_slot(now)

        # 1) 최근 30일, 1km 이내
        hits: list[NearbyHit] = self.proximity.query(
            lat, lng, w.scoring_radius_m,
            reported_since=now_utc - timedelta(days=w.lookback_days),
        )

        # 2) + 3) 사건별 연속 감점
        score = 100.0
        incident_total = 0.0
        for hit in hits:
            impact = self.incident_impact(hit.incident, hit.distance_m, now_utc)
            incident_total += impact
        score -= incident_total

        # 4) 24시간 이내 active 사건 고정 감점
        active = [h for h in hits if self.is_active(h.incident, now_utc)]
        score -= w.active_penalty * len(active)

        # 5) 과거 패턴
        pattern: PatternSummary | None = self.patterns.lookup(lat, lng, hour, day)
        if pattern is not None:
            score -= pattern.risk_factor * w.pattern_penalty

        # 6) 시간대
        score -= time_of_day_penalty(hour, w)

        # 7) + 8)
        final = max(0, min(100, round_half_up(score)))
        tier = w.tier_for(final)

        logger.debug(
            "score (%.5f, %.5f) h=%d d=%d: incidents=%d impact=%.2f active=%d pattern=%s -> %d",
            lat, lng, hour, day, len(hits), incident_total, len(active),
            None if pattern is None else round(pattern.risk_factor, 3), final,
        )

        return SafetyScore(
            score=final,
            risk_level=tier.level,
            risk_label=tier.label,
            risk_color=tier.color,
            alerts=self._alerts(active, pattern, hour, final),
            stats={
                "totalIncidents30Days": len(hits),
                "activeIncidents": len(active),
                "currentHour": hour,
                "isNightTime": is_night(hour),
            },
        )

    def _alerts(
        self,
        active: list[NearbyHit],
        pattern: PatternSummary | None,
        hour: int,
        final: int,
    ) -> list[dict]:
        w = self.weights
        alerts: list[dict] = []

        if active:
            n = len(active)
            alerts.append({
                "type": "active_incidents",
                "severity": "high",
                "message": f"{n} active incident{'s' if n > 1 else ''} reported nearby in the last 24 hours",
                "incidents": active[: w.max_listed_active],
            })

        if pattern is not None and pattern.risk_factor > w.pattern_alert_threshold:
            alerts.append({
                "type": "historical_pattern",
                "severity": "warning",
                "message": "This area historically has elevated incident rates at this time",
            })

        if is_late_night(hour) and final < w.time_warning_below:
            alerts.append({
                "type": "time_warning",
                "severity": "info",
                "message": "Late night hours - exercise extra caution",
            })

        return alerts

    def heatmap(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        now: datetime | None = None,
    ) -> list[dict]:
        """
        Box-filtered points for the last 30 days, intensity = severity x age.
        No exact-radius trim: the map renders the whole box.
        """
        w = self.weights
        lat, lng = validate_coordinates(lat, lng)
        radius_m = validate_radius(radius_m)
        now_utc = to_naive_utc(now) if now else utcnow()

        rows = self.proximity.candidates(
            lat, lng, radius_m,
            reported_since=now_utc - timedelta(days=w.lookback_days),
        )
        return [
            {
                "lat": r.latitude,
                "lng": r.longitude,
                "intensity": w.severity_weight(r.severity) * w.age_factor(age_days(r.reported_at, now_utc)),
            }
            for r in rows
        ]

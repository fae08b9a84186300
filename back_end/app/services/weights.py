# app/services/weights.py
"""
Fixed catalogs and tunables for scoring and the vote lifecycle.

Both configs are frozen and their tables are read-only mappings, so a scorer
built with `DEFAULT_WEIGHTS` cannot be altered at runtime; tests and callers
that want different weights build their own instance.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

INCIDENT_TYPES: Mapping[str, Mapping[str, object]] = MappingProxyType({
    "theft": MappingProxyType({"label": "Theft", "weight": 0.7}),
    "assault": MappingProxyType({"label": "Assault", "weight": 1.0}),
    "harassment": MappingProxyType({"label": "Harassment", "weight": 0.8}),
    "vandalism": MappingProxyType({"label": "Vandalism", "weight": 0.4}),
    "suspicious": MappingProxyType({"label": "Suspicious Activity", "weight": 0.5}),
    "robbery": MappingProxyType({"label": "Robbery", "weight": 0.9}),
    "carbreak": MappingProxyType({"label": "Car Break-in", "weight": 0.6}),
    "shooting": MappingProxyType({"label": "Shooting", "weight": 1.0}),
    "accident": MappingProxyType({"label": "Accident", "weight": 0.5}),
    "other": MappingProxyType({"label": "Other", "weight": 0.3}),
})

SEVERITY_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "low": 0.3,
    "medium": 0.6,
    "high": 0.9,
    "critical": 1.0,
})

INCIDENT_STATUSES = ("active", "investigating", "verified", "resolved", "dismissed")
# statuses a reporter may set by hand
REPORTER_STATUSES = ("active", "resolved", "dismissed")
VOTE_KINDS = ("upvote", "downvote")

DEFAULT_WEIGHT = 0.5


@dataclass(frozen=True)
class RiskTier:
    min_score: int
    level: str
    label: str
    color: str


# eq=False: the mapping fields are unhashable, so instances hash by identity
@dataclass(frozen=True, eq=False)
class ScoringWeights:
    type_weights: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType({k: float(v["weight"]) for k, v in INCIDENT_TYPES.items()})
    )
    severity_weights: Mapping[str, float] = field(default_factory=lambda: SEVERITY_WEIGHTS)
    default_weight: float = DEFAULT_WEIGHT

    scoring_radius_m: float = 1000.0
    lookback_days: int = 30
    active_window_hours: int = 24
    active_penalty: float = 5.0
    impact_scale: float = 10.0
    pattern_penalty: float = 15.0
    pattern_alert_threshold: float = 0.5

    late_night_penalty: float = 10.0
    night_penalty: float = 5.0
    time_warning_below: int = 70
    max_listed_active: int = 3

    # (max age in days, factor); anything older gets age_floor
    age_steps: tuple[tuple[float, float], ...] = (
        (1, 1.0), (3, 0.8), (7, 0.6), (14, 0.4), (30, 0.2),
    )
    age_floor: float = 0.1

    tiers: tuple[RiskTier, ...] = (
        RiskTier(80, "safe", "Safe Area", "#00e676"),
        RiskTier(60, "moderate", "Moderate Risk", "#ffc400"),
        RiskTier(40, "elevated", "Elevated Risk", "#ff9100"),
        RiskTier(20, "high", "High Risk", "#ff5252"),
        RiskTier(0, "critical", "Critical Risk", "#ff1744"),
    )

    def type_weight(self, incident_type: str) -> float:
        return self.type_weights.get(incident_type, self.default_weight)

    def severity_weight(self, severity: str) -> float:
        return self.severity_weights.get(severity, self.default_weight)

    def age_factor(self, age_days: float) -> float:
        for max_days, factor in self.age_steps:
            if age_days <= max_days:
                return factor
        return self.age_floor

    def tier_for(self, score: int) -> RiskTier:
        for tier in self.tiers:
            if score >= tier.min_score:
                return tier
        return self.tiers[-1]


@dataclass(frozen=True)
class LifecyclePolicy:
    verify_upvotes: int = 3
    dismiss_downvotes: int = 5
    dismiss_ratio: int = 2
    # auto-verification rewrites status only from these; a resolved incident
    # still gets verified=True but stays resolved
    promotable_statuses: frozenset[str] = frozenset({"active", "investigating"})


DEFAULT_WEIGHTS = ScoringWeights()
DEFAULT_POLICY = LifecyclePolicy()

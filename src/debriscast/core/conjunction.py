"""Conjunction events: screened candidates scored for collision risk."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

import numpy as np

from debriscast.config import EngineConfig, ProbabilitySettings, Regime
from debriscast.core.classifier import classify_altitude
from debriscast.core.objects import ObjectType, TrackedObject
from debriscast.core.probability import PcMethod, compute_pc, position_covariance
from debriscast.core.risk import RiskLevel, classify_risk, maneuver_required
from debriscast.core.screening import ScreeningCandidate
from debriscast.utils.constants import DEFAULT_HARD_BODY_RADIUS_M, EARTH_RADIUS_KM

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConjunctionEvent:
    """A predicted close approach between two tracked objects.

    Events are immutable; the next cycle supersedes them with a new set.

    Attributes:
        event_id: Stable identifier derived from the pair and TCA.
        primary_id: Catalog id of the primary (protected) object.
        secondary_id: Catalog id of the secondary object.
        tca: Time of closest approach (UTC).
        miss_distance_km: Predicted miss distance in km.
        relative_velocity_km_s: Relative velocity at TCA in km/s.
        probability: Collision probability in [0, 1].
        risk_level: Display risk level derived from ``probability``.
        altitude_km: Primary altitude at TCA.
        regime: Regime at the TCA altitude.
        maneuver_required: Probability exceeds the action threshold.
        maneuver_executed: An avoidance maneuver has been performed.
        low_confidence: Probability comes from the distance-only placeholder.
    """

    event_id: str
    primary_id: str
    secondary_id: str
    primary_type: ObjectType
    secondary_type: ObjectType
    tca: datetime
    miss_distance_km: float
    relative_velocity_km_s: float
    probability: float
    risk_level: RiskLevel
    altitude_km: float
    regime: Regime
    maneuver_required: bool
    maneuver_executed: bool = False
    low_confidence: bool = False
    pc_method: PcMethod | None = None
    mahalanobis_distance: float | None = None

    def __post_init__(self) -> None:
        if self.primary_id == self.secondary_id:
            raise ValueError(f"Conjunction requires two distinct objects, got {self.primary_id} twice")
        if not self.miss_distance_km >= 0:
            raise ValueError(f"miss_distance_km must be >= 0, got {self.miss_distance_km}")
        if not 0.0 <= self.probability <= 1.0:
            raise ValueError(f"probability must be in [0, 1], got {self.probability}")
        if self.maneuver_executed and not self.maneuver_required:
            raise ValueError("maneuver_executed requires maneuver_required")


def _combined_covariance(
    a: TrackedObject, b: TrackedObject, settings: ProbabilitySettings
) -> np.ndarray | None:
    default = settings.default_position_sigma_km
    covs = []
    for obj in (a, b):
        sigma = obj.position_sigma_km
        if sigma is None and default is not None:
            sigma = (default, default, default)
        cov = position_covariance(sigma, settings.covariance_model)
        if cov is None:
            return None
        covs.append(cov)
    combined = covs[0] + covs[1]
    if not np.any(combined):
        return None
    return combined


def _hard_body_radius_m(obj: TrackedObject) -> float:
    if obj.hard_body_radius_m is None:
        return DEFAULT_HARD_BODY_RADIUS_M
    return obj.hard_body_radius_m


def event_id(primary_id: str, secondary_id: str, tca: datetime) -> str:
    return f"{primary_id}-{secondary_id}-{tca.strftime('%Y%m%dT%H%M%S.%f')}"


def assess_candidate(candidate: ScreeningCandidate, config: EngineConfig) -> ConjunctionEvent:
    """Score one screened candidate and build its ConjunctionEvent."""
    settings = config.probability
    primary, secondary = candidate.primary, candidate.secondary
    rel_pos = candidate.secondary_state[0:3] - candidate.primary_state[0:3]
    rel_vel = candidate.secondary_state[3:6] - candidate.primary_state[3:6]

    result = compute_pc(
        rel_pos,
        rel_vel,
        _combined_covariance(primary, secondary, settings),
        _hard_body_radius_m(primary) + _hard_body_radius_m(secondary),
        method=settings.pc_method,
        mc_samples=settings.mc_samples,
        mc_seed=settings.mc_seed,
    )
    probability = min(max(result.probability, 0.0), 1.0)
    altitude = float(np.linalg.norm(candidate.primary_state[0:3])) - EARTH_RADIUS_KM
    mahalanobis = result.mahalanobis_distance
    if mahalanobis is not None and not math.isfinite(mahalanobis):
        mahalanobis = None

    return ConjunctionEvent(
        event_id=event_id(primary.object_id, secondary.object_id, candidate.tca),
        primary_id=primary.object_id,
        secondary_id=secondary.object_id,
        primary_type=primary.object_type,
        secondary_type=secondary.object_type,
        tca=candidate.tca,
        miss_distance_km=max(candidate.miss_distance_km, 0.0),
        relative_velocity_km_s=candidate.relative_velocity_km_s,
        probability=probability,
        risk_level=classify_risk(probability, config.thresholds),
        altitude_km=altitude,
        regime=classify_altitude(altitude, config.bands),
        maneuver_required=maneuver_required(probability, settings.maneuver_threshold),
        low_confidence=result.low_confidence,
        pc_method=result.method,
        mahalanobis_distance=mahalanobis,
    )


def assess_candidates(candidates: list[ScreeningCandidate], config: EngineConfig) -> list[ConjunctionEvent]:
    """Score every candidate; order is preserved."""
    events = [assess_candidate(c, config) for c in candidates]
    low_conf = sum(1 for e in events if e.low_confidence)
    if low_conf:
        logger.info("%d of %d events scored without covariance (low confidence)", low_conf, len(events))
    return events

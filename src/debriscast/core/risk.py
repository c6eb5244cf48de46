"""Discrete risk levels for conjunction events."""
from __future__ import annotations

import logging
from enum import Enum

from debriscast.config import RiskThresholds

logger = logging.getLogger(__name__)


class RiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RANK[self]


_RANK = {RiskLevel.LOW: 0, RiskLevel.MODERATE: 1, RiskLevel.HIGH: 2, RiskLevel.CRITICAL: 3}


def classify_risk(probability: float, thresholds: RiskThresholds) -> RiskLevel:
    """Map a collision probability onto a display risk level.

    Cutoffs are inclusive lower bounds, so a higher probability never yields
    a lower level.
    """
    if probability >= thresholds.critical:
        return RiskLevel.CRITICAL
    elif probability >= thresholds.high:
        return RiskLevel.HIGH
    elif probability >= thresholds.moderate:
        return RiskLevel.MODERATE
    else:
        return RiskLevel.LOW


def maneuver_required(probability: float, action_threshold: float) -> bool:
    """Whether an avoidance maneuver should be planned.

    Independent of the display level so operators can tune the two separately.
    """
    return probability >= action_threshold


def recommendation(level: RiskLevel, maneuver: bool) -> str:
    """Human-readable action for operators."""
    if level == RiskLevel.CRITICAL:
        if maneuver:
            return "Plan collision avoidance maneuver and coordinate with the other operator"
        return "Critical event - refine tracking before committing to a maneuver"
    elif level == RiskLevel.HIGH:
        if maneuver:
            return "Prepare collision avoidance maneuver and continue monitoring"
        return "High risk event - request additional tracking"
    elif level == RiskLevel.MODERATE:
        return "Monitor conjunction and update assessment as tracking improves"
    else:
        return "Routine monitoring sufficient"

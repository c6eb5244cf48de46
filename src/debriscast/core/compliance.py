"""Orbital lifetime estimation and 25-year deorbit compliance.

Lifetimes come from a drag-driven decay profile over the Vallado
(Table 8-4) exponential atmosphere. The radial decay rate at altitude h is

    dr/dt = rho(h) * B * sqrt(mu * r)

with ballistic coefficient B = Cd * A / m. Integrating dh / (dr/dt) from the
re-entry altitude upward gives the time to decay from any perigee altitude.
Because the rate is linear in B, the profile is built once for B = 1 and
scaled per object.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache

import numpy as np
from numpy.typing import NDArray

from debriscast.config import ComplianceSettings
from debriscast.core.objects import INDEFINITE_LIFETIME, TrackedObject
from debriscast.utils.constants import (
    DRAG_COEFFICIENT,
    EARTH_MU_KM3_S2,
    EARTH_RADIUS_KM,
    SECONDS_PER_YEAR,
)

logger = logging.getLogger(__name__)

# Vallado Table 8-4: base altitude (km), nominal density (kg/m^3), scale height (km)
_H0 = np.array([
    0.0, 25, 30, 40, 50, 60, 70, 80, 90, 100, 110, 120, 130, 140, 150, 180,
    200, 250, 300, 350, 400, 450, 500, 600, 700, 800, 900, 1000,
])
_RHO0 = np.array([
    1.225, 3.899e-2, 1.774e-2, 3.972e-3, 1.057e-3, 3.206e-4, 8.770e-5, 1.905e-5,
    3.396e-6, 5.297e-7, 9.661e-8, 2.438e-8, 8.484e-9, 3.845e-9, 2.070e-9, 5.464e-10,
    2.789e-10, 7.248e-11, 2.418e-11, 9.518e-12, 3.725e-12, 1.585e-12, 6.967e-13,
    1.454e-13, 3.614e-14, 1.170e-14, 5.245e-15, 3.019e-15,
])
_SCALE_H = np.array([
    7.249, 6.349, 6.682, 7.554, 8.382, 7.714, 6.549, 5.799, 5.382, 5.877, 7.263,
    9.473, 12.636, 16.149, 22.523, 29.740, 37.105, 45.546, 53.628, 53.298, 58.515,
    60.828, 63.822, 71.835, 88.667, 124.64, 181.05, 268.00,
])

_PROFILE_STEP_KM = 1.0


def atmospheric_density(h_km: NDArray[np.float64] | float) -> NDArray[np.float64]:
    """Exponential-model atmospheric density in kg/m^3."""
    h = np.maximum(np.asarray(h_km, dtype=np.float64), 0.0)
    idx = np.clip(np.searchsorted(_H0, h, side="right") - 1, 0, len(_H0) - 1)
    return _RHO0[idx] * np.exp((_H0[idx] - h) / _SCALE_H[idx])


@lru_cache(maxsize=8)
def _unit_decay_profile(min_alt_km: float, max_alt_km: float) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Altitude grid and years to decay to ``min_alt_km`` for B = 1 m^2/kg."""
    steps = max(int(math.ceil((max_alt_km - min_alt_km) / _PROFILE_STEP_KM)), 1)
    alts = np.linspace(min_alt_km, max_alt_km, steps + 1)
    r_m = (EARTH_RADIUS_KM + alts) * 1000.0
    mu_m = EARTH_MU_KM3_S2 * 1e9
    speed_km_yr = atmospheric_density(alts) * np.sqrt(mu_m * r_m) * SECONDS_PER_YEAR / 1000.0
    inv = 1.0 / np.maximum(speed_km_yr, 1e-300)
    years = np.concatenate([[0.0], np.cumsum(0.5 * (inv[1:] + inv[:-1]) * np.diff(alts))])
    return alts, years


def ballistic_coefficient(obj: TrackedObject, default: float) -> float:
    """Cd * A / m in m^2/kg, from hard-body radius and mass when both are known."""
    if obj.hard_body_radius_m and obj.mass_kg:
        return DRAG_COEFFICIENT * math.pi * obj.hard_body_radius_m**2 / obj.mass_kg
    return default


def estimate_lifetime_years(obj: TrackedObject, settings: ComplianceSettings) -> float | None:
    """Remaining orbital lifetime in years.

    Returns the catalog-supplied value when present; otherwise estimates it
    from perigee altitude. Perigees above ``indefinite_altitude_km`` yield
    ``INDEFINITE_LIFETIME``. Returns None when the object has no usable state.
    """
    if obj.lifetime_years is not None:
        return obj.lifetime_years
    if obj.elements is None or obj.elements.is_degenerate:
        return None

    perigee = obj.elements.perigee_altitude_km
    if perigee >= settings.indefinite_altitude_km:
        return INDEFINITE_LIFETIME
    if perigee <= settings.reentry_altitude_km:
        return 0.0

    alts, years = _unit_decay_profile(settings.reentry_altitude_km, settings.indefinite_altitude_km)
    beta = ballistic_coefficient(obj, settings.default_ballistic_coeff_m2_kg)
    return float(np.interp(perigee, alts, years)) / beta


@dataclass(frozen=True)
class ComplianceResult:
    object_id: str
    lifetime_years: float | None
    post_mission_years: float | None
    compliant: bool | None  # None: indefinite or not evaluable


@dataclass(frozen=True)
class ComplianceSummary:
    """25-year rule counts. Indefinite-lifetime objects are in neither count."""

    compliant: int = 0
    non_compliant: int = 0
    indefinite: int = 0
    unevaluated: int = 0

    @property
    def evaluated(self) -> int:
        return self.compliant + self.non_compliant

    @property
    def rate(self) -> float | None:
        """Compliant fraction, or None (N/A) when nothing was evaluated."""
        if self.evaluated == 0:
            return None
        return self.compliant / self.evaluated


def _subject_to_rule(obj: TrackedObject, settings: ComplianceSettings) -> bool:
    return obj.trackable and not obj.is_active and obj.object_type.value in settings.object_types


def evaluate_object(obj: TrackedObject, settings: ComplianceSettings, epoch: datetime) -> ComplianceResult:
    lifetime = estimate_lifetime_years(obj, settings)
    if lifetime is None or math.isinf(lifetime):
        return ComplianceResult(obj.object_id, lifetime, None, None)

    elapsed = 0.0
    if obj.end_of_mission is not None:
        eom = obj.end_of_mission
        if eom.tzinfo is None:
            eom = eom.replace(tzinfo=epoch.tzinfo)
        elapsed = max((epoch - eom).total_seconds() / SECONDS_PER_YEAR, 0.0)
    post_mission = elapsed + lifetime
    return ComplianceResult(obj.object_id, lifetime, post_mission, post_mission <= settings.threshold_years)


def evaluate_compliance(
    objects: list[TrackedObject],
    settings: ComplianceSettings,
    epoch: datetime,
) -> tuple[ComplianceSummary, list[ComplianceResult]]:
    """Apply the post-mission deorbit rule to defunct objects.

    Only trackable, inactive objects of ``settings.object_types`` are
    evaluated.

    Returns:
        Tuple of (summary counts, per-object results).
    """
    results: list[ComplianceResult] = []
    compliant = non_compliant = indefinite = unevaluated = 0
    for obj in objects:
        if not _subject_to_rule(obj, settings):
            continue
        res = evaluate_object(obj, settings, epoch)
        results.append(res)
        if res.compliant is True:
            compliant += 1
        elif res.compliant is False:
            non_compliant += 1
        elif res.lifetime_years is not None:
            indefinite += 1
        else:
            unevaluated += 1

    summary = ComplianceSummary(compliant, non_compliant, indefinite, unevaluated)
    logger.info("Compliance: %d compliant, %d non-compliant, %d indefinite, %d unevaluated",
                compliant, non_compliant, indefinite, unevaluated)
    return summary, results

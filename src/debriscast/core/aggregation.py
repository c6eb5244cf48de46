"""Population statistics and the Kessler Risk Index.

The index is a bounded 0-``scale_max`` score built from three inputs:

* spatial density of each shell relative to a reference density,
* summed collision probability across current events per tracked object,
* net annual population growth rate.

Each input is normalised by its reference value and squashed with
``x / (1 + x)``, which is increasing and bounded, before the weighted mean is
taken. The index is therefore non-decreasing in every input.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone

from debriscast.config import EngineConfig, KesslerSettings, Regime, RegimeBands
from debriscast.core.classifier import ClassifiedObject
from debriscast.core.compliance import ComplianceSummary
from debriscast.core.conjunction import ConjunctionEvent
from debriscast.core.forecast import RegimePopulation, forecast_population, growth_percent
from debriscast.core.objects import ObjectType, TrackedObject
from debriscast.core.risk import RiskLevel
from debriscast.utils.constants import EARTH_RADIUS_KM

logger = logging.getLogger(__name__)

REGIME_ORDER = (Regime.LEO, Regime.MEO, Regime.GEO, Regime.OTHER)
_SHELL_REGIMES = (Regime.LEO, Regime.MEO, Regime.GEO)


@dataclass(frozen=True)
class KesslerInputs:
    """Raw inputs to the Kessler Risk Index.

    Attributes:
        density_ratio: Mean shell density over the reference density.
        probability_per_object: Sum of event probabilities / tracked objects.
        net_growth_rate: Annual fractional growth (negative means shrinking).
    """

    density_ratio: float = 0.0
    probability_per_object: float = 0.0
    net_growth_rate: float = 0.0


def _squash(x: float) -> float:
    if math.isinf(x):
        return 1.0
    x = max(x, 0.0)
    return x / (1.0 + x)


def kessler_risk_index(inputs: KesslerInputs, settings: KesslerSettings) -> float:
    """Weighted, bounded collision-cascade risk score.

    Returns 0 when all inputs are zero (the floor) and approaches
    ``scale_max`` as any weighted input grows without bound.
    """
    terms = (
        (settings.density_weight, _squash(inputs.density_ratio)),
        (settings.probability_weight,
         _squash(inputs.probability_per_object / settings.reference_probability_per_object)),
        (settings.growth_weight, _squash(inputs.net_growth_rate / settings.reference_growth_rate)),
    )
    total_weight = sum(w for w, _ in terms)
    score = sum(w * s for w, s in terms) / total_weight
    return settings.scale_max * min(max(score, 0.0), 1.0)


def kessler_label(index: float) -> str:
    if index > 6:
        return "High Risk"
    elif index >= 3:
        return "Elevated"
    return "Stable"


def shell_volume_km3(regime: Regime, bands: RegimeBands) -> float | None:
    """Volume of the spherical shell a regime occupies, None for ``other``."""
    limits = {
        Regime.LEO: (bands.leo_min_km, bands.leo_max_km),
        Regime.MEO: (bands.leo_max_km, bands.meo_max_km),
        Regime.GEO: (bands.meo_max_km, bands.geo_max_km),
    }
    if regime not in limits:
        return None
    lo, hi = limits[regime]
    r1, r2 = EARTH_RADIUS_KM + lo, EARTH_RADIUS_KM + hi
    return 4.0 / 3.0 * math.pi * (r2**3 - r1**3)


@dataclass(frozen=True)
class RegimeStats:
    regime: Regime
    active: int = 0
    inactive: int = 0
    debris: int = 0
    unknown: int = 0
    spatial_density_per_km3: float | None = None
    projected_active_1y: float = 0.0
    projected_active_5y: float = 0.0
    projected_total_1y: float = 0.0
    projected_total_5y: float = 0.0

    @property
    def total(self) -> int:
        return self.active + self.inactive + self.debris + self.unknown


@dataclass(frozen=True)
class NotableObject:
    object_id: str
    name: str
    object_type: ObjectType
    mass_kg: float
    regime: Regime | None


@dataclass(frozen=True)
class PopulationSnapshot:
    """Immutable summary of one computation cycle.

    ``created_at`` is excluded from equality so re-running a cycle on the
    same inputs yields an equal snapshot.
    """

    epoch: datetime
    total_tracked: int
    total_payloads: int
    total_rocket_bodies: int
    total_debris: int
    total_unknown: int
    regimes: tuple[RegimeStats, ...]
    unclassified_count: int
    kessler_risk_index: float
    kessler_label: str
    conjunctions_per_day: float
    event_count: int
    critical_count: int
    avg_collision_probability: float
    compliance: ComplianceSummary
    growth_1y_pct: float | None
    growth_5y_pct: float | None
    propagation_failures: int = 0
    notable_objects: tuple[NotableObject, ...] = ()
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )

    def regime(self, regime: Regime) -> RegimeStats:
        for stats in self.regimes:
            if stats.regime == regime:
                return stats
        raise KeyError(regime)

    @property
    def compliance_rate(self) -> float | None:
        return self.compliance.rate


def _category(obj: TrackedObject) -> str:
    if obj.object_type == ObjectType.DEBRIS:
        return "debris"
    if obj.object_type == ObjectType.UNKNOWN:
        return "unknown"
    return "active" if obj.is_active else "inactive"


def regime_populations(classified: list[ClassifiedObject]) -> dict[Regime, RegimePopulation]:
    """Count active/inactive/debris/unknown per regime; unclassified are skipped."""
    counts = {r: {"active": 0, "inactive": 0, "debris": 0, "unknown": 0} for r in REGIME_ORDER}
    for item in classified:
        if item.regime is None:
            continue
        counts[item.regime][_category(item.obj)] += 1
    return {r: RegimePopulation(**{k: float(v) for k, v in c.items()}) for r, c in counts.items()}


def mean_density_ratio(
    populations: dict[Regime, RegimePopulation], bands: RegimeBands, settings: KesslerSettings
) -> float:
    ratios = []
    for regime in _SHELL_REGIMES:
        volume = shell_volume_km3(regime, bands)
        reference = settings.reference_density_per_km3.get(regime)
        if not volume or not reference:
            continue
        ratios.append(populations[regime].total / volume / reference)
    return sum(ratios) / len(ratios) if ratios else 0.0


def notable_objects(classified: list[ClassifiedObject], limit: int) -> tuple[NotableObject, ...]:
    """Largest objects by mass, heaviest first."""
    with_mass = [c for c in classified if c.obj.mass_kg is not None]
    with_mass.sort(key=lambda c: (-c.obj.mass_kg, c.obj.object_id))
    return tuple(
        NotableObject(c.obj.object_id, c.obj.name, c.obj.object_type, c.obj.mass_kg, c.regime)
        for c in with_mass[:limit]
    )


def build_snapshot(
    epoch: datetime,
    classified: list[ClassifiedObject],
    events: list[ConjunctionEvent],
    compliance: ComplianceSummary,
    config: EngineConfig,
    propagation_failures: int = 0,
) -> PopulationSnapshot:
    """Roll up one cycle's objects and events into a PopulationSnapshot.

    Args:
        epoch: Evaluation epoch of the cycle.
        classified: Every catalog object with its derived regime.
        events: Conjunction events found in the screening window.
        compliance: Deorbit compliance counts.
        config: Configuration the cycle ran with.
        propagation_failures: Objects excluded from screening.
    """
    total = len(classified)
    by_type = {t: 0 for t in ObjectType}
    for item in classified:
        by_type[item.obj.object_type] += 1
    unclassified = sum(1 for c in classified if c.regime is None)

    populations = regime_populations(classified)
    current_total = sum(p.total for p in populations.values())
    if current_total > 0:
        forecasts = forecast_population(populations, config.forecast)
    else:
        # nothing to project from
        forecasts = None

    regimes: list[RegimeStats] = []
    projected_1y = projected_5y = 0.0
    for regime in REGIME_ORDER:
        pop = populations[regime]
        volume = shell_volume_km3(regime, config.bands)
        one = five = RegimePopulation()
        if forecasts is not None:
            one, five = forecasts[regime].one_year, forecasts[regime].five_year
        projected_1y += one.total
        projected_5y += five.total
        regimes.append(RegimeStats(
            regime=regime,
            active=int(pop.active),
            inactive=int(pop.inactive),
            debris=int(pop.debris),
            unknown=int(pop.unknown),
            spatial_density_per_km3=pop.total / volume if volume else None,
            projected_active_1y=one.active,
            projected_active_5y=five.active,
            projected_total_1y=one.total,
            projected_total_5y=five.total,
        ))

    probabilities = [e.probability for e in events]
    growth_rate = (projected_1y / current_total - 1.0) if current_total > 0 else 0.0
    inputs = KesslerInputs(
        density_ratio=mean_density_ratio(populations, config.bands, config.kessler),
        probability_per_object=sum(probabilities) / total if total else 0.0,
        net_growth_rate=growth_rate,
    )
    index = kessler_risk_index(inputs, config.kessler)

    floor = config.kessler.rate_probability_floor
    rated = sum(1 for p in probabilities if p >= floor)

    snapshot = PopulationSnapshot(
        epoch=epoch,
        total_tracked=total,
        total_payloads=by_type[ObjectType.PAYLOAD],
        total_rocket_bodies=by_type[ObjectType.ROCKET_BODY],
        total_debris=by_type[ObjectType.DEBRIS],
        total_unknown=by_type[ObjectType.UNKNOWN],
        regimes=tuple(regimes),
        unclassified_count=unclassified,
        kessler_risk_index=index,
        kessler_label=kessler_label(index),
        conjunctions_per_day=rated / config.screening.window_days,
        event_count=len(events),
        critical_count=sum(1 for e in events if e.risk_level == RiskLevel.CRITICAL),
        avg_collision_probability=sum(probabilities) / len(probabilities) if probabilities else 0.0,
        compliance=compliance,
        growth_1y_pct=growth_percent(current_total, projected_1y),
        growth_5y_pct=growth_percent(current_total, projected_5y),
        propagation_failures=propagation_failures,
        notable_objects=notable_objects(classified, config.notable_object_count),
    )
    logger.info("Snapshot: %d objects, %d events, Kessler index %.2f (%s)",
                total, len(events), index, snapshot.kessler_label)
    return snapshot

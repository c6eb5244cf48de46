"""
debriscast: orbital population modelling and conjunction-risk forecasting.

Classifies a catalog of tracked space objects by orbital regime, screens
it for close approaches, scores collision probability, and rolls the
results up into a Kessler Risk Index, deorbit-compliance figures and
population projections.
"""

from __future__ import annotations

__version__ = "0.1.0-dev"

from debriscast.config import ConfigManager, EngineConfig, PcMethod, Regime, load_config, load_config_file
from debriscast.core.objects import INDEFINITE_LIFETIME, ObjectType, OrbitalElements, TrackedObject
from debriscast.core.classifier import classify_catalog, classify_regime
from debriscast.core.propagation import StateVector, propagate, propagate_batch
from debriscast.core.screening import screen_catalog
from debriscast.core.probability import PcResult, compute_pc
from debriscast.core.risk import RiskLevel, classify_risk
from debriscast.core.conjunction import ConjunctionEvent, assess_candidates
from debriscast.core.compliance import evaluate_compliance, estimate_lifetime_years
from debriscast.core.forecast import forecast_population
from debriscast.core.aggregation import PopulationSnapshot, build_snapshot, kessler_risk_index
from debriscast.engine.cycle import CycleRunner, run_cycle
from debriscast.engine.store import SnapshotStore
from debriscast.data.catalog import load_catalog
from debriscast.data.spacetrack import SpaceTrackClient

__all__ = [
    "__version__",
    "ConfigManager",
    "EngineConfig",
    "PcMethod",
    "Regime",
    "load_config",
    "load_config_file",
    "INDEFINITE_LIFETIME",
    "ObjectType",
    "OrbitalElements",
    "TrackedObject",
    "classify_catalog",
    "classify_regime",
    "StateVector",
    "propagate",
    "propagate_batch",
    "screen_catalog",
    "PcResult",
    "compute_pc",
    "RiskLevel",
    "classify_risk",
    "ConjunctionEvent",
    "assess_candidates",
    "evaluate_compliance",
    "estimate_lifetime_years",
    "forecast_population",
    "PopulationSnapshot",
    "build_snapshot",
    "kessler_risk_index",
    "CycleRunner",
    "run_cycle",
    "SnapshotStore",
    "load_catalog",
    "SpaceTrackClient",
]

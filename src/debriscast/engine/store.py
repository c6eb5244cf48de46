"""Versioned, append-only store of published cycles.

Readers always see a complete cycle: ``publish`` swaps in a new record
under a lock, and the records themselves are immutable.
"""
from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from debriscast.core.aggregation import PopulationSnapshot, RegimeStats
from debriscast.core.conjunction import ConjunctionEvent
from debriscast.core.risk import RiskLevel, recommendation

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class PublishedCycle:
    version: int
    snapshot: PopulationSnapshot
    events: tuple[ConjunctionEvent, ...]
    published_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )


class SnapshotStore:
    """Latest published snapshot plus the history of earlier ones."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._history: list[PublishedCycle] = []

    def publish(self, snapshot: PopulationSnapshot, events: tuple[ConjunctionEvent, ...] | list[ConjunctionEvent]) -> PublishedCycle:
        ordered = tuple(sorted(events, key=lambda e: (e.tca, e.primary_id, e.secondary_id)))
        with self._lock:
            record = PublishedCycle(
                version=len(self._history) + 1, snapshot=snapshot, events=ordered
            )
            self._history.append(record)
        return record

    def latest(self) -> PublishedCycle | None:
        with self._lock:
            return self._history[-1] if self._history else None

    def latest_snapshot(self) -> PopulationSnapshot | None:
        record = self.latest()
        return record.snapshot if record else None

    def history(self) -> tuple[PublishedCycle, ...]:
        with self._lock:
            return tuple(self._history)

    def conjunction_events(
        self,
        risk_level: RiskLevel | str | None = None,
        limit: int | None = None,
    ) -> list[ConjunctionEvent]:
        """Events of the latest cycle, ordered by time of closest approach.

        Args:
            risk_level: Only return events at this level.
            limit: Maximum number of events.
        """
        record = self.latest()
        if record is None:
            return []
        events = list(record.events)
        if risk_level is not None:
            level = RiskLevel(risk_level)
            events = [e for e in events if e.risk_level == level]
        if limit is not None:
            events = events[:limit]
        return events

    def overview(self, recent: int = 5) -> dict[str, Any]:
        """Dashboard summary of the latest cycle in JSON-ready form."""
        record = self.latest()
        if record is None:
            return {
                "stats": None,
                "recent_conjunctions": [],
                "critical_count": 0,
                "debris_by_orbit": None,
                "debris_by_type": None,
                "compliance_rate": NOT_AVAILABLE,
            }
        snap = record.snapshot
        return {
            "stats": snapshot_to_dict(snap),
            "recent_conjunctions": [event_to_dict(e) for e in record.events[:recent]],
            "critical_count": snap.critical_count,
            "debris_by_orbit": {s.regime.value: s.total for s in snap.regimes},
            "debris_by_type": {
                "payloads": snap.total_payloads,
                "rocket_bodies": snap.total_rocket_bodies,
                "debris": snap.total_debris,
                "unknown": snap.total_unknown,
            },
            "compliance_rate": _or_na(snap.compliance_rate),
        }


def _or_na(value: float | None) -> float | str:
    return NOT_AVAILABLE if value is None else value


def _regime_to_dict(stats: RegimeStats) -> dict[str, Any]:
    return {
        "regime": stats.regime.value,
        "active": stats.active,
        "inactive": stats.inactive,
        "debris": stats.debris,
        "unknown": stats.unknown,
        "total": stats.total,
        "spatial_density_per_km3": stats.spatial_density_per_km3,
        "projected_active_1y": stats.projected_active_1y,
        "projected_active_5y": stats.projected_active_5y,
        "projected_total_1y": stats.projected_total_1y,
        "projected_total_5y": stats.projected_total_5y,
    }


def snapshot_to_dict(snapshot: PopulationSnapshot) -> dict[str, Any]:
    """Serialise a snapshot; undefined rates become ``"N/A"``."""
    c = snapshot.compliance
    return {
        "epoch": snapshot.epoch.isoformat(),
        "total_tracked": snapshot.total_tracked,
        "total_payloads": snapshot.total_payloads,
        "total_rocket_bodies": snapshot.total_rocket_bodies,
        "total_debris": snapshot.total_debris,
        "total_unknown": snapshot.total_unknown,
        "regimes": [_regime_to_dict(s) for s in snapshot.regimes],
        "unclassified_count": snapshot.unclassified_count,
        "kessler_risk_index": round(snapshot.kessler_risk_index, 3),
        "kessler_label": snapshot.kessler_label,
        "conjunctions_per_day": snapshot.conjunctions_per_day,
        "event_count": snapshot.event_count,
        "critical_count": snapshot.critical_count,
        "avg_collision_probability": snapshot.avg_collision_probability,
        "compliance": {
            "compliant": c.compliant,
            "non_compliant": c.non_compliant,
            "indefinite": c.indefinite,
            "unevaluated": c.unevaluated,
            "rate": _or_na(c.rate),
        },
        "growth_1y_pct": _or_na(snapshot.growth_1y_pct),
        "growth_5y_pct": _or_na(snapshot.growth_5y_pct),
        "propagation_failures": snapshot.propagation_failures,
        "notable_objects": [
            {
                "object_id": o.object_id,
                "name": o.name,
                "object_type": o.object_type.value,
                "mass_kg": o.mass_kg,
                "regime": o.regime.value if o.regime else None,
            }
            for o in snapshot.notable_objects
        ],
    }


def event_to_dict(event: ConjunctionEvent) -> dict[str, Any]:
    mahalanobis = event.mahalanobis_distance
    return {
        "event_id": event.event_id,
        "primary_id": event.primary_id,
        "secondary_id": event.secondary_id,
        "primary_type": event.primary_type.value,
        "secondary_type": event.secondary_type.value,
        "tca": event.tca.isoformat(),
        "miss_distance_km": event.miss_distance_km,
        "relative_velocity_km_s": event.relative_velocity_km_s,
        "probability": event.probability,
        "risk_level": event.risk_level.value,
        "altitude_km": event.altitude_km,
        "regime": event.regime.value,
        "maneuver_required": event.maneuver_required,
        "maneuver_executed": event.maneuver_executed,
        "low_confidence": event.low_confidence,
        "pc_method": event.pc_method.value if event.pc_method else None,
        "mahalanobis_distance": mahalanobis if mahalanobis is not None and math.isfinite(mahalanobis) else None,
        "recommendation": recommendation(event.risk_level, event.maneuver_required),
    }

"""Computation cycles: catalog in, snapshot and events out.

``run_cycle`` is a pure function of the catalog, configuration and epoch.
``CycleRunner`` wraps it with catalog fetching, error containment and
publication to a :class:`~debriscast.engine.store.SnapshotStore`.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from debriscast.config import ConfigManager, EngineConfig
from debriscast.core.aggregation import PopulationSnapshot, build_snapshot
from debriscast.core.classifier import classify_catalog
from debriscast.core.compliance import ComplianceResult, evaluate_compliance
from debriscast.core.conjunction import ConjunctionEvent, assess_candidates
from debriscast.core.objects import TrackedObject
from debriscast.core.screening import ScreeningStats, screen_catalog
from debriscast.engine.store import PublishedCycle, SnapshotStore
from debriscast.errors import CycleCancelled, CycleError

logger = logging.getLogger(__name__)

CatalogFeed = Callable[[], list[TrackedObject]]


@dataclass(frozen=True)
class CycleResult:
    snapshot: PopulationSnapshot
    events: tuple[ConjunctionEvent, ...]
    screening: ScreeningStats = field(compare=False)
    compliance_results: tuple[ComplianceResult, ...] = field(default=(), compare=False)


def _check_cancel(cancel: threading.Event | None, stage: str) -> None:
    if cancel is not None and cancel.is_set():
        raise CycleCancelled(f"Cycle cancelled before {stage}")


def run_cycle(
    catalog: list[TrackedObject],
    config: EngineConfig,
    epoch: datetime,
    cancel: threading.Event | None = None,
) -> CycleResult:
    """Run every stage of one cycle over a fixed catalog.

    Args:
        catalog: Objects read from the feed at cycle start.
        config: Configuration for the whole cycle.
        epoch: Start of the screening window and evaluation epoch.
        cancel: Set to abort the cycle between stages.

    Returns:
        CycleResult with the snapshot and time-ordered events.

    Raises:
        CycleCancelled: If ``cancel`` was set before the cycle finished.
    """
    if epoch.tzinfo is None:
        epoch = epoch.replace(tzinfo=timezone.utc)

    _check_cancel(cancel, "classification")
    classified = classify_catalog(catalog, config.bands)

    _check_cancel(cancel, "screening")
    screening = screen_catalog(
        catalog,
        epoch,
        config.screening,
        max_workers=config.max_workers,
        backend=config.parallel_backend,
    )

    _check_cancel(cancel, "probability assessment")
    events = assess_candidates(screening.candidates, config)

    _check_cancel(cancel, "compliance")
    compliance, results = evaluate_compliance(catalog, config.compliance, epoch)

    _check_cancel(cancel, "aggregation")
    snapshot = build_snapshot(
        epoch,
        classified,
        events,
        compliance,
        config,
        propagation_failures=len(screening.excluded_ids),
    )
    _check_cancel(cancel, "publication")
    return CycleResult(
        snapshot=snapshot,
        events=tuple(events),
        screening=screening.stats,
        compliance_results=tuple(results),
    )


class CycleRunner:
    """Runs cycles against a catalog feed and publishes the results.

    A failed or cancelled cycle publishes nothing; consumers keep reading
    the last published snapshot.

    Args:
        feed: Callable returning the current catalog. Called once per cycle.
        store: Where successful cycles are published.
        config_manager: Source of the configuration, read once per cycle.
    """

    def __init__(
        self,
        feed: CatalogFeed,
        store: SnapshotStore,
        config_manager: ConfigManager | None = None,
    ) -> None:
        self.feed = feed
        self.store = store
        self.config_manager = config_manager or ConfigManager()
        self.last_error: CycleError | None = None

    def run_once(
        self,
        epoch: datetime | None = None,
        cancel: threading.Event | None = None,
    ) -> PublishedCycle | None:
        """Run and publish a single cycle.

        Returns:
            The published record, or None if the cycle was aborted.
        """
        config = self.config_manager.current
        epoch = epoch or datetime.now(timezone.utc)
        try:
            try:
                catalog = list(self.feed())
            except Exception as e:
                raise CycleError(f"Catalog fetch failed: {e}") from e
            logger.info("Cycle start: %d catalog objects at %s", len(catalog), epoch.isoformat())
            try:
                result = run_cycle(catalog, config, epoch, cancel)
            except CycleError:
                raise
            except Exception as e:
                raise CycleError(f"Cycle failed: {e}") from e
        except CycleCancelled as e:
            logger.warning("%s; previous snapshot remains current", e)
            self.last_error = e
            return None
        except CycleError as e:
            logger.error("%s; previous snapshot remains current", e)
            self.last_error = e
            return None

        published = self.store.publish(result.snapshot, result.events)
        self.last_error = None
        logger.info("Published cycle version %d", published.version)
        return published

    def run_forever(self, stop: threading.Event) -> None:
        """Run a cycle every ``cycle_period_hours`` until ``stop`` is set."""
        while not stop.is_set():
            self.run_once(cancel=stop)
            period_s = self.config_manager.current.cycle_period_hours * 3600.0
            stop.wait(period_s)

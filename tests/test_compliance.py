"""Tests for lifetime estimation and the 25-year deorbit rule."""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from debriscast.config import ComplianceSettings
from debriscast.core.compliance import (
    ComplianceSummary,
    atmospheric_density,
    estimate_lifetime_years,
    evaluate_compliance,
)
from debriscast.core.objects import INDEFINITE_LIFETIME, ObjectType, OrbitalElements, TrackedObject
from debriscast.utils.constants import EARTH_RADIUS_KM

EPOCH = datetime(2024, 2, 14, tzinfo=timezone.utc)


def _defunct(object_id: str, alt_km: float = 600.0, **kwargs) -> TrackedObject:
    kwargs.setdefault("object_type", ObjectType.PAYLOAD)
    el = OrbitalElements(EARTH_RADIUS_KM + alt_km, 0.0, 0.9, 0.0, 0.0, 0.0)
    return TrackedObject(object_id, epoch=EPOCH, elements=el, is_active=False, **kwargs)


@pytest.fixture
def settings() -> ComplianceSettings:
    return ComplianceSettings()


class TestAtmosphere:
    """Exponential density model."""

    def test_sea_level(self):
        assert float(atmospheric_density(0.0)) == pytest.approx(1.225)

    def test_decreasing_with_altitude(self):
        rho = atmospheric_density(np.array([100.0, 300.0, 500.0, 1000.0, 1900.0]))
        assert np.all(np.diff(rho) < 0)


class TestLifetime:
    """Remaining lifetime estimates."""

    def test_low_orbit_decays_quickly(self, settings):
        low = estimate_lifetime_years(_defunct("1", 400.0), settings)
        high = estimate_lifetime_years(_defunct("2", 800.0), settings)
        assert 0.0 < low < 25.0 < high

    def test_monotone_in_altitude(self, settings):
        lifetimes = [estimate_lifetime_years(_defunct("1", alt), settings) for alt in range(200, 1900, 50)]
        assert lifetimes == sorted(lifetimes)

    def test_heavier_object_lives_longer(self, settings):
        light = _defunct("1", 500.0, hard_body_radius_m=1.0, mass_kg=100.0)
        heavy = _defunct("2", 500.0, hard_body_radius_m=1.0, mass_kg=1000.0)
        assert estimate_lifetime_years(heavy, settings) == pytest.approx(
            10.0 * estimate_lifetime_years(light, settings)
        )

    def test_high_orbit_indefinite(self, settings):
        assert math.isinf(estimate_lifetime_years(_defunct("1", 35786.0), settings))

    def test_supplied_value_wins(self, settings):
        assert estimate_lifetime_years(_defunct("1", 400.0, lifetime_years=42.0), settings) == 42.0

    def test_below_reentry_altitude(self, settings):
        assert estimate_lifetime_years(_defunct("1", 110.0), settings) == 0.0

    def test_no_state(self, settings):
        obj = TrackedObject("1", ObjectType.PAYLOAD, EPOCH, None)
        assert estimate_lifetime_years(obj, settings) is None


class TestEvaluateCompliance:
    """The post-mission disposal rule."""

    def test_three_of_four_compliant(self, settings):
        """Indefinite-lifetime objects are in neither numerator nor denominator."""
        objects = [
            _defunct("1", lifetime_years=2.0),
            _defunct("2", lifetime_years=10.0),
            _defunct("3", object_type=ObjectType.ROCKET_BODY, lifetime_years=24.0),
            _defunct("4", lifetime_years=80.0),
            _defunct("5", 35786.0, lifetime_years=INDEFINITE_LIFETIME),
            _defunct("6", 35786.0),
        ]
        summary, results = evaluate_compliance(objects, settings, EPOCH)
        assert summary.compliant == 3
        assert summary.non_compliant == 1
        assert summary.indefinite == 2
        assert summary.rate == 0.75
        assert len(results) == 6

    def test_active_and_debris_not_evaluated(self, settings):
        objects = [
            TrackedObject("1", ObjectType.PAYLOAD, EPOCH, None, is_active=True, lifetime_years=80.0),
            _defunct("2", object_type=ObjectType.DEBRIS, lifetime_years=80.0),
            _defunct("3", lifetime_years=80.0, trackable=False),
        ]
        summary, results = evaluate_compliance(objects, settings, EPOCH)
        assert results == []
        assert summary == ComplianceSummary()

    def test_time_since_end_of_mission_counts(self, settings):
        obj = _defunct("1", lifetime_years=20.0, end_of_mission=EPOCH - timedelta(days=365.25 * 10))
        summary, results = evaluate_compliance([obj], settings, EPOCH)
        assert summary.non_compliant == 1
        assert results[0].post_mission_years == pytest.approx(30.0, abs=0.01)

    def test_threshold_configurable(self):
        obj = _defunct("1", lifetime_years=20.0)
        summary, _ = evaluate_compliance([obj], ComplianceSettings(threshold_years=5.0), EPOCH)
        assert summary.non_compliant == 1

    def test_rate_not_available_when_nothing_evaluated(self, settings):
        summary, _ = evaluate_compliance([_defunct("1", 35786.0)], settings, EPOCH)
        assert summary.rate is None
        assert summary.indefinite == 1

    def test_missing_state_unevaluated(self, settings):
        obj = TrackedObject("1", ObjectType.PAYLOAD, EPOCH, None)
        summary, _ = evaluate_compliance([obj], settings, EPOCH)
        assert summary.unevaluated == 1
        assert summary.rate is None

    def test_rate_bounds(self, settings):
        objects = [_defunct(str(i), 300.0 + 100.0 * i) for i in range(15)]
        summary, _ = evaluate_compliance(objects, settings, EPOCH)
        assert summary.compliant + summary.non_compliant <= len(objects)
        assert summary.rate is not None and 0.0 <= summary.rate <= 1.0

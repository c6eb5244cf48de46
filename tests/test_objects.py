"""Tests for tracked objects and orbital element conversions."""
from __future__ import annotations

import math
from datetime import datetime, timezone

import numpy as np
import pytest

from debriscast.core.objects import INDEFINITE_LIFETIME, ObjectType, OrbitalElements, TrackedObject
from debriscast.core.propagation import propagate_elements
from debriscast.errors import PropagationError
from debriscast.utils.constants import EARTH_MU_KM3_S2, EARTH_RADIUS_KM

EPOCH = datetime(2024, 2, 14, tzinfo=timezone.utc)


def _elements(a_km: float = 7000.0, e: float = 0.0, i_deg: float = 0.0) -> OrbitalElements:
    return OrbitalElements(a_km, e, math.radians(i_deg), 0.0, 0.0, 0.0)


class TestObjectType:
    """Catalog type spellings."""

    @pytest.mark.parametrize("raw,expected", [
        ("PAYLOAD", ObjectType.PAYLOAD),
        ("ROCKET BODY", ObjectType.ROCKET_BODY),
        ("R/B", ObjectType.ROCKET_BODY),
        ("DEBRIS", ObjectType.DEBRIS),
        ("deb", ObjectType.DEBRIS),
        ("TBA", ObjectType.UNKNOWN),
        (None, ObjectType.UNKNOWN),
        ("", ObjectType.UNKNOWN),
    ])
    def test_parse(self, raw, expected):
        assert ObjectType.parse(raw) == expected


class TestOrbitalElements:
    """Derived quantities and degeneracy checks."""

    def test_altitudes(self):
        el = _elements(a_km=7000.0, e=0.01)
        assert el.perigee_altitude_km == pytest.approx(7000.0 * 0.99 - EARTH_RADIUS_KM)
        assert el.apogee_altitude_km == pytest.approx(7000.0 * 1.01 - EARTH_RADIUS_KM)
        assert el.mean_altitude_km == pytest.approx(7000.0 - EARTH_RADIUS_KM)

    def test_period(self):
        el = _elements(a_km=7000.0)
        expected = 2 * math.pi * math.sqrt(7000.0**3 / EARTH_MU_KM3_S2)
        assert el.period_s == pytest.approx(expected)

    @pytest.mark.parametrize("a,e", [(7000.0, 1.0), (7000.0, 1.5), (0.0, 0.1), (-7000.0, 0.1), (math.nan, 0.0)])
    def test_degenerate(self, a, e):
        assert OrbitalElements(a, e, 0.0, 0.0, 0.0, 0.0).is_degenerate

    def test_valid_not_degenerate(self):
        assert not _elements().is_degenerate

    def test_from_mean_motion_geo(self):
        """One revolution per sidereal day gives the GEO radius."""
        el = OrbitalElements.from_mean_motion(1.00273791, 0.0, 0.0, 0.0, 0.0, 0.0)
        assert el.a_km == pytest.approx(42164.0, abs=2.0)

    def test_from_mean_motion_rejects_zero(self):
        with pytest.raises(PropagationError):
            OrbitalElements.from_mean_motion(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)


class TestFromState:
    """Cartesian state to elements."""

    def test_circular_equatorial(self):
        r = 7000.0
        v = math.sqrt(EARTH_MU_KM3_S2 / r)
        el = OrbitalElements.from_state([r, 0.0, 0.0], [0.0, v, 0.0])
        assert el.a_km == pytest.approx(r)
        assert el.e == pytest.approx(0.0, abs=1e-9)
        assert el.i_rad == pytest.approx(0.0, abs=1e-12)

    def test_round_trip_through_propagation(self):
        """Elements recovered from a propagated state reproduce that state."""
        el = OrbitalElements(7200.0, 0.05, math.radians(51.6), 1.0, 0.5, 2.0)
        state = propagate_elements(el, 0.0)
        recovered = OrbitalElements.from_state(state[0:3], state[3:6])
        np.testing.assert_allclose(propagate_elements(recovered, 0.0), state, rtol=1e-8, atol=1e-6)

    def test_hyperbolic_rejected(self):
        with pytest.raises(PropagationError):
            OrbitalElements.from_state([7000.0, 0.0, 0.0], [0.0, 15.0, 0.0])

    def test_zero_position_rejected(self):
        with pytest.raises(PropagationError):
            OrbitalElements.from_state([0.0, 0.0, 0.0], [0.0, 7.5, 0.0])


class TestTrackedObject:
    """Invariants on catalog objects."""

    def test_naive_epoch_becomes_utc(self):
        obj = TrackedObject("1", ObjectType.PAYLOAD, datetime(2024, 1, 1), _elements())
        assert obj.epoch.tzinfo is not None

    def test_negative_lifetime_rejected(self):
        with pytest.raises(ValueError, match="lifetime"):
            TrackedObject("1", ObjectType.PAYLOAD, EPOCH, _elements(), lifetime_years=-1.0)

    def test_indefinite_lifetime(self):
        obj = TrackedObject("1", ObjectType.PAYLOAD, EPOCH, _elements(), lifetime_years=INDEFINITE_LIFETIME)
        assert obj.has_indefinite_lifetime

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            TrackedObject("", ObjectType.DEBRIS, EPOCH, _elements())

    def test_missing_elements_allowed(self):
        obj = TrackedObject("1", ObjectType.DEBRIS, EPOCH, None)
        assert obj.elements is None

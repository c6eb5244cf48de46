"""Tests for closed-form Keplerian propagation."""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from debriscast.core.objects import ObjectType, OrbitalElements, TrackedObject
from debriscast.core.propagation import propagate, propagate_batch, propagate_elements, solve_kepler
from debriscast.errors import PropagationError
from debriscast.utils.constants import EARTH_MU_KM3_S2

EPOCH = datetime(2024, 2, 14, tzinfo=timezone.utc)


@pytest.fixture
def leo_object() -> TrackedObject:
    el = OrbitalElements(6928.137, 0.001, math.radians(51.6), 0.3, 0.2, 0.1)
    return TrackedObject("25544", ObjectType.PAYLOAD, EPOCH, el, is_active=True)


def test_solve_kepler_satisfies_equation():
    M = np.linspace(0.0, 2 * np.pi, 37)
    for e in (0.0, 0.1, 0.7, 0.95):
        E = solve_kepler(M, np.full_like(M, e))
        np.testing.assert_allclose(E - e * np.sin(E), np.mod(M, 2 * np.pi), atol=1e-10)


def test_circular_speed_and_radius():
    """A circular orbit keeps constant radius and circular speed."""
    el = OrbitalElements(7000.0, 0.0, 0.5, 0.0, 0.0, 0.0)
    for dt in (0.0, 1000.0, 5000.0):
        state = propagate_elements(el, dt)
        assert np.linalg.norm(state[0:3]) == pytest.approx(7000.0)
        assert np.linalg.norm(state[3:6]) == pytest.approx(math.sqrt(EARTH_MU_KM3_S2 / 7000.0))


def test_full_period_returns_to_start(leo_object: TrackedObject):
    period = leo_object.elements.period_s
    start, later = propagate(leo_object, [EPOCH, EPOCH + timedelta(seconds=period)])
    np.testing.assert_allclose(later.position_km, start.position_km, atol=1e-6)
    np.testing.assert_allclose(later.velocity_km_s, start.velocity_km_s, atol=1e-9)


def test_long_interval_stays_on_orbit(leo_object: TrackedObject):
    """Ten years ahead the state is still on the same ellipse."""
    far = EPOCH + timedelta(days=3652)
    (state,) = propagate(leo_object, [far])
    el = leo_object.elements
    r = np.linalg.norm(state.position_km)
    assert el.a_km * (1 - el.e) - 1e-6 <= r <= el.a_km * (1 + el.e) + 1e-6
    energy = np.dot(state.velocity_km_s, state.velocity_km_s) / 2 - EARTH_MU_KM3_S2 / r
    assert energy == pytest.approx(-EARTH_MU_KM3_S2 / (2 * el.a_km), rel=1e-9)


def test_propagate_returns_requested_epochs(leo_object: TrackedObject):
    times = [EPOCH + timedelta(minutes=m) for m in (0, 10, 20)]
    states = propagate(leo_object, times)
    assert [s.epoch for s in states] == times
    assert states[0].position_km.shape == (3,)


def test_degenerate_elements_raise():
    obj = TrackedObject("1", ObjectType.DEBRIS, EPOCH, OrbitalElements(7000.0, 1.2, 0.0, 0.0, 0.0, 0.0))
    with pytest.raises(PropagationError, match="Degenerate"):
        propagate(obj, [EPOCH])


def test_missing_elements_raise():
    obj = TrackedObject("1", ObjectType.DEBRIS, EPOCH, None)
    with pytest.raises(PropagationError):
        propagate(obj, [EPOCH])


def test_batch_masks_bad_objects(leo_object: TrackedObject):
    bad = TrackedObject("2", ObjectType.DEBRIS, EPOCH, OrbitalElements(-1.0, 0.0, 0.0, 0.0, 0.0, 0.0))
    missing = TrackedObject("3", ObjectType.DEBRIS, EPOCH, None)
    states, valid = propagate_batch([leo_object, bad, missing], EPOCH, np.array([0.0, 60.0]))
    assert states.shape == (3, 2, 6)
    assert valid.tolist() == [True, False, False]
    assert np.all(np.isfinite(states[0]))
    assert np.all(np.isnan(states[1:]))


def test_batch_matches_single(leo_object: TrackedObject):
    """Batch propagation from a later start agrees with single-object propagation."""
    start = EPOCH + timedelta(hours=3)
    states, _ = propagate_batch([leo_object], start, np.array([0.0, 120.0]))
    single = propagate(leo_object, [start, start + timedelta(seconds=120)])
    np.testing.assert_allclose(states[0, 1, 0:3], single[1].position_km, atol=1e-6)


def test_batch_empty():
    states, valid = propagate_batch([], EPOCH, np.array([0.0]))
    assert states.shape == (0, 1, 6)
    assert valid.shape == (0,)

"""Closed-form two-body (Keplerian) propagation.

Elements are held constant except the mean anomaly, which advances by
mean motion times elapsed time. Because the solution is closed-form, long
propagation spans accumulate no stepping error. Drag and other
perturbations are not modelled.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

import numpy as np
from numpy.typing import NDArray

from debriscast.core.objects import OrbitalElements, TrackedObject
from debriscast.errors import PropagationError
from debriscast.utils.constants import EARTH_MU_KM3_S2 as MU

logger = logging.getLogger(__name__)

_KEPLER_TOL = 1e-14
_KEPLER_MAX_ITER = 50


@dataclass
class StateVector:
    """Position and velocity in the inertial frame of the elements.

    Attributes:
        position_km: [x, y, z] position in km.
        velocity_km_s: [vx, vy, vz] velocity in km/s.
        epoch: Time of this state vector.
    """

    position_km: NDArray[np.float64]  # shape (3,)
    velocity_km_s: NDArray[np.float64]  # shape (3,)
    epoch: datetime


def solve_kepler(mean_anomaly: NDArray[np.float64], e: NDArray[np.float64]) -> NDArray[np.float64]:
    """Solve ``E - e sin E = M`` for the eccentric anomaly by Newton iteration.

    Both arguments broadcast against each other.
    """
    M = np.mod(mean_anomaly, 2.0 * np.pi)
    e = np.broadcast_to(e, M.shape)
    E = np.where(e < 0.8, M, np.pi)
    for _ in range(_KEPLER_MAX_ITER):
        f = E - e * np.sin(E) - M
        step = f / (1.0 - e * np.cos(E))
        E = E - step
        if np.all(np.abs(step) < _KEPLER_TOL):
            break
    return E


def _orientation(el: NDArray[np.float64]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Perifocal P and Q unit vectors for element rows ``[a, e, i, raan, argp, M0]``."""
    i, raan, argp = el[:, 2], el[:, 3], el[:, 4]
    cO, sO = np.cos(raan), np.sin(raan)
    cw, sw = np.cos(argp), np.sin(argp)
    ci, si = np.cos(i), np.sin(i)
    P = np.stack([cO * cw - sO * sw * ci, sO * cw + cO * sw * ci, sw * si], axis=-1)
    Q = np.stack([-cO * sw - sO * cw * ci, -sO * sw + cO * cw * ci, cw * si], axis=-1)
    return P, Q


def _element_matrix(elements: list[OrbitalElements]) -> NDArray[np.float64]:
    return np.array(
        [[el.a_km, el.e, el.i_rad, el.raan_rad, el.argp_rad, el.mean_anomaly_rad] for el in elements],
        dtype=np.float64,
    ).reshape(-1, 6)


def _states(el: NDArray[np.float64], dt_s: NDArray[np.float64]) -> NDArray[np.float64]:
    """Propagate element rows (n, 6) by offsets (n, m) seconds → states (n, m, 6)."""
    a = el[:, 0:1]
    e = el[:, 1:2]
    n = np.sqrt(MU / a**3)
    E = solve_kepler(el[:, 5:6] + n * dt_s, e)

    cosE, sinE = np.cos(E), np.sin(E)
    root = np.sqrt(1.0 - e * e)
    x = a * (cosE - e)
    y = a * root * sinE
    r = a * (1.0 - e * cosE)
    vx = -np.sqrt(MU * a) / r * sinE
    vy = np.sqrt(MU * a) / r * root * cosE

    P, Q = _orientation(el)
    P = P[:, None, :]
    Q = Q[:, None, :]
    out = np.empty(dt_s.shape + (6,), dtype=np.float64)
    out[..., 0:3] = x[..., None] * P + y[..., None] * Q
    out[..., 3:6] = vx[..., None] * P + vy[..., None] * Q
    return out


def _check(obj_id: str, elements: OrbitalElements | None) -> OrbitalElements:
    if elements is None:
        raise PropagationError(f"Object {obj_id} has no orbital elements")
    if elements.is_degenerate:
        raise PropagationError(
            f"Degenerate elements for object {obj_id}: a={elements.a_km} km, e={elements.e}"
        )
    return elements


def propagate(obj: TrackedObject, times: list[datetime]) -> list[StateVector]:
    """Propagate a single object to multiple times.

    Args:
        obj: A tracked object with elements at ``obj.epoch``.
        times: List of UTC datetimes to propagate to.

    Returns:
        List of StateVector objects, one per requested time.

    Raises:
        PropagationError: If the object's elements are missing or degenerate.
    """
    elements = _check(obj.object_id, obj.elements)
    offsets = np.array([[(t - obj.epoch).total_seconds() for t in times]], dtype=np.float64)
    states = _states(_element_matrix([elements]), offsets)[0]

    logger.debug("Propagated object %s to %d times", obj.object_id, len(times))
    return [
        StateVector(position_km=s[0:3].copy(), velocity_km_s=s[3:6].copy(), epoch=t)
        for s, t in zip(states, times)
    ]


def propagate_elements(elements: OrbitalElements, dt_s: float) -> NDArray[np.float64]:
    """Propagate elements by ``dt_s`` seconds and return ``[x, y, z, vx, vy, vz]``."""
    return _states(_element_matrix([elements]), np.array([[dt_s]], dtype=np.float64))[0, 0]


def propagate_batch(
    objects: list[TrackedObject],
    start: datetime,
    offsets_s: NDArray[np.float64],
) -> tuple[NDArray[np.float64], NDArray[np.bool_]]:
    """Propagate many objects onto a common time grid.

    Degenerate or missing elements do not raise; they are reported through
    the validity mask and their rows are filled with NaN.

    Args:
        objects: Objects to propagate, each from its own epoch.
        start: Reference time the offsets are measured from.
        offsets_s: Grid offsets in seconds from ``start``, shape (m,).

    Returns:
        Tuple of:
            - states: Array of shape (n, m, 6) with [x,y,z,vx,vy,vz] in km, km/s
            - valid_mask: Boolean array of shape (n,) indicating which propagations succeeded
    """
    offsets_s = np.asarray(offsets_s, dtype=np.float64).reshape(-1)
    n, m = len(objects), offsets_s.size
    states = np.full((n, m, 6), np.nan, dtype=np.float64)
    valid = np.zeros(n, dtype=np.bool_)
    if n == 0:
        return states, valid

    good: list[int] = []
    for idx, obj in enumerate(objects):
        if obj.elements is None or obj.elements.is_degenerate:
            logger.warning("Skipping propagation of object %s: missing or degenerate elements", obj.object_id)
            continue
        good.append(idx)
    if not good:
        return states, valid

    el = _element_matrix([objects[i].elements for i in good])
    epoch_shift = np.array([(start - objects[i].epoch).total_seconds() for i in good])
    dt = epoch_shift[:, None] + offsets_s[None, :]
    states[good] = _states(el, dt)
    valid[good] = True
    return states, valid

"""Tracked objects and their Keplerian orbital elements."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

import numpy as np
from numpy.typing import NDArray

from debriscast.errors import PropagationError
from debriscast.utils.constants import EARTH_MU_KM3_S2 as MU, EARTH_RADIUS_KM as RE

logger = logging.getLogger(__name__)

INDEFINITE_LIFETIME: float = math.inf
"""Lifetime marker for very high, stable orbits that will not decay."""

_TWO_PI = 2.0 * math.pi
_EPS = 1e-11


class ObjectType(str, Enum):
    PAYLOAD = "payload"
    ROCKET_BODY = "rocket_body"
    DEBRIS = "debris"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> ObjectType:
        """Map catalog spellings ("ROCKET BODY", "R/B", "deb") onto a type."""
        if not value:
            return cls.UNKNOWN
        key = value.strip().lower().replace(" ", "_").replace("/", "")
        aliases = {
            "payload": cls.PAYLOAD,
            "rocket_body": cls.ROCKET_BODY,
            "rb": cls.ROCKET_BODY,
            "debris": cls.DEBRIS,
            "deb": cls.DEBRIS,
        }
        return aliases.get(key, cls.UNKNOWN)


@dataclass(frozen=True)
class OrbitalElements:
    """Classical Keplerian elements (angles in radians).

    Attributes:
        a_km: Semi-major axis in km.
        e: Eccentricity.
        i_rad: Inclination.
        raan_rad: Right ascension of the ascending node.
        argp_rad: Argument of perigee.
        mean_anomaly_rad: Mean anomaly at the object's epoch.
    """

    a_km: float
    e: float
    i_rad: float
    raan_rad: float
    argp_rad: float
    mean_anomaly_rad: float

    @property
    def is_degenerate(self) -> bool:
        values = (self.a_km, self.e, self.i_rad, self.raan_rad, self.argp_rad, self.mean_anomaly_rad)
        return (
            not all(math.isfinite(v) for v in values)
            or self.a_km <= 0
            or self.e < 0
            or self.e >= 1
        )

    @property
    def mean_motion_rad_s(self) -> float:
        return math.sqrt(MU / self.a_km**3)

    @property
    def period_s(self) -> float:
        return _TWO_PI / self.mean_motion_rad_s

    @property
    def perigee_altitude_km(self) -> float:
        return self.a_km * (1.0 - self.e) - RE

    @property
    def apogee_altitude_km(self) -> float:
        return self.a_km * (1.0 + self.e) - RE

    @property
    def mean_altitude_km(self) -> float:
        return self.a_km - RE

    @classmethod
    def from_mean_motion(
        cls,
        mean_motion_rev_per_day: float,
        e: float,
        i_deg: float,
        raan_deg: float,
        argp_deg: float,
        mean_anomaly_deg: float,
    ) -> OrbitalElements:
        """Build elements from TLE/GP style mean motion and degree angles."""
        if mean_motion_rev_per_day <= 0:
            raise PropagationError(f"Mean motion must be positive, got {mean_motion_rev_per_day}")
        n_rad_s = mean_motion_rev_per_day * _TWO_PI / 86400.0
        a = (MU / n_rad_s**2) ** (1.0 / 3.0)
        return cls(
            a_km=a,
            e=e,
            i_rad=math.radians(i_deg),
            raan_rad=math.radians(raan_deg),
            argp_rad=math.radians(argp_deg),
            mean_anomaly_rad=math.radians(mean_anomaly_deg),
        )

    @classmethod
    def from_state(
        cls, position_km: NDArray[np.float64], velocity_km_s: NDArray[np.float64]
    ) -> OrbitalElements:
        """Convert an inertial position/velocity state into elements.

        Circular orbits get ``argp = 0`` with the anomaly measured from the
        node; equatorial orbits get ``raan = 0``.

        Raises:
            PropagationError: If the state is not a bound ellipse.
        """
        r_vec = np.asarray(position_km, dtype=np.float64)
        v_vec = np.asarray(velocity_km_s, dtype=np.float64)
        r = float(np.linalg.norm(r_vec))
        v = float(np.linalg.norm(v_vec))
        if r <= 0 or not np.all(np.isfinite(r_vec)) or not np.all(np.isfinite(v_vec)):
            raise PropagationError("State vector is zero or non-finite")

        energy = v * v / 2.0 - MU / r
        if energy >= 0:
            raise PropagationError(f"State is not a bound orbit (specific energy {energy:.3f})")
        a = -MU / (2.0 * energy)

        h_vec = np.cross(r_vec, v_vec)
        h = float(np.linalg.norm(h_vec))
        if h < _EPS:
            raise PropagationError("State is rectilinear (zero angular momentum)")
        n_vec = np.array([-h_vec[1], h_vec[0], 0.0])
        n = float(np.linalg.norm(n_vec))
        e_vec = ((v * v - MU / r) * r_vec - float(np.dot(r_vec, v_vec)) * v_vec) / MU
        e = float(np.linalg.norm(e_vec))
        if e >= 1.0:
            raise PropagationError(f"Eccentricity {e:.6f} is not elliptical")

        i = math.acos(max(-1.0, min(1.0, h_vec[2] / h)))
        raan = math.atan2(n_vec[1], n_vec[0]) % _TWO_PI if n > _EPS else 0.0

        if e > 1e-9:
            if n > _EPS:
                argp = _angle_between(n_vec, e_vec)
                if e_vec[2] < 0:
                    argp = _TWO_PI - argp
            else:
                argp = math.atan2(e_vec[1], e_vec[0]) % _TWO_PI
                if h_vec[2] < 0:
                    argp = (_TWO_PI - argp) % _TWO_PI
            nu = _angle_between(e_vec, r_vec)
            if np.dot(r_vec, v_vec) < 0:
                nu = _TWO_PI - nu
        else:
            e = 0.0
            argp = 0.0
            if n > _EPS:
                nu = _angle_between(n_vec, r_vec)
                if r_vec[2] < 0:
                    nu = _TWO_PI - nu
            else:
                nu = math.atan2(r_vec[1], r_vec[0]) % _TWO_PI
                if h_vec[2] < 0:
                    nu = (_TWO_PI - nu) % _TWO_PI

        ecc_anomaly = 2.0 * math.atan2(
            math.sqrt(1.0 - e) * math.sin(nu / 2.0), math.sqrt(1.0 + e) * math.cos(nu / 2.0)
        )
        mean_anomaly = (ecc_anomaly - e * math.sin(ecc_anomaly)) % _TWO_PI
        return cls(a_km=a, e=e, i_rad=i, raan_rad=raan, argp_rad=argp, mean_anomaly_rad=mean_anomaly)


def _angle_between(u: NDArray[np.float64], w: NDArray[np.float64]) -> float:
    cos = float(np.dot(u, w) / (np.linalg.norm(u) * np.linalg.norm(w)))
    return math.acos(max(-1.0, min(1.0, cos)))


@dataclass(frozen=True)
class TrackedObject:
    """A catalogued space object as supplied by the catalog feed.

    The orbital regime is not stored here: it is always derived from
    ``elements`` by :mod:`debriscast.core.classifier`.

    Attributes:
        object_id: Catalog identifier (NORAD number as a string).
        object_type: Payload, rocket body, debris or unknown.
        epoch: Epoch of ``elements`` (UTC).
        elements: Orbital elements, or None when the feed supplied no usable state.
        is_active: Whether the object is an operating spacecraft.
        hard_body_radius_m: Physical radius used for collision cross-section.
        position_sigma_km: 1-sigma position uncertainty per axis.
        lifetime_years: Remaining orbital lifetime, INDEFINITE_LIFETIME, or None if unknown.
        trackable: Whether the object is reliably tracked.
        name: Display name.
        mass_kg: Mass if known.
        end_of_mission: When the object stopped operating, if known.
    """

    object_id: str
    object_type: ObjectType
    epoch: datetime
    elements: OrbitalElements | None
    is_active: bool = False
    hard_body_radius_m: float | None = None
    position_sigma_km: tuple[float, float, float] | None = None
    lifetime_years: float | None = None
    trackable: bool = True
    name: str = ""
    mass_kg: float | None = None
    end_of_mission: datetime | None = None

    def __post_init__(self) -> None:
        if not self.object_id:
            raise ValueError("object_id must not be empty")
        if self.epoch.tzinfo is None:
            object.__setattr__(self, "epoch", self.epoch.replace(tzinfo=timezone.utc))
        if self.lifetime_years is not None and not self.lifetime_years >= 0:
            raise ValueError(f"lifetime_years must be non-negative, got {self.lifetime_years}")
        if self.hard_body_radius_m is not None and self.hard_body_radius_m < 0:
            raise ValueError(f"hard_body_radius_m must be non-negative, got {self.hard_body_radius_m}")
        if self.position_sigma_km is not None and any(s < 0 for s in self.position_sigma_km):
            raise ValueError("position_sigma_km entries must be non-negative")

    @property
    def has_indefinite_lifetime(self) -> bool:
        return self.lifetime_years is not None and math.isinf(self.lifetime_years)

from __future__ import annotations

"""Physical constants and default thresholds for the population model.

Distances in km, velocities in km/s, times in seconds unless noted.
"""

# --- Earth parameters (WGS-84) ---
EARTH_RADIUS_KM: float = 6378.137
"""Equatorial radius of Earth in km."""

EARTH_MU_KM3_S2: float = 398600.4418
"""Earth gravitational parameter (GM) in km³/s²."""

SECONDS_PER_DAY: float = 86400.0
SECONDS_PER_YEAR: float = 365.25 * SECONDS_PER_DAY

# --- Default screening thresholds ---
DEFAULT_SCREENING_DISTANCE_KM: float = 5.0
"""Default miss distance threshold for conjunction screening in km."""

DEFAULT_SCREENING_WINDOW_DAYS: float = 1.0
"""Default forward screening window in days."""

DEFAULT_STEP_SECONDS: float = 60.0
"""Default fine-grid sample spacing in seconds."""

DEFAULT_MANEUVER_THRESHOLD: float = 1e-4
"""Default collision probability above which a maneuver is required."""

# --- Common hard-body radii ---
HARD_BODY_RADIUS_SMALL_M: float = 1.0
"""Hard-body radius for small objects (RCS < 0.1 m²) in meters."""

HARD_BODY_RADIUS_MEDIUM_M: float = 5.0
"""Hard-body radius for medium objects in meters."""

HARD_BODY_RADIUS_LARGE_M: float = 20.0
"""Hard-body radius for large satellites/upper stages in meters."""

DEFAULT_HARD_BODY_RADIUS_M: float = HARD_BODY_RADIUS_SMALL_M
"""Used when the catalog does not report a size."""

# --- Orbit regime boundaries ---
LEO_MIN_ALT_KM: float = 100.0
"""Lower edge of Low Earth Orbit in km (Karman line)."""

LEO_MAX_ALT_KM: float = 2000.0
"""Maximum altitude for Low Earth Orbit in km."""

GEO_ALT_KM: float = 35786.0
"""Geostationary orbit altitude in km."""

GEO_TOLERANCE_KM: float = 200.0
"""Half-width of the GEO protected band in km."""

# --- Deorbit guideline ---
DEORBIT_RULE_YEARS: float = 25.0
"""Post-mission lifetime limit of the 25-year rule."""

REENTRY_ALTITUDE_KM: float = 120.0
"""Altitude at which an object is treated as re-entered."""

DEFAULT_BALLISTIC_COEFF_M2_KG: float = 0.0172
"""Cd*A/m used when an object's area or mass is unknown."""

DRAG_COEFFICIENT: float = 2.2

"""Orbit regime classification."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from debriscast.config import Regime, RegimeBands
from debriscast.core.objects import OrbitalElements, TrackedObject
from debriscast.errors import ClassificationError
from debriscast.utils.constants import EARTH_RADIUS_KM

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassifiedObject:
    """A tracked object paired with the regime derived from its elements.

    ``regime`` is None when the object could not be classified; such objects
    still count toward catalog totals.
    """

    obj: TrackedObject
    regime: Regime | None


def _classify_radius(radius_km: float, bands: RegimeBands) -> Regime:
    # edges as geocentric radii: Earth radius + band edge
    if EARTH_RADIUS_KM + bands.leo_min_km <= radius_km < EARTH_RADIUS_KM + bands.leo_max_km:
        return Regime.LEO
    if EARTH_RADIUS_KM + bands.leo_max_km <= radius_km < EARTH_RADIUS_KM + bands.meo_max_km:
        return Regime.MEO
    if EARTH_RADIUS_KM + bands.meo_max_km <= radius_km <= EARTH_RADIUS_KM + bands.geo_max_km:
        return Regime.GEO
    return Regime.OTHER


def classify_altitude(altitude_km: float, bands: RegimeBands) -> Regime:
    """Classify a single altitude against the configured bands."""
    return _classify_radius(EARTH_RADIUS_KM + altitude_km, bands)


def classify_regime(elements: OrbitalElements | None, bands: RegimeBands) -> Regime:
    """Assign an orbital regime from the mean altitude of an orbit.

    Highly elliptical orbits sweep through several shells and are reported
    as ``Regime.OTHER``.

    Raises:
        ClassificationError: If ``elements`` is missing or not finite.
    """
    if elements is None:
        raise ClassificationError("Object has no orbital state")
    if not (math.isfinite(elements.a_km) and math.isfinite(elements.e)):
        raise ClassificationError("Object has a non-finite orbital state")
    if elements.e >= bands.highly_elliptical_eccentricity:
        return Regime.OTHER
    return _classify_radius(elements.a_km, bands)


def classify_catalog(objects: list[TrackedObject], bands: RegimeBands) -> list[ClassifiedObject]:
    """Classify every object, keeping unclassifiable ones with ``regime=None``."""
    result: list[ClassifiedObject] = []
    failures = 0
    for obj in objects:
        try:
            regime = classify_regime(obj.elements, bands)
        except ClassificationError as e:
            logger.warning("Cannot classify object %s: %s", obj.object_id, e)
            regime = None
            failures += 1
        result.append(ClassifiedObject(obj=obj, regime=regime))

    logger.debug("Classified %d objects (%d without a usable state)", len(objects), failures)
    return result

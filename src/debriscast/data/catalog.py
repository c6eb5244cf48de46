"""Catalog records to TrackedObjects.

A record is a mapping with an identifier, type, epoch and one of three
state encodings:

* ``elements``: ``a_km, e, i_deg, raan_deg, argp_deg, mean_anomaly_deg``
* ``state``: ``position_km`` and ``velocity_km_s`` (3-vectors)
* GP/OMM style keys: ``MEAN_MOTION, ECCENTRICITY, INCLINATION,
  RA_OF_ASC_NODE, ARG_OF_PERICENTER, MEAN_ANOMALY``

Malformed state degrades to ``elements=None`` with a warning; the object
still counts in catalog totals.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from debriscast.core.objects import INDEFINITE_LIFETIME, ObjectType, OrbitalElements, TrackedObject
from debriscast.errors import CatalogError

logger = logging.getLogger(__name__)

_GP_KEYS = ("MEAN_MOTION", "ECCENTRICITY", "INCLINATION", "RA_OF_ASC_NODE", "ARG_OF_PERICENTER", "MEAN_ANOMALY")


def parse_epoch(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported epoch value: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _elements_from_record(record: Mapping[str, Any]) -> OrbitalElements | None:
    if "elements" in record:
        el = record["elements"]
        return OrbitalElements(
            a_km=float(el["a_km"]),
            e=float(el["e"]),
            i_rad=math.radians(float(el["i_deg"])),
            raan_rad=math.radians(float(el.get("raan_deg", 0.0))),
            argp_rad=math.radians(float(el.get("argp_deg", 0.0))),
            mean_anomaly_rad=math.radians(float(el.get("mean_anomaly_deg", 0.0))),
        )
    if "state" in record:
        st = record["state"]
        position = [float(v) for v in st["position_km"]]
        velocity = [float(v) for v in st["velocity_km_s"]]
        if len(position) != 3 or len(velocity) != 3:
            raise ValueError("state vectors must have three components")
        return OrbitalElements.from_state(position, velocity)
    if all(k in record for k in _GP_KEYS):
        return OrbitalElements.from_mean_motion(*(float(record[k]) for k in _GP_KEYS))
    return None


def _non_negative(value: float) -> float:
    if not value >= 0:
        raise ValueError(f"expected a non-negative number, got {value}")
    return value


def _sigma(value: Any) -> tuple[float, float, float] | None:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return (_non_negative(float(value)),) * 3
    values = tuple(_non_negative(float(v)) for v in value)
    if len(values) != 3:
        raise ValueError(f"position_sigma_km needs 1 or 3 values, got {len(values)}")
    return values


def _lifetime(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() == "indefinite":
        return INDEFINITE_LIFETIME
    return _non_negative(float(value))


def _optional_float(value: Any) -> float | None:
    return None if value is None else _non_negative(float(value))


def tracked_object_from_record(
    record: Mapping[str, Any], default_epoch: datetime | None = None
) -> TrackedObject:
    """Build one TrackedObject from a catalog record.

    Raises:
        CatalogError: If the record has no identifier or usable epoch.
    """
    object_id = record.get("object_id", record.get("NORAD_CAT_ID"))
    if object_id is None or str(object_id).strip() == "":
        raise CatalogError(f"Catalog record without identifier: {dict(record)!r}")
    object_id = str(object_id).strip()

    raw_epoch = record.get("epoch", record.get("EPOCH"))
    try:
        epoch = parse_epoch(raw_epoch) if raw_epoch is not None else default_epoch
    except ValueError as e:
        raise CatalogError(f"Object {object_id}: bad epoch {raw_epoch!r}") from e
    if epoch is None:
        raise CatalogError(f"Object {object_id}: no epoch")

    try:
        elements = _elements_from_record(record)
        if elements is None:
            logger.warning("Object %s has no orbital state", object_id)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("Object %s: malformed state (%s); excluded from orbital computations", object_id, e)
        elements = None

    optional: dict[str, Any] = {}
    for key, convert in (
        ("hard_body_radius_m", _optional_float),
        ("position_sigma_km", _sigma),
        ("lifetime_years", _lifetime),
        ("mass_kg", _optional_float),
    ):
        try:
            optional[key] = convert(record.get(key))
        except (TypeError, ValueError) as e:
            logger.warning("Object %s: ignoring malformed %s (%s)", object_id, key, e)
            optional[key] = None

    end_of_mission = record.get("end_of_mission")
    if end_of_mission is not None:
        try:
            end_of_mission = parse_epoch(end_of_mission)
        except ValueError as e:
            logger.warning("Object %s: ignoring malformed end_of_mission (%s)", object_id, e)
            end_of_mission = None

    try:
        return TrackedObject(
            object_id=object_id,
            object_type=ObjectType.parse(record.get("object_type", record.get("OBJECT_TYPE"))),
            epoch=epoch,
            elements=elements,
            is_active=bool(record.get("is_active", False)),
            trackable=bool(record.get("trackable", True)),
            name=str(record.get("name", record.get("OBJECT_NAME", "")) or ""),
            end_of_mission=end_of_mission,
            **optional,
        )
    except ValueError as e:
        raise CatalogError(f"Object {object_id}: {e}") from e


def load_catalog(
    records: Iterable[Mapping[str, Any]], default_epoch: datetime | None = None
) -> list[TrackedObject]:
    """Convert catalog records, skipping only those that cannot be identified.

    Args:
        records: Raw catalog records.
        default_epoch: Epoch for records that carry none.

    Returns:
        List of TrackedObjects in record order.
    """
    objects: list[TrackedObject] = []
    skipped = 0
    for record in records:
        try:
            objects.append(tracked_object_from_record(record, default_epoch))
        except CatalogError as e:
            logger.warning("Skipping catalog record: %s", e)
            skipped += 1
    logger.info("Loaded %d catalog objects (%d skipped)", len(objects), skipped)
    return objects

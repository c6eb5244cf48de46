"""Two-line element sets as a catalog source.

TLE fields are decoded with the ``sgp4`` library and converted into
Keplerian :class:`~debriscast.core.objects.OrbitalElements`. The SGP4 mean
elements are used as osculating elements by the two-body propagator, which
is adequate for population statistics and screening.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sgp4.api import WGS72, Satrec

from debriscast.core.objects import ObjectType, OrbitalElements, TrackedObject

logger = logging.getLogger(__name__)

_DEBRIS_NAME = re.compile(r"\bDEB\b|\bDEBRIS\b|\bCOOLANT\b|\bFRAG")
_ROCKET_NAME = re.compile(r"\bR/B\b|\bROCKET\b|\bAKM\b|\bPKM\b")


def object_type_from_name(name: str) -> ObjectType:
    """Guess the object type from catalog naming conventions.

    ``"COSMOS 2251 DEB"`` is debris, ``"CZ-4C R/B"`` a rocket body, any other
    named object a payload. Nameless objects are unknown.
    """
    upper = name.strip().upper()
    if not upper:
        return ObjectType.UNKNOWN
    if _DEBRIS_NAME.search(upper):
        return ObjectType.DEBRIS
    if _ROCKET_NAME.search(upper):
        return ObjectType.ROCKET_BODY
    return ObjectType.PAYLOAD


@dataclass(frozen=True)
class TLE:
    """A decoded two-line element set.

    Attributes:
        name: Object name (line 0), may be empty.
        norad_id: NORAD catalog number.
        epoch: Element epoch (UTC).
        elements: Keplerian elements derived from the set.
        bstar: SGP4 drag term.
    """

    name: str
    norad_id: int
    epoch: datetime
    elements: OrbitalElements
    bstar: float
    line1: str = field(repr=False)
    line2: str = field(repr=False)

    @classmethod
    def from_lines(cls, line1: str, line2: str, name: str = "") -> TLE:
        """Decode a TLE.

        Raises:
            ValueError: If the lines are malformed or sgp4 rejects them.
        """
        line1 = line1.strip()
        line2 = line2.strip()
        if len(line1) != 69 or not line1.startswith("1"):
            raise ValueError(f"Invalid TLE line 1: {line1!r}")
        if len(line2) != 69 or not line2.startswith("2"):
            raise ValueError(f"Invalid TLE line 2: {line2!r}")

        sat = Satrec.twoline2rv(line1, line2, WGS72)
        if sat.error:
            raise ValueError(f"sgp4 rejected TLE (error code {sat.error}): {line1!r}")

        year = int(line1[18:20])
        year = year + 2000 if year < 57 else year + 1900
        epoch = datetime(year, 1, 1, tzinfo=timezone.utc) + timedelta(days=float(line1[20:32]) - 1)

        elements = OrbitalElements.from_mean_motion(
            sat.no_kozai * 1440.0 / (2.0 * math.pi),
            sat.ecco,
            math.degrees(sat.inclo),
            math.degrees(sat.nodeo),
            math.degrees(sat.argpo),
            math.degrees(sat.mo),
        )
        # strip the "0 " prefix some sources put on name lines
        name = name.strip()
        if name.startswith("0 "):
            name = name[2:].strip()
        return cls(
            name=name,
            norad_id=int(line1[2:7]),
            epoch=epoch,
            elements=elements,
            bstar=sat.bstar,
            line1=line1,
            line2=line2,
        )

    def to_tracked_object(self, object_type: ObjectType | None = None, **kwargs) -> TrackedObject:
        """Build a TrackedObject; the type is inferred from the name unless given."""
        return TrackedObject(
            object_id=str(self.norad_id),
            object_type=object_type or object_type_from_name(self.name),
            epoch=self.epoch,
            elements=self.elements,
            name=self.name,
            **kwargs,
        )


def parse_tle(text: str) -> list[TLE]:
    """Decode every TLE in ``text``.

    Accepts 2-line and 3-line (named) sets. Sets that fail to decode are
    logged and skipped.
    """
    lines = [l.rstrip() for l in text.strip().splitlines() if l.strip()]
    tles: list[TLE] = []
    i = 0
    while i < len(lines):
        name = ""
        if not lines[i].startswith(("1 ", "2 ")) and i + 2 < len(lines):
            name = lines[i]
            i += 1
        if lines[i].startswith("1 ") and i + 1 < len(lines) and lines[i + 1].startswith("2 "):
            try:
                tles.append(TLE.from_lines(lines[i], lines[i + 1], name=name))
            except ValueError as e:
                logger.warning("Skipping TLE: %s", e)
            i += 2
        else:
            i += 1

    logger.debug("Parsed %d TLEs from text", len(tles))
    return tles


def catalog_from_tle(text: str) -> list[TrackedObject]:
    return [tle.to_tracked_object() for tle in parse_tle(text)]

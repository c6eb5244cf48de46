"""Space-Track.org catalog feed.

Fetches general perturbations (GP) records as JSON and converts them into
TrackedObjects. Space-Track reports radar cross-section only as a size class,
which is mapped onto a nominal hard-body radius. GP records have no
operational status; it comes from a set of active NORAD ids, by default
CelesTrak's ``active`` group.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Collection
from dataclasses import dataclass, field
from typing import Any

import requests

from debriscast.core.objects import TrackedObject
from debriscast.data.catalog import tracked_object_from_record
from debriscast.data.celestrak import fetch_active_ids
from debriscast.errors import CatalogError
from debriscast.utils.constants import (
    HARD_BODY_RADIUS_LARGE_M,
    HARD_BODY_RADIUS_MEDIUM_M,
    HARD_BODY_RADIUS_SMALL_M,
)

logger = logging.getLogger(__name__)

RCS_RADIUS_M = {
    "SMALL": HARD_BODY_RADIUS_SMALL_M,
    "MEDIUM": HARD_BODY_RADIUS_MEDIUM_M,
    "LARGE": HARD_BODY_RADIUS_LARGE_M,
}

# SATCAT operational status codes for working spacecraft
_OPERATIONAL_CODES = {"+", "P", "B", "S", "X"}


def record_from_gp(gp: dict[str, Any], active_ids: Collection[str] | None = None) -> dict[str, Any]:
    """Translate a GP JSON record into a catalog record.

    Args:
        gp: One Space-Track GP record.
        active_ids: NORAD ids of operating spacecraft. When given, it decides
            ``is_active``; otherwise a SATCAT ``OPS_STATUS_CODE`` merged into
            the record is used if present.
    """
    record: dict[str, Any] = dict(gp)
    norad_id = gp.get("NORAD_CAT_ID")
    record["object_id"] = norad_id
    record["name"] = gp.get("OBJECT_NAME") or ""
    record["object_type"] = gp.get("OBJECT_TYPE")
    rcs = (gp.get("RCS_SIZE") or "").upper()
    if rcs in RCS_RADIUS_M:
        record["hard_body_radius_m"] = RCS_RADIUS_M[rcs]
    if active_ids is not None:
        record["is_active"] = norad_id is not None and str(norad_id).strip() in active_ids
    else:
        status = gp.get("OPS_STATUS_CODE")
        if status is not None:
            record["is_active"] = status.strip() in _OPERATIONAL_CODES
    return record


@dataclass
class SpaceTrackClient:
    """Client for the Space-Track.org REST API.

    Requires a Space-Track account. Register at https://www.space-track.org.

    Attributes:
        identity: Space-Track username/email.
        password: Space-Track password.
    """

    identity: str
    password: str
    _session: requests.Session = field(default_factory=requests.Session, repr=False)
    _authenticated: bool = field(default=False, repr=False)

    BASE_URL = "https://www.space-track.org"
    LOGIN_URL = f"{BASE_URL}/ajaxauth/login"

    def _login(self) -> None:
        """Authenticate and keep the session cookie.

        Raises:
            requests.HTTPError: If authentication fails.
        """
        response = self._session.post(
            self.LOGIN_URL,
            data={"identity": self.identity, "password": self.password},
        )
        response.raise_for_status()
        if "error" in response.text.lower() or response.status_code != 200:
            logger.error("Space-Track authentication failed")
            raise requests.HTTPError(f"Space-Track authentication failed: {response.text}")

        logger.debug("Space-Track authentication successful")
        self._authenticated = True

    def _request(self, url: str) -> str:
        if not self._authenticated:
            self._login()

        response = self._session.get(url)
        # session expired: log in again once
        if response.status_code == 401:
            self._authenticated = False
            self._login()
            response = self._session.get(url)

        response.raise_for_status()
        return response.text

    def fetch_gp_records(self, *, epoch: str = ">now-30") -> list[dict[str, Any]]:
        """Fetch raw GP records for all objects that have not decayed.

        Raises:
            CatalogError: If the response is not valid JSON.
            requests.HTTPError: If the request fails.
        """
        url = (
            f"{self.BASE_URL}/basicspacedata/query/class/gp/"
            f"EPOCH/{epoch}/DECAY_DATE/null-val/orderby/NORAD_CAT_ID/format/json"
        )
        text = self._request(url)
        if not text.strip():
            return []
        try:
            records = json.loads(text)
        except json.JSONDecodeError as e:
            raise CatalogError(f"Space-Track returned malformed JSON: {e}") from e
        if not isinstance(records, list):
            raise CatalogError("Space-Track response is not a list of GP records")
        return records

    def _fetch_active_ids(self) -> set[str] | None:
        try:
            return fetch_active_ids(self._session)
        except (requests.RequestException, CatalogError) as e:
            logger.warning("Operational status unavailable, objects default to inactive: %s", e)
            return None

    def fetch_catalog(
        self,
        *,
        epoch: str = ">now-30",
        active_ids: Collection[str] | None = None,
    ) -> list[TrackedObject]:
        """Fetch the on-orbit catalog as TrackedObjects.

        Records with a decay date or without an identifier are skipped.

        Args:
            epoch: Space-Track epoch predicate for the GP query.
            active_ids: NORAD ids of operating spacecraft. Fetched from
                CelesTrak when not given.
        """
        records = self.fetch_gp_records(epoch=epoch)
        if active_ids is None:
            active_ids = self._fetch_active_ids()

        objects: list[TrackedObject] = []
        for gp in records:
            if gp.get("DECAY_DATE"):
                continue
            try:
                objects.append(tracked_object_from_record(record_from_gp(gp, active_ids)))
            except CatalogError as e:
                logger.warning("Skipping GP record: %s", e)
        logger.info(
            "Fetched %d objects from Space-Track (%d active)",
            len(objects), sum(1 for o in objects if o.is_active),
        )
        return objects

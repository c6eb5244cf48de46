"""Operational status from CelesTrak.

Space-Track GP records carry no operational status. CelesTrak publishes the
set of operating spacecraft as its ``active`` group, which is used to mark
catalog objects active.
"""

from __future__ import annotations

import json
import logging

import requests

from debriscast.errors import CatalogError

logger = logging.getLogger(__name__)

ACTIVE_GROUP_URL = "https://celestrak.org/NORAD/elements/gp.php?GROUP=active&FORMAT=json"


def fetch_active_ids(
    session: requests.Session | None = None,
    url: str = ACTIVE_GROUP_URL,
    timeout: float = 30.0,
) -> set[str]:
    """NORAD ids of operating spacecraft.

    Raises:
        CatalogError: If the response is not a JSON list of GP records.
        requests.HTTPError: If the request fails.
    """
    session = session or requests.Session()
    response = session.get(url, timeout=timeout)
    response.raise_for_status()
    try:
        records = json.loads(response.text)
    except json.JSONDecodeError as e:
        raise CatalogError(f"CelesTrak returned malformed JSON: {e}") from e
    if not isinstance(records, list):
        raise CatalogError("CelesTrak response is not a list of GP records")

    ids = {str(r["NORAD_CAT_ID"]).strip() for r in records if r.get("NORAD_CAT_ID") is not None}
    logger.info("CelesTrak lists %d active spacecraft", len(ids))
    return ids

"""Tests for catalog ingestion: records, TLEs and Space-Track."""
from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from debriscast.core.objects import ObjectType
from debriscast.data.catalog import load_catalog, tracked_object_from_record
from debriscast.data.celestrak import ACTIVE_GROUP_URL, fetch_active_ids
from debriscast.data.spacetrack import SpaceTrackClient, record_from_gp
from debriscast.data.tle import TLE, catalog_from_tle, object_type_from_name, parse_tle
from debriscast.errors import CatalogError
from debriscast.utils.constants import EARTH_MU_KM3_S2, HARD_BODY_RADIUS_LARGE_M

ISS_TLE_TEXT = (
    "1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9993\n"
    "2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439596\n"
)

GP_RECORDS = [
    {
        "NORAD_CAT_ID": "25544",
        "OBJECT_NAME": "ISS (ZARYA)",
        "OBJECT_TYPE": "PAYLOAD",
        "EPOCH": "2024-02-14T13:10:30.161664",
        "MEAN_MOTION": "15.49583488",
        "ECCENTRICITY": "0.0004948",
        "INCLINATION": "51.6412",
        "RA_OF_ASC_NODE": "207.4925",
        "ARG_OF_PERICENTER": "290.5508",
        "MEAN_ANOMALY": "178.9792",
        "RCS_SIZE": "LARGE",
        "DECAY_DATE": None,
    },
    {
        "NORAD_CAT_ID": "22566",
        "OBJECT_NAME": "SL-16 R/B",
        "OBJECT_TYPE": "ROCKET BODY",
        "EPOCH": "2024-02-14T02:00:00",
        "MEAN_MOTION": "14.12",
        "ECCENTRICITY": "0.001",
        "INCLINATION": "71.0",
        "RA_OF_ASC_NODE": "10.0",
        "ARG_OF_PERICENTER": "20.0",
        "MEAN_ANOMALY": "30.0",
        "RCS_SIZE": None,
        "DECAY_DATE": None,
    },
    {
        "NORAD_CAT_ID": "11111",
        "OBJECT_NAME": "OLD DEB",
        "OBJECT_TYPE": "DEBRIS",
        "EPOCH": "2020-01-01T00:00:00",
        "MEAN_MOTION": "16.2",
        "ECCENTRICITY": "0.0",
        "INCLINATION": "0.0",
        "RA_OF_ASC_NODE": "0.0",
        "ARG_OF_PERICENTER": "0.0",
        "MEAN_ANOMALY": "0.0",
        "DECAY_DATE": "2020-03-01",
    },
]


# ---------------------------------------------------------------------------
# Catalog records
# ---------------------------------------------------------------------------

class TestRecords:
    """Record formats and graceful degradation."""

    def test_elements_record(self):
        obj = tracked_object_from_record({
            "object_id": 7, "object_type": "payload", "epoch": "2024-02-14T00:00:00Z",
            "elements": {"a_km": 7000.0, "e": 0.001, "i_deg": 98.0},
            "hard_body_radius_m": 2.0, "position_sigma_km": 0.05, "is_active": True,
        })
        assert obj.object_id == "7"
        assert obj.object_type == ObjectType.PAYLOAD
        assert obj.elements.a_km == 7000.0
        assert obj.elements.i_rad == pytest.approx(math.radians(98.0))
        assert obj.position_sigma_km == (0.05, 0.05, 0.05)
        assert obj.epoch.tzinfo is not None
        assert obj.is_active

    def test_state_record(self):
        r = 7000.0
        v = math.sqrt(EARTH_MU_KM3_S2 / r)
        obj = tracked_object_from_record({
            "object_id": "8", "object_type": "debris", "epoch": "2024-02-14T00:00:00",
            "state": {"position_km": [r, 0, 0], "velocity_km_s": [0, v, 0]},
        })
        assert obj.elements.a_km == pytest.approx(r)

    def test_malformed_state_degrades(self, caplog):
        obj = tracked_object_from_record({
            "object_id": "9", "epoch": "2024-02-14T00:00:00",
            "state": {"position_km": [7000.0, 0.0, 0.0], "velocity_km_s": [0.0, 20.0, 0.0]},
        })
        assert obj.elements is None
        assert obj.object_type == ObjectType.UNKNOWN
        assert "malformed state" in caplog.text

    def test_malformed_optional_fields_dropped(self):
        obj = tracked_object_from_record({
            "object_id": "10", "epoch": "2024-02-14T00:00:00",
            "elements": {"a_km": 7000.0, "e": 0.0, "i_deg": 0.0},
            "lifetime_years": -3, "hard_body_radius_m": "big", "position_sigma_km": [0.1, 0.2],
        })
        assert obj.lifetime_years is None
        assert obj.hard_body_radius_m is None
        assert obj.position_sigma_km is None

    def test_indefinite_lifetime(self):
        obj = tracked_object_from_record({
            "object_id": "11", "epoch": "2024-02-14T00:00:00", "lifetime_years": "indefinite",
        })
        assert obj.has_indefinite_lifetime

    def test_missing_id(self):
        with pytest.raises(CatalogError):
            tracked_object_from_record({"epoch": "2024-02-14T00:00:00"})

    def test_load_catalog_skips_unidentifiable(self):
        default = datetime(2024, 2, 14, tzinfo=timezone.utc)
        objects = load_catalog([{"object_id": "1"}, {"name": "nobody"}, {"object_id": "2"}], default_epoch=default)
        assert [o.object_id for o in objects] == ["1", "2"]
        assert all(o.elements is None for o in objects)
        assert objects[0].epoch == default


# ---------------------------------------------------------------------------
# TLE
# ---------------------------------------------------------------------------

class TestTLE:
    """TLE decoding via sgp4."""

    def test_iss(self):
        tle = TLE.from_lines(*ISS_TLE_TEXT.splitlines(), name="ISS (ZARYA)")
        assert tle.norad_id == 25544
        assert tle.epoch.year == 2024
        assert tle.elements.i_rad == pytest.approx(math.radians(51.6412), abs=1e-6)
        assert tle.elements.e == pytest.approx(0.0004948)
        assert 400.0 < tle.elements.mean_altitude_km < 450.0

    def test_invalid_line(self):
        with pytest.raises(ValueError, match="line 1"):
            TLE.from_lines("1 garbage", ISS_TLE_TEXT.splitlines()[1])

    def test_parse_three_line(self):
        tles = parse_tle("COSMOS 2251 DEB\n" + ISS_TLE_TEXT)
        assert len(tles) == 1
        assert tles[0].name == "COSMOS 2251 DEB"

    def test_parse_skips_junk(self):
        assert len(parse_tle(ISS_TLE_TEXT + "not a tle\n" + ISS_TLE_TEXT)) == 2

    @pytest.mark.parametrize("name,expected", [
        ("COSMOS 2251 DEB", ObjectType.DEBRIS),
        ("FENGYUN 1C DEB", ObjectType.DEBRIS),
        ("CZ-4C R/B", ObjectType.ROCKET_BODY),
        ("ISS (ZARYA)", ObjectType.PAYLOAD),
        ("", ObjectType.UNKNOWN),
    ])
    def test_type_from_name(self, name, expected):
        assert object_type_from_name(name) == expected

    def test_catalog_from_tle(self):
        objects = catalog_from_tle("CZ-4C R/B\n" + ISS_TLE_TEXT)
        assert objects[0].object_id == "25544"
        assert objects[0].object_type == ObjectType.ROCKET_BODY


# ---------------------------------------------------------------------------
# Space-Track client mocked HTTP tests
# ---------------------------------------------------------------------------

ACTIVE_JSON = json.dumps([{"NORAD_CAT_ID": 25544, "OBJECT_NAME": "ISS (ZARYA)"}])


def _make_response(status_code: int = 200, text: str = "") -> MagicMock:
    """Helper to create a mock response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    resp.raise_for_status = MagicMock()
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(response=resp)
    return resp


def _routed_get(gp_text: str, active_response: MagicMock | None = None):
    """session.get stand-in that answers Space-Track and CelesTrak URLs."""
    def get(url, **kwargs):
        if url == ACTIVE_GROUP_URL:
            return active_response or _make_response(200, ACTIVE_JSON)
        return _make_response(200, gp_text)
    return get


def test_spacetrack_client_init():
    client = SpaceTrackClient(identity="test@example.com", password="secret123")
    assert client._authenticated is False
    assert client.BASE_URL == "https://www.space-track.org"


class TestRecordFromGP:
    """GP record mapping."""

    def test_radius_from_rcs(self):
        record = record_from_gp(GP_RECORDS[0])
        assert record["object_id"] == "25544"
        assert record["hard_body_radius_m"] == HARD_BODY_RADIUS_LARGE_M

    def test_active_from_id_set(self):
        assert record_from_gp(GP_RECORDS[0], {"25544"})["is_active"] is True
        assert record_from_gp(GP_RECORDS[1], {"25544"})["is_active"] is False

    def test_active_from_satcat_status(self):
        assert record_from_gp({**GP_RECORDS[0], "OPS_STATUS_CODE": "+"})["is_active"] is True
        assert record_from_gp({**GP_RECORDS[0], "OPS_STATUS_CODE": "-"})["is_active"] is False

    def test_no_status_source(self):
        assert "is_active" not in record_from_gp(GP_RECORDS[0])


def test_fetch_active_ids():
    session = MagicMock()
    session.get.return_value = _make_response(200, ACTIVE_JSON)
    assert fetch_active_ids(session) == {"25544"}
    assert session.get.call_args.args[0] == ACTIVE_GROUP_URL


def test_fetch_active_ids_bad_json():
    session = MagicMock()
    session.get.return_value = _make_response(200, "<html>")
    with pytest.raises(CatalogError):
        fetch_active_ids(session)


def test_fetch_catalog():
    client = SpaceTrackClient(identity="user", password="pass")
    with patch.object(client._session, "post", return_value=_make_response(200, "OK")):
        with patch.object(client._session, "get", side_effect=_routed_get(json.dumps(GP_RECORDS))):
            objects = client.fetch_catalog()
    assert [o.object_id for o in objects] == ["25544", "22566"]
    iss, rocket = objects
    assert iss.object_type == ObjectType.PAYLOAD
    assert iss.is_active
    assert iss.hard_body_radius_m == HARD_BODY_RADIUS_LARGE_M
    assert rocket.object_type == ObjectType.ROCKET_BODY
    assert not rocket.is_active
    assert rocket.hard_body_radius_m is None
    assert 700.0 < rocket.elements.mean_altitude_km < 900.0


def test_fetch_catalog_with_supplied_active_ids():
    client = SpaceTrackClient(identity="user", password="pass")
    with patch.object(client._session, "post", return_value=_make_response(200, "OK")):
        with patch.object(client._session, "get", return_value=_make_response(200, json.dumps(GP_RECORDS))) as get:
            objects = client.fetch_catalog(active_ids={"22566"})
    assert get.call_count == 1
    assert [o.is_active for o in objects] == [False, True]


def test_fetch_catalog_status_unavailable(caplog):
    client = SpaceTrackClient(identity="user", password="pass")
    down = _make_response(503)
    with patch.object(client._session, "post", return_value=_make_response(200, "OK")):
        with patch.object(client._session, "get", side_effect=_routed_get(json.dumps(GP_RECORDS), down)):
            objects = client.fetch_catalog()
    assert len(objects) == 2
    assert not any(o.is_active for o in objects)
    assert "Operational status unavailable" in caplog.text


def test_fetch_catalog_empty():
    client = SpaceTrackClient(identity="user", password="pass")
    with patch.object(client._session, "post", return_value=_make_response(200, "OK")):
        with patch.object(client._session, "get", side_effect=_routed_get("")):
            assert client.fetch_catalog() == []


def test_fetch_catalog_bad_json():
    client = SpaceTrackClient(identity="user", password="pass")
    with patch.object(client._session, "post", return_value=_make_response(200, "OK")):
        with patch.object(client._session, "get", side_effect=_routed_get("<html>")):
            with pytest.raises(CatalogError):
                client.fetch_catalog()


def test_reauthenticates_on_401():
    client = SpaceTrackClient(identity="user", password="pass")
    resp_401 = MagicMock()
    resp_401.status_code = 401
    with patch.object(client._session, "post", return_value=_make_response(200, "OK")) as post:
        with patch.object(
            client._session, "get", side_effect=[resp_401, _make_response(200, json.dumps(GP_RECORDS))]
        ):
            records = client.fetch_gp_records()
    assert len(records) == 3
    assert post.call_count == 2


def test_login_failure():
    client = SpaceTrackClient(identity="user", password="wrong")
    with patch.object(client._session, "post", return_value=_make_response(200, '{"Login":"Failed", "error": 1}')):
        with pytest.raises(requests.HTTPError):
            client.fetch_gp_records()

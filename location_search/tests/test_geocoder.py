from unittest.mock import MagicMock

import requests

from location_search.cancellation import CancellationToken
from location_search.config import Config
from location_search.geocoder import NominatimGeocoder, format_general_label, format_specific_label
from location_search.models import Coordinates, Source


def _response(payload):
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


def _geocoder(payload=None, **config_kw):
    session = MagicMock()
    session.get.return_value = _response(payload if payload is not None else [])
    return NominatimGeocoder(Config(**config_kw), session=session), session


QUEEN_ST = {
    "place_id": 101,
    "display_name": "123, Queen Street West, Financial District, Toronto, Ontario, M5H 2M9, Canada",
    "lat": "43.6532",
    "lon": "-79.3832",
    "class": "place",
    "type": "house",
    "address": {
        "house_number": "123",
        "road": "Queen Street West",
        "city": "Toronto",
        "state": "Ontario",
        "country": "Canada",
    },
}

CN_TOWER = {
    "place_id": 202,
    "display_name": "CN Tower, 290, Bremner Boulevard, Toronto, Ontario, Canada",
    "name": "CN Tower",
    "lat": "43.6426",
    "lon": "-79.3871",
    "class": "tourism",
    "type": "attraction",
    "address": {"road": "Bremner Boulevard", "city": "Toronto", "state": "Ontario", "country": "Canada"},
}


def test_specific_label_prefers_street_address():
    assert format_specific_label(QUEEN_ST) == "123 Queen Street West"


def test_specific_label_falls_back_to_name_then_road_then_display_name():
    assert format_specific_label(CN_TOWER) == "CN Tower"
    assert format_specific_label({"address": {"road": "Bremner Boulevard"}, "display_name": "x, Toronto"}) == "Bremner Boulevard"
    assert format_specific_label({"display_name": "Toronto, Ontario, Canada"}) == "Toronto"


def test_general_label_uses_town_when_no_city():
    item = {"address": {"town": "Oakville", "state": "Ontario", "country": "Canada"}}
    assert format_general_label(item) == "Oakville, Ontario, Canada"


def test_geocode_maps_fields():
    geocoder, _ = _geocoder([QUEEN_ST])
    results = geocoder.geocode("123 queen", CancellationToken())
    assert len(results) == 1
    r = results[0]
    assert r.id == "nom-101"
    assert r.name == "123 Queen Street West"
    assert r.address == "Toronto, Ontario, Canada"
    assert (r.lat, r.lng) == (43.6532, -79.3832)
    assert r.source == Source.NOMINATIM
    assert r.icon == "🏠"
    assert r.type == "house"
    assert r.distance_km is None


def test_geocode_distance_and_viewbox_with_reference():
    geocoder, session = _geocoder([QUEEN_ST])
    ref = Coordinates(43.6532, -79.3832)
    results = geocoder.geocode("queen", CancellationToken(), ref)
    assert results[0].distance_km == 0.0

    params = session.get.call_args.kwargs["params"]
    assert params["bounded"] == "0"
    west, north, east, south = (float(v) for v in params["viewbox"].split(","))
    assert west < ref.lng < east
    assert south < ref.lat < north


def test_geocode_request_shape():
    geocoder, session = _geocoder([], nominatim_user_agent="tests/1.0")
    geocoder.geocode("cn tower", CancellationToken())
    kwargs = session.get.call_args.kwargs
    assert kwargs["params"]["q"] == "cn tower"
    assert kwargs["params"]["addressdetails"] == "1"
    assert "viewbox" not in kwargs["params"]
    assert kwargs["headers"]["User-Agent"] == "tests/1.0"
    assert kwargs["timeout"] == 5.0


def test_geocode_drops_malformed_coordinates():
    bad_lat = dict(QUEEN_ST, place_id=1, lat="abc")
    out_of_range = dict(QUEEN_ST, place_id=2, lat="95.0")
    missing = {k: v for k, v in CN_TOWER.items() if k != "lon"}
    geocoder, _ = _geocoder([bad_lat, out_of_range, missing, CN_TOWER])
    results = geocoder.geocode("tower", CancellationToken())
    assert [r.id for r in results] == ["nom-202"]


def test_geocode_dedupes_upstream_near_duplicates():
    same_spot = dict(CN_TOWER, place_id=203, lat="43.64262", lon="-79.38708",
                     address={"city": "Old Toronto"}, name="Tour CN")
    same_name = dict(CN_TOWER, place_id=204, lat="43.70", lon="-79.50")
    geocoder, _ = _geocoder([CN_TOWER, same_spot, same_name])
    results = geocoder.geocode("cn tower", CancellationToken())
    assert [r.id for r in results] == ["nom-202"]


def test_geocode_caps_results():
    items = [
        dict(CN_TOWER, place_id=i, name=f"Tower {i}", lat=str(40 + i), lon="-79.0", address={})
        for i in range(10)
    ]
    geocoder, _ = _geocoder(items)
    assert len(geocoder.geocode("tower", CancellationToken())) == 6


def test_geocode_network_errors_degrade_to_empty():
    for error in (requests.ConnectionError("down"), requests.Timeout("slow")):
        geocoder, session = _geocoder()
        session.get.side_effect = error
        token = CancellationToken()
        assert geocoder.geocode("tower", token) == []
        assert token.degraded


def test_geocode_http_error_degrades_to_empty():
    geocoder, session = _geocoder()
    session.get.return_value.raise_for_status.side_effect = requests.HTTPError("429")
    token = CancellationToken()
    assert geocoder.geocode("tower", token) == []
    assert token.degraded


def test_geocode_malformed_json_degrades_to_empty():
    geocoder, session = _geocoder()
    session.get.return_value.json.side_effect = ValueError("not json")
    token = CancellationToken()
    assert geocoder.geocode("tower", token) == []
    assert token.degraded


def test_geocode_unexpected_payload_degrades_to_empty():
    geocoder, _ = _geocoder({"error": "Unable to geocode"})
    token = CancellationToken()
    assert geocoder.geocode("tower", token) == []
    assert token.degraded


def test_cancelled_token_skips_request():
    geocoder, session = _geocoder([CN_TOWER])
    token = CancellationToken()
    token.cancel()
    assert geocoder.geocode("tower", token) == []
    session.get.assert_not_called()


def test_cancel_during_request_discards_response():
    geocoder, session = _geocoder()
    token = CancellationToken()

    def cancel_then_respond(*args, **kwargs):
        token.cancel()
        return _response([CN_TOWER])

    session.get.side_effect = cancel_then_respond
    assert geocoder.geocode("tower", token) == []


def test_empty_answer_is_not_degraded():
    geocoder, _ = _geocoder([])
    token = CancellationToken()
    assert geocoder.geocode("nowhere at all", token) == []
    assert not token.degraded

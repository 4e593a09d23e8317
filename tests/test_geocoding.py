import httpx
import pytest

from app.services.geocoding.service import GeocodingError, GeocodingService, get_geocoding_service
from app.main import app


def _mapbox(retrieve_feature=None, status_code=200):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if status_code != 200:
            return httpx.Response(status_code, json={"message": "boom"})
        if request.url.path.endswith("/suggest"):
            if retrieve_feature is None:
                return httpx.Response(200, json={"suggestions": []})
            return httpx.Response(200, json={"suggestions": [{"mapbox_id": "abc123", "name": "Mallorca"}]})
        return httpx.Response(200, json={"features": [retrieve_feature]})

    return httpx.Client(transport=httpx.MockTransport(handler)), requests


def test_geocode_expands_provider_bbox():
    feature = {
        "geometry": {"coordinates": [2.9, 39.6]},
        "properties": {
            "feature_type": "region",
            "full_address": "Mallorca, Spain",
            "bbox": [2.0, 39.0, 3.0, 40.0],
            "context": {"country": {"name": "Spain"}},
        },
    }
    client, requests = _mapbox(feature)
    place = GeocodingService(access_token="token", client=client).geocode("Mallorca")

    assert place.name == "Mallorca, Spain"
    assert place.country == "Spain"
    assert place.bbox.as_dict() == pytest.approx({"min_lng": 1.8, "min_lat": 38.8, "max_lng": 3.2, "max_lat": 40.2})
    assert requests[1].url.path.endswith("/retrieve/abc123")
    assert requests[0].url.params["session_token"] == requests[1].url.params["session_token"]


def test_geocode_falls_back_to_margin_by_type():
    feature = {"geometry": {"coordinates": [2.65, 39.57]}, "properties": {"feature_type": "city", "name": "Palma"}}
    client, _ = _mapbox(feature)
    place = GeocodingService(access_token="token", client=client).geocode("Palma")

    assert place.type == "city"
    assert place.bbox.min_lng == pytest.approx(2.15)
    assert place.bbox.max_lat == pytest.approx(40.07)


def test_geocode_returns_none_without_suggestions():
    client, _ = _mapbox(None)
    assert GeocodingService(access_token="token", client=client).geocode("Atlantis") is None


def test_geocode_without_token_fails():
    with pytest.raises(GeocodingError):
        GeocodingService(access_token="").geocode("Mallorca")


def test_provider_error_becomes_geocoding_error():
    client, _ = _mapbox({}, status_code=500)
    with pytest.raises(GeocodingError):
        GeocodingService(access_token="token", client=client).geocode("Mallorca")


def test_search_endpoint_reports_geocoding_failure(client, voyage):
    failing, _ = _mapbox({}, status_code=503)
    app.dependency_overrides[get_geocoding_service] = lambda: GeocodingService(access_token="token", client=failing)

    response = client.get("/legs/search", params={"location": "Mallorca"})
    assert response.status_code == 502

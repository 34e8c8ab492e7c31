import httpx

from nearandnow.infrastructure.geocoding import Coordinates, Geocoder


def geocoder_for(handler):
    return Geocoder(url="https://geo.test/search", transport=httpx.MockTransport(handler))


def test_returns_first_match():
    seen = {}

    def handler(request):
        seen["q"] = request.url.params["q"]
        return httpx.Response(200, json=[{"lat": "22.4531", "lon": "88.3896"}, {"lat": "0", "lon": "0"}])

    coords = geocoder_for(handler).geocode("Tetultala, Garia, Kolkata")

    assert coords == Coordinates(lat=22.4531, lng=88.3896)
    assert seen["q"] == "Tetultala, Garia, Kolkata"


def test_no_match_is_none():
    assert geocoder_for(lambda request: httpx.Response(200, json=[])).geocode("nowhere") is None


def test_provider_error_is_none():
    assert geocoder_for(lambda request: httpx.Response(503)).geocode("Garia") is None


def test_transport_failure_is_none():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert geocoder_for(handler).geocode("Garia") is None


def test_malformed_payload_is_none():
    assert geocoder_for(lambda request: httpx.Response(200, json=[{"name": "x"}])).geocode("Garia") is None
    assert geocoder_for(lambda request: httpx.Response(200, text="<html>")).geocode("Garia") is None


def test_blank_address_skips_lookup():
    def handler(request):
        raise AssertionError("should not be called")

    assert geocoder_for(handler).geocode("   ") is None

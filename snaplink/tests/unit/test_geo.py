import httpx
import pytest
from unittest.mock import MagicMock

from snaplink.geo import (
    GeoLocation, GeoLocator, NullGeoLocator, IpApiGeoLocator,
    build_geolocator, is_public_ip, safe_lookup
)

def make_locator(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return IpApiGeoLocator(base_url="http://geo.test/json/", client=client)

def test_geo_location_defaults():
    location = GeoLocation()
    assert (location.country, location.city, location.region) == ("Unknown", "Unknown", "Unknown")

def test_null_geolocator():
    assert NullGeoLocator().lookup("8.8.8.8") == GeoLocation()

@pytest.mark.parametrize("ip,expected", [
    ("8.8.8.8", True),
    ("2001:4860:4860::8888", True),
    ("127.0.0.1", False),
    ("192.168.1.1", False),
    ("10.0.0.1", False),
    ("testclient", False),
    (None, False),
])
def test_is_public_ip(ip, expected):
    assert is_public_ip(ip) is expected

def test_ip_api_lookup():
    requested = []

    def handler(request):
        requested.append(str(request.url))
        return httpx.Response(200, json={
            "status": "success",
            "country": "Germany",
            "city": "Berlin",
            "regionName": "Land Berlin"
        })

    location = make_locator(handler).lookup("8.8.8.8")

    assert requested == ["http://geo.test/json/8.8.8.8"]
    assert location.country == "Germany"
    assert location.city == "Berlin"
    assert location.region == "Land Berlin"

def test_ip_api_failed_status():
    locator = make_locator(lambda request: httpx.Response(200, json={"status": "fail", "message": "reserved range"}))
    assert locator.lookup("8.8.8.8") == GeoLocation()

def test_ip_api_partial_answer():
    locator = make_locator(lambda request: httpx.Response(200, json={"country": "France"}))
    location = locator.lookup("8.8.8.8")

    assert location.country == "France"
    assert location.city == "Unknown"

def test_ip_api_skips_private_addresses():
    handler = MagicMock()
    locator = make_locator(handler)

    assert locator.lookup("192.168.1.10") == GeoLocation()
    handler.assert_not_called()

def test_ip_api_http_error_propagates():
    locator = make_locator(lambda request: httpx.Response(503))

    with pytest.raises(httpx.HTTPStatusError):
        locator.lookup("8.8.8.8")

def test_safe_lookup_degrades_to_unknown():
    class BrokenLocator(GeoLocator):
        def lookup(self, ip_address):
            raise ConnectionError("provider down")

    assert safe_lookup(BrokenLocator(), "8.8.8.8") == GeoLocation()
    assert safe_lookup(None, "8.8.8.8") == GeoLocation()

def test_safe_lookup_timeout():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    assert safe_lookup(make_locator(handler), "8.8.8.8").country == "Unknown"

def test_build_geolocator():
    assert isinstance(build_geolocator("none"), NullGeoLocator)
    assert isinstance(build_geolocator("something-else"), NullGeoLocator)

    locator = build_geolocator("ip-api")
    assert isinstance(locator, IpApiGeoLocator)
    locator.close()

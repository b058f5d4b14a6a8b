import unittest
from unittest import mock

import requests

from locallabor.config import Settings
from locallabor.geo.distance import HALF_CIRCUMFERENCE_M, haversine_m, latitude_band
from locallabor.geo.geocoder import (
    DisabledGeocoder,
    GeocodingError,
    NominatimGeocoder,
    OpenCageGeocoder,
    build_geocoder,
    compose_address,
)


def _response(payload, status_error=None):
    resp = mock.Mock()
    resp.json.return_value = payload
    resp.raise_for_status.side_effect = status_error
    return resp


class NominatimGeocoderTests(unittest.TestCase):
    def test_first_match_is_used(self):
        payload = [
            {
                "lon": "-89.6501",
                "lat": "39.7817",
                "display_name": "Springfield, Sangamon County, Illinois, United States",
                "address": {"city": "Springfield", "country": "United States"},
            },
            {"lon": "0", "lat": "0", "display_name": "ignored"},
        ]
        geocoder = NominatimGeocoder(timeout=2.5, user_agent="tests/1.0")
        with mock.patch("locallabor.geo.geocoder.requests.get", return_value=_response(payload)) as get:
            result = geocoder.resolve("Springfield")

        self.assertEqual((result.longitude, result.latitude), (-89.6501, 39.7817))
        self.assertTrue(result.formatted_address.startswith("Springfield, Sangamon County"))
        _, kwargs = get.call_args
        self.assertEqual(kwargs["timeout"], 2.5)
        self.assertEqual(kwargs["headers"]["User-Agent"], "tests/1.0")
        self.assertEqual(kwargs["params"]["q"], "Springfield")

    def test_no_match_returns_none(self):
        with mock.patch("locallabor.geo.geocoder.requests.get", return_value=_response([])):
            self.assertIsNone(NominatimGeocoder().resolve("Atlantis"))

    def test_timeout_raises_geocoding_error(self):
        with mock.patch("locallabor.geo.geocoder.requests.get", side_effect=requests.Timeout("slow")):
            with self.assertRaises(GeocodingError):
                NominatimGeocoder(timeout=0.1).resolve("Springfield")

    def test_http_error_raises_geocoding_error(self):
        resp = _response(None, status_error=requests.HTTPError("503 Server Error"))
        with mock.patch("locallabor.geo.geocoder.requests.get", return_value=resp):
            with self.assertRaises(GeocodingError):
                NominatimGeocoder().resolve("Springfield")

    def test_result_without_coordinates_raises(self):
        with mock.patch("locallabor.geo.geocoder.requests.get", return_value=_response([{"display_name": "x"}])):
            with self.assertRaises(GeocodingError):
                NominatimGeocoder().resolve("Springfield")


class OpenCageGeocoderTests(unittest.TestCase):
    def test_requires_api_key(self):
        with self.assertRaises(ValueError):
            OpenCageGeocoder(api_key="")

    def test_reads_geometry_and_components(self):
        payload = {
            "results": [
                {
                    "geometry": {"lat": 51.5074, "lng": -0.1278},
                    "formatted": "",
                    "components": {"city": "London", "country": "United Kingdom"},
                }
            ]
        }
        with mock.patch("locallabor.geo.geocoder.requests.get", return_value=_response(payload)) as get:
            result = OpenCageGeocoder(api_key="k").resolve("london")

        self.assertEqual((result.longitude, result.latitude), (-0.1278, 51.5074))
        self.assertEqual(result.formatted_address, "London, United Kingdom")
        self.assertEqual(get.call_args.kwargs["params"]["key"], "k")

    def test_empty_results(self):
        with mock.patch("locallabor.geo.geocoder.requests.get", return_value=_response({"results": []})):
            self.assertIsNone(OpenCageGeocoder(api_key="k").resolve("nowhere"))


class GeocoderRegistryTests(unittest.TestCase):
    def test_build_known_providers(self):
        self.assertIsInstance(build_geocoder(Settings(geocoder="nominatim")), NominatimGeocoder)
        self.assertIsInstance(build_geocoder(Settings(geocoder="Disabled")), DisabledGeocoder)
        built = build_geocoder(Settings(geocoder="opencage", geocoder_api_key="k", geocoder_timeout=1.5))
        self.assertEqual((built.name, built.timeout), ("opencage", 1.5))

    def test_unknown_provider(self):
        with self.assertRaises(ValueError):
            build_geocoder(Settings(geocoder="carrier-pigeon"))

    def test_disabled_never_resolves(self):
        self.assertIsNone(DisabledGeocoder().resolve("Springfield"))

    def test_compose_address_fallbacks(self):
        self.assertEqual(compose_address(" Full, Address ", "C", "K", "in"), "Full, Address")
        self.assertEqual(compose_address(None, "Paris", "France", "paris"), "Paris, France")
        self.assertEqual(compose_address(None, "Paris", None, "paris"), "paris")


class DistanceTests(unittest.TestCase):
    def test_haversine_known_distance(self):
        # London -> Paris, roughly 343.5 km
        self.assertAlmostEqual(haversine_m(-0.1278, 51.5074, 2.3522, 48.8566) / 1000, 343.5, delta=1.0)
        self.assertEqual(haversine_m(10, 20, 10, 20), 0.0)

    def test_latitude_band(self):
        low, high = latitude_band(20.0, 111_195.0)
        self.assertAlmostEqual(low, 19.0, places=2)
        self.assertAlmostEqual(high, 21.0, places=2)
        self.assertEqual(latitude_band(89.9, 50_000)[1], 90.0)
        self.assertIsNone(latitude_band(0.0, HALF_CIRCUMFERENCE_M))


if __name__ == "__main__":
    unittest.main()

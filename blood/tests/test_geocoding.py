from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.test import SimpleTestCase, override_settings
from geopy.exc import GeocoderServiceError, GeocoderTimedOut
from geopy.location import Location

from blood.services import geocoding
from blood.services.geocoding import GeocodeCache, GeocodeFailure, GeocodeResult, GeocodingClient


def _location(lat, lon):
	return Location("Lilavati Hospital, Mumbai", (lat, lon, 0), {"type": "hospital"})


class GeocodingClientTests(SimpleTestCase):
	def test_resolves_first_result_and_caches_by_exact_address(self):
		provider = MagicMock(return_value=_location(19.05099, 72.8284))
		client = GeocodingClient(provider, fixtures={})

		first = client.resolve("Lilavati Hospital, Mumbai")
		second = client.resolve("Lilavati Hospital, Mumbai")

		self.assertIsInstance(first, GeocodeResult)
		self.assertEqual(first.latitude, Decimal("19.050990"))
		self.assertEqual(first.longitude, Decimal("72.828400"))
		self.assertEqual(first.accuracy, "hospital")
		self.assertIs(first, second)
		self.assertEqual(provider.call_count, 1)

	def test_near_duplicate_addresses_cached_separately(self):
		provider = MagicMock(return_value=_location(19.0, 72.8))
		client = GeocodingClient(provider, fixtures={})

		client.resolve("Lilavati Hospital, Mumbai")
		client.resolve("lilavati hospital, mumbai")

		self.assertEqual(provider.call_count, 2)
		self.assertEqual(len(client.cache), 2)

	def test_list_results_use_first_entry(self):
		provider = MagicMock(return_value=[_location(19.0, 72.8), _location(28.6, 77.2)])
		result = GeocodingClient(provider, fixtures={}).resolve("Hospital")
		self.assertEqual(result.latitude, Decimal("19.000000"))

	def test_zero_results_is_failure_and_not_cached(self):
		provider = MagicMock(return_value=None)
		client = GeocodingClient(provider, fixtures={})

		result = client.resolve("Nowhere Hospital")

		self.assertIsInstance(result, GeocodeFailure)
		self.assertFalse(result)
		self.assertEqual(result.reason, "no-results")
		self.assertNotIn("Nowhere Hospital", client.cache)

	def test_provider_errors_become_failures(self):
		for error in (GeocoderTimedOut("timed out"), GeocoderServiceError("503")):
			with self.subTest(error=error.__class__.__name__):
				client = GeocodingClient(MagicMock(side_effect=error), fixtures={})
				result = client.resolve("Some Hospital")
				self.assertIsInstance(result, GeocodeFailure)
				self.assertTrue(result.reason.startswith("provider-error"))

	def test_fixtures_used_before_provider(self):
		provider = MagicMock()
		client = GeocodingClient(provider, fixtures={"Demo Hospital": (19.0, 72.8)})

		result = client.resolve("Demo Hospital")

		self.assertEqual(result.provider, "fixture")
		self.assertEqual((result.latitude, result.longitude), (Decimal("19.000000"), Decimal("72.800000")))
		provider.assert_not_called()

	def test_remote_disabled_returns_failure(self):
		provider = MagicMock()
		result = GeocodingClient(provider, fixtures={}, allow_remote=False).resolve("Unknown Hospital")
		self.assertEqual(result.reason, "remote-disabled")
		provider.assert_not_called()

	def test_blank_address_is_failure(self):
		self.assertEqual(GeocodingClient(MagicMock(), fixtures={}).resolve("   ").reason, "empty-address")

	def test_shared_cache_between_clients(self):
		cache = GeocodeCache()
		GeocodingClient(MagicMock(return_value=_location(19.0, 72.8)), cache=cache, fixtures={}).resolve("Shared")
		other_provider = MagicMock()
		result = GeocodingClient(other_provider, cache=cache, fixtures={}).resolve("Shared")
		self.assertIsInstance(result, GeocodeResult)
		other_provider.assert_not_called()

	@override_settings(GEOCODER_COUNTRY_BIAS="in")
	def test_country_bias_forwarded(self):
		provider = MagicMock(return_value=_location(19.0, 72.8))
		GeocodingClient(provider, fixtures={}).resolve("Hospital")
		provider.assert_called_once_with("Hospital", country_codes="in")


class RemoteGeocoderTests(SimpleTestCase):
	@override_settings(GEOCODER_BACKEND="google", GOOGLE_MAPS_API_KEY="")
	def test_google_backend_requires_key(self):
		result = GeocodingClient(fixtures={}).resolve("Hospital")
		self.assertEqual(result.reason, "geocoder-unavailable")

	@override_settings(GEOCODER_BACKEND="nominatim", GEOCODER_TIMEOUT=3, GEOCODER_MIN_DELAY_SECONDS=0)
	def test_nominatim_backend_is_rate_limited(self):
		with patch.object(geocoding, "Nominatim") as nominatim:
			geocode_fn = geocoding.build_remote_geocoder()
		nominatim.assert_called_once_with(user_agent="bloodalert-geocoder", timeout=3)
		self.assertIsInstance(geocode_fn, geocoding.RateLimiter)

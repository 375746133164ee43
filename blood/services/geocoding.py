from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from typing import Callable, Dict, Optional, Tuple, Union

from django.conf import settings
from geopy.exc import GeopyError
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import GoogleV3, Nominatim

LOGGER = logging.getLogger(__name__)

_DECIMAL_PLACES = Decimal("0.000001")


@dataclass(frozen=True)
class GeocodeResult:
	"""Container describing an address lookup outcome."""

	latitude: Decimal
	longitude: Decimal
	provider: str = "static"
	accuracy: Optional[str] = None
	raw: Optional[Dict] = None


@dataclass(frozen=True)
class GeocodeFailure:
	address: str
	reason: str

	def __bool__(self) -> bool:
		return False


class GeocoderUnavailable(RuntimeError):
	"""Raised when a remote geocoder backend cannot be used."""


def _quantize(value: float | Decimal) -> Decimal:
	return Decimal(str(value)).quantize(_DECIMAL_PLACES, rounding=ROUND_HALF_UP)


class GeocodeCache:
	"""Process-lifetime address cache keyed by the exact address string.

	Entries never expire; concurrent writers may race, the last write wins.
	"""

	def __init__(self):
		self._entries: Dict[str, GeocodeResult] = {}
		self._lock = threading.Lock()

	def get(self, address: str) -> Optional[GeocodeResult]:
		return self._entries.get(address)

	def set(self, address: str, result: GeocodeResult) -> None:
		with self._lock:
			self._entries[address] = result

	def clear(self) -> None:
		with self._lock:
			self._entries.clear()

	def __contains__(self, address: str) -> bool:
		return address in self._entries

	def __len__(self) -> int:
		return len(self._entries)


def build_remote_geocoder() -> Callable:
	"""Return a rate-limited geocode callable for the configured provider."""

	backend = getattr(settings, "GEOCODER_BACKEND", "nominatim")
	timeout = getattr(settings, "GEOCODER_TIMEOUT", 10)

	if backend == "google":
		api_key = getattr(settings, "GOOGLE_MAPS_API_KEY", "")
		if not api_key:
			raise GeocoderUnavailable("GOOGLE_MAPS_API_KEY is required for the google geocoder backend")
		return GoogleV3(api_key=api_key, timeout=timeout).geocode

	if backend != "nominatim":
		raise GeocoderUnavailable(f"Unknown geocoder backend {backend!r}")

	user_agent = getattr(settings, "GEOCODER_USER_AGENT", "bloodalert-geocoder")
	min_delay = getattr(settings, "GEOCODER_MIN_DELAY_SECONDS", 1.0)

	geolocator = Nominatim(user_agent=user_agent, timeout=timeout)
	return RateLimiter(geolocator.geocode, min_delay_seconds=min_delay, swallow_exceptions=False)


class GeocodingClient:
	"""Resolve hospital addresses to coordinates.

	Parameters
	----------
	geocode:
		Callable taking the address and returning a geopy ``Location`` (or None).
		Built lazily from settings when omitted.
	cache:
		Shared :class:`GeocodeCache`; a fresh one is created when omitted.
	fixtures:
		Exact address -> (lat, lon) lookups consulted before the provider
		(ideal for tests and demo data). Defaults to GEOCODER_STATIC_FIXTURES.
	allow_remote:
		When False, only the cache and fixtures are used.
	"""

	def __init__(
		self,
		geocode: Optional[Callable] = None,
		*,
		cache: Optional[GeocodeCache] = None,
		fixtures: Optional[Dict[str, Tuple[float, float]]] = None,
		allow_remote: Optional[bool] = None,
	):
		self._geocode = geocode
		self.cache = cache if cache is not None else GeocodeCache()
		if fixtures is None:
			fixtures = getattr(settings, "GEOCODER_STATIC_FIXTURES", {}) or {}
		self.fixtures = {
			key: value for key, value in fixtures.items() if isinstance(value, (tuple, list)) and len(value) == 2
		}
		if allow_remote is None:
			allow_remote = getattr(settings, "GEOCODER_ALLOW_REMOTE", True)
		self.allow_remote = allow_remote

	def _remote(self) -> Callable:
		if self._geocode is None:
			self._geocode = build_remote_geocoder()
		return self._geocode

	def resolve(self, address: str) -> Union[GeocodeResult, GeocodeFailure]:
		if not address or not address.strip():
			return GeocodeFailure(address or "", "empty-address")

		cached = self.cache.get(address)
		if cached is not None:
			return cached

		fixture = self.fixtures.get(address)
		if fixture:
			result = GeocodeResult(
				latitude=_quantize(fixture[0]),
				longitude=_quantize(fixture[1]),
				provider="fixture",
				accuracy="exact",
			)
			self.cache.set(address, result)
			return result

		if not self.allow_remote:
			return GeocodeFailure(address, "remote-disabled")

		country_bias = getattr(settings, "GEOCODER_COUNTRY_BIAS", None)
		try:
			geocode_fn = self._remote()
			if country_bias:
				location = geocode_fn(address.strip(), country_codes=country_bias)
			else:
				location = geocode_fn(address.strip())
		except GeocoderUnavailable as exc:
			LOGGER.warning("Geocoder unavailable: %s", exc)
			return GeocodeFailure(address, "geocoder-unavailable")
		except GeopyError as exc:
			LOGGER.warning("Remote geocoding failed for '%s': %s", address, exc)
			return GeocodeFailure(address, f"provider-error: {exc.__class__.__name__}")

		if isinstance(location, list):
			location = location[0] if location else None

		if not location:
			LOGGER.info("No geocoding result for '%s'", address)
			return GeocodeFailure(address, "no-results")

		raw = location.raw if isinstance(getattr(location, "raw", None), dict) else None
		result = GeocodeResult(
			latitude=_quantize(location.latitude),
			longitude=_quantize(location.longitude),
			provider=getattr(settings, "GEOCODER_BACKEND", "nominatim"),
			accuracy=str(raw.get("type")) if raw and raw.get("type") else None,
			raw=raw,
		)
		self.cache.set(address, result)
		return result


@lru_cache(maxsize=1)
def get_geocoding_client() -> GeocodingClient:
	"""Process-wide client (and therefore cache), built once on first use."""

	return GeocodingClient()


__all__ = [
	"GeocodeCache",
	"GeocodeFailure",
	"GeocodeResult",
	"GeocoderUnavailable",
	"GeocodingClient",
	"build_remote_geocoder",
	"get_geocoding_client",
]

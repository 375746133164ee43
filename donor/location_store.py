"""Key-value store for the last position reported by each donor's device.

Positions are kept in a Django cache alias (Redis in production) rather than
the relational database; the store is written by the donor client endpoint and
read by the matcher. A missing key simply means "no known position".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Optional

from django.conf import settings
from django.core.cache import caches
from django.utils import timezone

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DonorLocation:
	latitude: float
	longitude: float
	updated_at: Optional[datetime] = None


def _key(donor_id) -> str:
	return f"donor:{donor_id}"


class DonorLocationStore:
	def __init__(self, cache_alias: Optional[str] = None):
		self.cache_alias = cache_alias or getattr(settings, "DONOR_LOCATION_CACHE_ALIAS", "locations")

	@property
	def cache(self):
		return caches[self.cache_alias]

	def put(self, donor_id, latitude: float, longitude: float, *, updated_at: Optional[datetime] = None) -> DonorLocation:
		latitude = float(latitude)
		longitude = float(longitude)
		if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
			raise ValueError("Latitude must be within [-90, 90] and longitude within [-180, 180]")

		location = DonorLocation(latitude, longitude, updated_at or timezone.now())
		self.cache.set(
			_key(donor_id),
			{
				"latitude": location.latitude,
				"longitude": location.longitude,
				"updated_at": location.updated_at.isoformat(),
			},
			timeout=None,
		)
		return location

	def get(self, donor_id) -> Optional[DonorLocation]:
		return _decode(self.cache.get(_key(donor_id)))

	def get_many(self, donor_ids: Iterable) -> Dict:
		keys = {_key(donor_id): donor_id for donor_id in donor_ids}
		if not keys:
			return {}
		found = self.cache.get_many(list(keys))
		locations = {}
		for key, raw in found.items():
			location = _decode(raw)
			if location is not None:
				locations[keys[key]] = location
		return locations

	def delete(self, donor_id) -> None:
		self.cache.delete(_key(donor_id))


def _decode(raw) -> Optional[DonorLocation]:
	if not raw:
		return None
	try:
		updated_at = raw.get("updated_at")
		return DonorLocation(
			latitude=float(raw["latitude"]),
			longitude=float(raw["longitude"]),
			updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
		)
	except (KeyError, TypeError, ValueError):
		LOGGER.warning("Discarding malformed location entry: %r", raw)
		return None


__all__ = ["DonorLocation", "DonorLocationStore"]

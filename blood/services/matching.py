from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from django.conf import settings
from django.db import DatabaseError
from redis.exceptions import RedisError

from blood import models as bmodels
from blood.compatibility import compatible_donors
from blood.exceptions import EligibilityComputationError
from blood.services.distance import distance_km
from blood.services.donor_directory import DonorCandidate, DonorDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EligibleDonor:
    donor_id: int
    distance_km: float
    donor: DonorCandidate


def _get_radius_km() -> float:
    return float(getattr(settings, "DONOR_MATCH_RADIUS_KM", 10.0))


def _get_max_recipients() -> Optional[int]:
    value = getattr(settings, "DONOR_MATCH_MAX_RECIPIENTS", None)
    return int(value) if value else None


class EligibilityMatcher:
    """Rank compatible, reachable donors by distance to the hospital."""

    def __init__(
        self,
        directory: Optional[DonorDirectory] = None,
        *,
        radius_km: Optional[float] = None,
        max_recipients: Optional[int] = None,
    ):
        self.directory = directory or DonorDirectory()
        self._radius_km = radius_km
        self._max_recipients = max_recipients

    @property
    def radius_km(self) -> float:
        return float(self._radius_km) if self._radius_km is not None else _get_radius_km()

    @property
    def max_recipients(self) -> Optional[int]:
        return self._max_recipients if self._max_recipients is not None else _get_max_recipients()

    def match(self, blood_request: bmodels.BloodRequest) -> List[EligibleDonor]:
        """Donors within radius of the hospital, closest first, never the requester.

        Raises :class:`EligibilityComputationError` when the donor table or the
        location store cannot be read.
        """

        groups = compatible_donors(blood_request.bloodgroup)

        try:
            candidates = self.directory.eligible_candidates(groups, exclude_ids=[blood_request.requester_id])
        except DatabaseError as exc:
            raise EligibilityComputationError(f"Donor directory lookup failed: {exc}") from exc

        if not candidates:
            logger.info("No reachable %s-compatible donors for request %s", blood_request.bloodgroup, blood_request.pk)
            return []

        unique: Dict[int, DonorCandidate] = {}
        for candidate in candidates:
            if candidate.id == blood_request.requester_id:
                continue
            unique.setdefault(candidate.id, candidate)

        try:
            locations = self.directory.locations_for(unique)
        except (OSError, RedisError) as exc:
            raise EligibilityComputationError(f"Location store lookup failed: {exc}") from exc

        hospital_lat, hospital_lon = blood_request.hospital_coordinates
        radius = self.radius_km
        matched: List[EligibleDonor] = []
        missing = 0

        for donor_id, candidate in unique.items():
            location = locations.get(donor_id)
            if location is None:
                missing += 1
                continue
            distance = distance_km(hospital_lat, hospital_lon, location.latitude, location.longitude)
            if distance <= radius:
                matched.append(EligibleDonor(donor_id=donor_id, distance_km=distance, donor=candidate))

        if missing:
            logger.debug("%s candidate donors have no known location for request %s", missing, blood_request.pk)

        matched.sort(key=lambda item: (item.distance_km, item.donor_id))

        limit = self.max_recipients
        if limit:
            matched = matched[:limit]

        logger.info(
            "Matched %s of %s candidate donors within %.1f km for request %s",
            len(matched),
            len(unique),
            radius,
            blood_request.pk,
        )
        return matched


__all__ = ["EligibleDonor", "EligibilityMatcher"]

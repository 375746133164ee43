from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from donor.location_store import DonorLocation, DonorLocationStore
from donor.models import Donor


@dataclass(frozen=True)
class DonorCandidate:
    id: int
    notification_token: str
    username: str
    bloodgroup: str
    phone: str


class DonorDirectory:
    """Read-only view over the donor table and the location store."""

    def __init__(self, location_store: Optional[DonorLocationStore] = None):
        self.location_store = location_store or DonorLocationStore()

    def eligible_candidates(self, blood_groups: Iterable[str], *, exclude_ids: Iterable[int] = ()) -> List[DonorCandidate]:
        """Opted-in donors with a push token, out of recovery, in ``blood_groups``."""

        groups = list(blood_groups)
        if not groups:
            return []

        queryset = (
            Donor.objects.reachable()
            .out_of_recovery()
            .filter(bloodgroup__in=groups)
            .exclude(pk__in=list(exclude_ids))
            .order_by("id")
            .values_list("id", "notification_token", "user__username", "bloodgroup", "mobile")
        )
        return [
            DonorCandidate(id=pk, notification_token=token, username=username, bloodgroup=group, phone=mobile)
            for pk, token, username, group, mobile in queryset
        ]

    def location_of(self, donor_id: int) -> Optional[DonorLocation]:
        return self.location_store.get(donor_id)

    def locations_for(self, donor_ids: Iterable[int]) -> Dict[int, DonorLocation]:
        return self.location_store.get_many(donor_ids)


__all__ = ["DonorCandidate", "DonorDirectory"]

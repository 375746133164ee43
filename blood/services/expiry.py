from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from django.db.models import F
from django.utils import timezone

from blood import models as bmodels

logger = logging.getLogger(__name__)


class ExpiryReaper:
    """Mark open requests past their TTL as expired.

    Requests are flagged rather than deleted so their donations and
    notification audit survive. Only open requests are touched, so a second
    run over the same data changes nothing.
    """

    def run_once(self, now: Optional[datetime] = None) -> int:
        now = now or timezone.now()
        count = bmodels.BloodRequest.objects.past_ttl(now).update(
            status=bmodels.BloodRequest.EXPIRED,
            version=F("version") + 1,
        )
        if count:
            logger.info("Expired %s blood requests past their TTL", count)
        else:
            logger.debug("No blood requests to expire")
        return count


__all__ = ["ExpiryReaper"]

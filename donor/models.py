from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import User
from django.db import models
from django.utils import timezone

from blood.compatibility import BLOOD_GROUP_CHOICES


class DonorQuerySet(models.QuerySet):
    def reachable(self):
        """Opted-in donors holding a push token."""
        return self.filter(is_donor=True).exclude(
            models.Q(notification_token__isnull=True) | models.Q(notification_token__exact="")
        )

    def out_of_recovery(self, today=None):
        today = today or timezone.localdate()
        cutoff = today - timedelta(days=donation_recovery_days())
        return self.filter(models.Q(last_donated_at__isnull=True) | models.Q(last_donated_at__lte=cutoff))


def donation_recovery_days() -> int:
    return int(getattr(settings, "DONATION_RECOVERY_DAYS", 90))


class Donor(models.Model):
    """Donor-relevant projection of an app user.

    Every user who can post or accept a blood request has one of these; only
    those with ``is_donor`` set are ever matched against a request.
    """

    user = models.OneToOneField(User, on_delete=models.CASCADE)
    bloodgroup = models.CharField(max_length=10, choices=BLOOD_GROUP_CHOICES)
    mobile = models.CharField(max_length=20)
    is_donor = models.BooleanField(default=False)
    notification_token = models.CharField(max_length=512, blank=True, default="")
    token_updated_at = models.DateTimeField(null=True, blank=True)
    last_donated_at = models.DateField(null=True, blank=True)

    objects = DonorQuerySet.as_manager()

    class Meta:
        ordering = ["id"]

    @property
    def username(self):
        return self.user.username

    def __str__(self):
        return f"{self.username} ({self.bloodgroup})"

    @property
    def next_eligible_donation_date(self):
        if not self.last_donated_at:
            return None
        return self.last_donated_at + timedelta(days=donation_recovery_days())

    def is_in_recovery(self, today=None) -> bool:
        next_eligible = self.next_eligible_donation_date
        if next_eligible is None:
            return False
        return (today or timezone.localdate()) < next_eligible

    def refresh_token(self, token: str):
        self.notification_token = (token or "").strip()
        self.save(update_fields=["notification_token", "token_updated_at"])

import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from donor import models as dmodels
from .compatibility import BLOOD_GROUP_CHOICES


def default_ttl() -> timedelta:
    return timedelta(hours=int(getattr(settings, "BLOOD_REQUEST_TTL_HOURS", 48)))


class BloodRequestQuerySet(models.QuerySet):
    def open(self):
        return self.filter(status__in=BloodRequest.OPEN_STATUSES)

    def unexpired(self, now=None):
        return self.filter(expires_at__gt=now or timezone.now())

    def past_ttl(self, now=None):
        return self.open().filter(expires_at__lt=now or timezone.now())


class BloodRequest(models.Model):
    LOOKING = "looking"
    PARTIALLY_FULFILLED = "partially_fulfilled"
    COMPLETED = "completed"
    EXPIRED = "expired"

    STATUS_CHOICES = [
        (LOOKING, "Looking for donors"),
        (PARTIALLY_FULFILLED, "Partially fulfilled"),
        (COMPLETED, "Completed"),
        (EXPIRED, "Expired"),
    ]
    OPEN_STATUSES = (LOOKING, PARTIALLY_FULFILLED)
    TERMINAL_STATUSES = (COMPLETED, EXPIRED)

    # Forward-only edges of the request state machine.
    TRANSITIONS = {
        LOOKING: {PARTIALLY_FULFILLED, COMPLETED, EXPIRED},
        PARTIALLY_FULFILLED: {COMPLETED, EXPIRED},
        COMPLETED: set(),
        EXPIRED: set(),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    requester = models.ForeignKey(dmodels.Donor, on_delete=models.CASCADE, related_name="blood_requests")
    bloodgroup = models.CharField(max_length=10, choices=BLOOD_GROUP_CHOICES)
    description = models.CharField(max_length=500, blank=True)
    hospital_address = models.CharField(max_length=255)
    hospital_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    hospital_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    units_required = models.PositiveIntegerField()
    contact_phone = models.CharField(max_length=20)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=LOOKING, db_index=True)

    # Dispatch report
    notification_sent = models.BooleanField(default=False)
    donors_found = models.PositiveIntegerField(default=0)
    notifications_sent = models.PositiveIntegerField(default=0)
    notifications_failed = models.PositiveIntegerField(default=0)
    notification_error = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(default=timezone.now, editable=False)
    expires_at = models.DateTimeField(editable=False, db_index=True)
    # Bumped on every state change; acceptance commits with a compare-and-swap on it.
    version = models.PositiveIntegerField(default=0)

    objects = BloodRequestQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["status", "expires_at"], name="blood_req_status_exp_idx")]

    def __str__(self):
        return f"{self.bloodgroup} x{self.units_required} @ {self.hospital_address}"

    def save(self, *args, **kwargs):
        if self.expires_at is None:
            self.expires_at = (self.created_at or timezone.now()) + default_ttl()
        super().save(*args, **kwargs)

    def is_expired(self, now=None) -> bool:
        return self.status == self.EXPIRED or (now or timezone.now()) > self.expires_at

    def can_transition(self, new_status: str) -> bool:
        return new_status in self.TRANSITIONS.get(self.status, set())

    @property
    def hospital_coordinates(self):
        return float(self.hospital_latitude), float(self.hospital_longitude)

    def hours_remaining(self, now=None) -> int:
        remaining = self.expires_at - (now or timezone.now())
        return max(int(remaining.total_seconds() // 3600), 0)


class NotifiedDonor(models.Model):
    """One row per donor a request was pushed to, in dispatch order."""

    request = models.ForeignKey(BloodRequest, on_delete=models.CASCADE, related_name="notified_donors")
    donor = models.ForeignKey(dmodels.Donor, on_delete=models.CASCADE, related_name="notifications")
    position = models.PositiveIntegerField()
    distance_km = models.FloatField()
    delivered = models.BooleanField(default=False)
    failure_reason = models.CharField(max_length=255, blank=True)
    notified_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["request", "position"]
        constraints = [
            models.UniqueConstraint(fields=["request", "donor"], name="uniq_notified_donor_per_request"),
        ]

    def __str__(self):
        return f"{self.donor_id} -> {self.request_id} ({'delivered' if self.delivered else 'failed'})"


class Donation(models.Model):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (SCHEDULED, "Scheduled"),
        (COMPLETED, "Completed"),
        (CANCELLED, "Cancelled"),
    ]

    request = models.ForeignKey(BloodRequest, on_delete=models.CASCADE, related_name="donations")
    donor = models.ForeignKey(dmodels.Donor, on_delete=models.CASCADE, related_name="donations")
    units_donated = models.PositiveIntegerField(default=1)
    donated_at = models.DateTimeField(default=timezone.now)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=SCHEDULED)

    class Meta:
        ordering = ["donated_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["request", "donor"], name="uniq_donation_per_request_donor"),
        ]

    def __str__(self):
        return f"{self.donor} - {self.request.bloodgroup} - {self.status}"

"""Blood request state machine: creation, notification bookkeeping, acceptance, expiry."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError, IntegrityError, OperationalError, transaction
from django.db.models import F
from django.utils import timezone
from kombu.exceptions import OperationalError as BrokerError

from blood import models as bmodels
from blood import tasks
from blood.compatibility import compatible_recipients
from blood.exceptions import (
    ConcurrencyConflictError,
    DonorNotEligibleError,
    DuplicateAcceptanceError,
    EligibilityComputationError,
    LocationResolutionError,
    NotFoundError,
    NotificationBackendError,
    RequestAlreadyAcceptedError,
    RequestClosedError,
    RequestExpiredError,
    SelfDonationError,
    ValidationError,
)
from blood.forms import BloodRequestForm
from blood.services.expiry import ExpiryReaper
from blood.services.geocoding import GeocodingClient, get_geocoding_client
from blood.services.matching import EligibilityMatcher, EligibleDonor
from blood.services.push import DispatchReport, NotificationDispatcher
from donor import models as dmodels

logger = logging.getLogger(__name__)

SINGLE_DONOR = "single"
MULTI_DONOR = "multi"
ACCEPTANCE_POLICIES = (SINGLE_DONOR, MULTI_DONOR)


def get_acceptance_policy() -> str:
    policy = str(getattr(settings, "BLOOD_REQUEST_ACCEPTANCE_POLICY", SINGLE_DONOR)).strip().lower()
    if policy not in ACCEPTANCE_POLICIES:
        raise ImproperlyConfigured(
            f"BLOOD_REQUEST_ACCEPTANCE_POLICY must be one of {ACCEPTANCE_POLICIES}, got {policy!r}"
        )
    return policy


@dataclass(frozen=True)
class CreateRequestResult:
    blood_request: bmodels.BloodRequest
    donors_found: int
    notifications_sent: int
    report: DispatchReport = field(default_factory=DispatchReport)


@dataclass(frozen=True)
class AcceptanceResult:
    success: bool
    donation_id: int
    blood_request: bmodels.BloodRequest
    donation: bmodels.Donation


@dataclass(frozen=True)
class RequestDetails:
    blood_request: bmodels.BloodRequest
    donations: List[bmodels.Donation]
    notified_donors: List[bmodels.NotifiedDonor]
    hours_remaining: int
    is_expired: bool


class RequestLifecycleManager:
    def __init__(
        self,
        geocoder: Optional[GeocodingClient] = None,
        matcher: Optional[EligibilityMatcher] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        reaper: Optional[ExpiryReaper] = None,
        *,
        policy: Optional[str] = None,
    ):
        self._geocoder = geocoder
        self.matcher = matcher or EligibilityMatcher()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.reaper = reaper or ExpiryReaper()
        if policy is not None and policy not in ACCEPTANCE_POLICIES:
            raise ImproperlyConfigured(f"Unknown acceptance policy {policy!r}")
        self._policy = policy

    @property
    def geocoder(self) -> GeocodingClient:
        if self._geocoder is None:
            self._geocoder = get_geocoding_client()
        return self._geocoder

    @property
    def policy(self) -> str:
        return self._policy or get_acceptance_policy()

    # Creation

    def create_request(self, data: Mapping[str, Any], requester_id) -> CreateRequestResult:
        """Validate, geocode and persist a request, then alert nearby donors.

        Validation and location failures abort before anything is stored.
        Once the request row exists, matching, push and bookkeeping failures
        are logged and never remove it.
        """

        form = BloodRequestForm(_normalize_input(data))
        if not form.is_valid():
            raise ValidationError(
                {name: [error["message"] for error in errors] for name, errors in form.errors.get_json_data().items()}
            )
        cleaned = form.cleaned_data

        requester = dmodels.Donor.objects.filter(pk=_donor_pk(requester_id, "Requester")).first()
        if requester is None:
            raise NotFoundError(f"Requester {requester_id} not found")

        location = self.geocoder.resolve(cleaned["hospital_address"])
        if not location:
            raise LocationResolutionError(f"Could not find hospital location ({location.reason})")

        with transaction.atomic():
            blood_request = bmodels.BloodRequest.objects.create(
                requester=requester,
                bloodgroup=cleaned["bloodgroup"],
                description=cleaned.get("description") or "",
                hospital_address=cleaned["hospital_address"],
                hospital_latitude=location.latitude,
                hospital_longitude=location.longitude,
                units_required=cleaned["units_required"],
                contact_phone=cleaned["contact_phone"],
            )
        logger.info(
            "Created %s request %s at (%s, %s), expires %s",
            blood_request.bloodgroup,
            blood_request.pk,
            blood_request.hospital_latitude,
            blood_request.hospital_longitude,
            blood_request.expires_at.isoformat(),
        )

        donors = self._match(blood_request)
        report, error = self._dispatch(donors, blood_request)
        self._record_dispatch(blood_request, donors, report, error)

        transaction.on_commit(lambda: _enqueue(tasks.send_requester_confirmation_sms, str(blood_request.pk)))

        return CreateRequestResult(
            blood_request=blood_request,
            donors_found=len(donors),
            notifications_sent=report.sent_count,
            report=report,
        )

    def _match(self, blood_request) -> List[EligibleDonor]:
        try:
            return self.matcher.match(blood_request)
        except EligibilityComputationError as exc:
            logger.error("Donor matching failed for request %s: %s", blood_request.pk, exc)
            return []

    def _dispatch(self, donors, blood_request):
        try:
            return self.dispatcher.dispatch(donors, blood_request), ""
        except NotificationBackendError as exc:
            logger.error("Push backend unavailable for request %s: %s", blood_request.pk, exc)
            return exc.report or DispatchReport(), exc.message

    def _record_dispatch(self, blood_request, donors, report: DispatchReport, error: str) -> None:
        distances = {donor.donor_id: donor.distance_km for donor in donors}
        now = timezone.now()
        counters = {
            "notification_sent": report.sent_count > 0,
            "donors_found": len(donors),
            "notifications_sent": report.sent_count,
            "notifications_failed": len(report.failures),
            "notification_error": error[:255],
        }
        try:
            with transaction.atomic():
                bmodels.NotifiedDonor.objects.bulk_create(
                    [
                        bmodels.NotifiedDonor(
                            request=blood_request,
                            donor_id=outcome.donor_id,
                            position=position,
                            distance_km=distances.get(outcome.donor_id, outcome.distance_km),
                            delivered=outcome.delivered,
                            failure_reason=outcome.reason[:255],
                            notified_at=now,
                        )
                        for position, outcome in enumerate(report.outcomes)
                    ]
                )
                bmodels.BloodRequest.objects.filter(pk=blood_request.pk).update(**counters)
        except DatabaseError:
            logger.exception("Could not record dispatch report for request %s", blood_request.pk)
            return

        for name, value in counters.items():
            setattr(blood_request, name, value)

    # Acceptance

    def accept_request(self, request_id, donor_id) -> AcceptanceResult:
        """Record ``donor_id`` as a donor for ``request_id``.

        Runs in one transaction with the request row locked; the status write is
        a compare-and-swap on ``version``, so of two racing acceptances only one
        commits and the other raises :class:`ConcurrencyConflictError`.
        """

        policy = self.policy
        try:
            with transaction.atomic():
                blood_request = self._load_for_update(request_id)
                donor = dmodels.Donor.objects.select_related("user").filter(pk=_donor_pk(donor_id, "Donor")).first()
                if donor is None:
                    raise NotFoundError(f"Donor {donor_id} not found")

                donations = list(blood_request.donations.all())
                if any(donation.donor_id == donor.pk for donation in donations):
                    raise DuplicateAcceptanceError()
                if donor.pk == blood_request.requester_id:
                    raise SelfDonationError()
                if blood_request.is_expired():
                    raise RequestExpiredError()

                active = [donation for donation in donations if donation.status != bmodels.Donation.CANCELLED]
                pledged = sum(donation.units_donated for donation in active)
                if policy == SINGLE_DONOR and active:
                    raise RequestAlreadyAcceptedError()
                if policy == MULTI_DONOR and pledged >= blood_request.units_required:
                    raise RequestAlreadyAcceptedError("This request already has enough donors")
                if blood_request.status in bmodels.BloodRequest.TERMINAL_STATUSES:
                    raise RequestClosedError()

                if donor.is_in_recovery():
                    days = (timezone.localdate() - donor.last_donated_at).days
                    raise DonorNotEligibleError(
                        f"You can only donate blood every {dmodels.donation_recovery_days()} days. "
                        f"Last donation: {days} days ago"
                    )

                units = 1
                if policy == SINGLE_DONOR or pledged + units >= blood_request.units_required:
                    new_status = bmodels.BloodRequest.COMPLETED
                else:
                    new_status = bmodels.BloodRequest.PARTIALLY_FULFILLED
                if new_status != blood_request.status and not blood_request.can_transition(new_status):
                    raise RequestClosedError()

                swapped = bmodels.BloodRequest.objects.filter(
                    pk=blood_request.pk,
                    version=blood_request.version,
                    status=blood_request.status,
                ).update(status=new_status, version=F("version") + 1)
                if not swapped:
                    raise ConcurrencyConflictError()

                donation = bmodels.Donation.objects.create(
                    request=blood_request,
                    donor=donor,
                    units_donated=units,
                    status=bmodels.Donation.SCHEDULED,
                )
                dmodels.Donor.objects.filter(pk=donor.pk).update(last_donated_at=timezone.localdate())

                transaction.on_commit(lambda: _enqueue(tasks.notify_requester_of_acceptance, donation.pk))
        except IntegrityError as exc:
            raise ConcurrencyConflictError("Acceptance conflicted with a concurrent update") from exc
        except OperationalError as exc:
            if not _is_lock_error(exc):
                raise
            logger.info("Acceptance of request %s by donor %s lost the row lock: %s", request_id, donor_id, exc)
            raise ConcurrencyConflictError("Another acceptance is updating this request") from exc

        blood_request.refresh_from_db()
        logger.info(
            "Donor %s accepted request %s (policy=%s, status=%s)",
            donor.pk,
            blood_request.pk,
            policy,
            blood_request.status,
        )
        return AcceptanceResult(success=True, donation_id=donation.pk, blood_request=blood_request, donation=donation)

    def _load_for_update(self, request_id) -> bmodels.BloodRequest:
        blood_request = (
            bmodels.BloodRequest.objects.select_for_update()
            .filter(pk=_request_pk(request_id))
            .first()
        )
        if blood_request is None:
            raise NotFoundError(f"Request {request_id} not found")
        return blood_request

    # Queries

    def get_active_requests(self, user_id) -> List[bmodels.BloodRequest]:
        donor = dmodels.Donor.objects.filter(pk=_donor_pk(user_id, "User")).first()
        if donor is None:
            raise NotFoundError(f"User {user_id} not found")
        return self.active_requests_for_bloodgroup(donor.bloodgroup)

    def active_requests_for_bloodgroup(self, bloodgroup: str) -> List[bmodels.BloodRequest]:
        """Open, unexpired requests a donor of ``bloodgroup`` can give to, newest first."""

        limit = int(getattr(settings, "ACTIVE_REQUESTS_LIMIT", 20))
        queryset = (
            bmodels.BloodRequest.objects.open()
            .unexpired()
            .filter(bloodgroup__in=compatible_recipients(bloodgroup))
            .select_related("requester__user")
            .order_by("-created_at")
        )
        return list(queryset[:limit])

    def get_request_details(self, request_id) -> RequestDetails:
        blood_request = (
            bmodels.BloodRequest.objects.select_related("requester__user")
            .filter(pk=_request_pk(request_id))
            .first()
        )
        if blood_request is None:
            raise NotFoundError(f"Request {request_id} not found")
        return RequestDetails(
            blood_request=blood_request,
            donations=list(blood_request.donations.select_related("donor__user")),
            notified_donors=list(blood_request.notified_donors.all()),
            hours_remaining=blood_request.hours_remaining(),
            is_expired=blood_request.is_expired(),
        )

    # Expiry

    def cleanup_expired(self) -> int:
        return self.reaper.run_once()


def _normalize_input(data: Mapping[str, Any]) -> Dict[str, Any]:
    cleaned = {key: data.get(key) for key in BloodRequestForm.base_fields if key in data}
    if isinstance(cleaned.get("bloodgroup"), str):
        cleaned["bloodgroup"] = cleaned["bloodgroup"].strip().upper()
    return cleaned


def _donor_pk(value, label: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise NotFoundError(f"{label} {value!r} not found") from None


def _request_pk(value) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFoundError(f"Request {value!r} not found") from None


_LOCK_ERROR_MARKERS = ("locked", "deadlock", "could not obtain lock", "lock wait timeout")


def _is_lock_error(exc: OperationalError) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _LOCK_ERROR_MARKERS)


def _enqueue(task, *args) -> None:
    try:
        task.delay(*args)
    except (BrokerError, OSError) as exc:
        logger.warning("Could not enqueue %s%r: %s", task.name, args, exc)


__all__ = [
    "ACCEPTANCE_POLICIES",
    "AcceptanceResult",
    "CreateRequestResult",
    "MULTI_DONOR",
    "RequestDetails",
    "RequestLifecycleManager",
    "SINGLE_DONOR",
    "get_acceptance_policy",
]

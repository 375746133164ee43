"""Firebase Cloud Messaging fan-out for nearby-donor alerts."""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import firebase_admin
from django.conf import settings
from django.utils import timezone
from firebase_admin import credentials, messaging
from firebase_admin import exceptions as firebase_exceptions

from blood.exceptions import NotificationBackendError, NotificationDeliveryFailure
from blood.services.matching import EligibleDonor

logger = logging.getLogger(__name__)

NEARBY_REQUEST_TYPE = "BLOOD_REQUEST_NEARBY"
DONOR_ACCEPTED_TYPE = "DONOR_ACCEPTED"

# Errors that mean no message can go out at all, as opposed to one bad token.
_FATAL_ERRORS = (firebase_exceptions.UnauthenticatedError, firebase_exceptions.PermissionDeniedError)

_APP_LOCK = threading.Lock()


@dataclass(frozen=True)
class DeliveryOutcome:
	donor_id: int
	distance_km: float
	delivered: bool
	reason: str = ""
	message_id: Optional[str] = None


@dataclass
class DispatchReport:
	"""Per-request summary of a fan-out attempt."""

	sent_count: int = 0
	failures: List[NotificationDeliveryFailure] = field(default_factory=list)
	outcomes: List[DeliveryOutcome] = field(default_factory=list)
	enabled: bool = True

	@property
	def attempted(self) -> int:
		return self.sent_count + len(self.failures)


def get_firebase_app():
	"""Initialise the default Firebase app from FIREBASE_CREDENTIALS once."""

	with _APP_LOCK:
		try:
			return firebase_admin.get_app()
		except ValueError:
			pass

		cred_path = getattr(settings, "FIREBASE_CREDENTIALS", "")
		if not cred_path or not os.path.exists(cred_path):
			raise NotificationBackendError(f"Firebase credentials not found at {cred_path!r}")
		try:
			cred = credentials.Certificate(cred_path)
		except (ValueError, OSError) as exc:
			raise NotificationBackendError(f"Invalid Firebase credentials: {exc}") from exc

		timeout = getattr(settings, "PUSH_TIMEOUT_SECONDS", 10)
		return firebase_admin.initialize_app(cred, options={"httpTimeout": timeout})


def firebase_send(message: messaging.Message) -> str:
	return messaging.send(message, app=get_firebase_app())


def build_nearby_request_message(blood_request, donor: EligibleDonor) -> messaging.Message:
	return messaging.Message(
		token=donor.donor.notification_token,
		notification=messaging.Notification(
			title=f"{blood_request.bloodgroup} Blood Needed",
			body=f"{blood_request.units_required} unit(s) needed at {blood_request.hospital_address}",
		),
		data={
			"requestId": str(blood_request.pk),
			"bloodType": blood_request.bloodgroup,
			"hospitalAddress": blood_request.hospital_address,
			"unitsRequired": str(blood_request.units_required),
			"distanceKm": f"{donor.distance_km:.2f}",
			"type": NEARBY_REQUEST_TYPE,
			"timestamp": str(int(timezone.now().timestamp() * 1000)),
		},
		android=messaging.AndroidConfig(priority="high"),
		apns=messaging.APNSConfig(payload=messaging.APNSPayload(aps=messaging.Aps(sound="default", badge=1))),
	)


class NotificationDispatcher:
	"""Send one push per donor; a failed send never stops the rest of the batch.

	``sender`` receives a ``messaging.Message`` and returns the message id; it
	defaults to the Firebase Admin SDK and is swapped for a fake in tests.
	"""

	def __init__(self, sender: Optional[Callable[[messaging.Message], str]] = None, *, max_workers: Optional[int] = None):
		self.sender = sender or firebase_send
		self._max_workers = max_workers

	@property
	def max_workers(self) -> int:
		if self._max_workers is not None:
			return max(int(self._max_workers), 1)
		return max(int(getattr(settings, "PUSH_MAX_WORKERS", 1)), 1)

	def dispatch(self, donors: Sequence[EligibleDonor], blood_request) -> DispatchReport:
		if not donors:
			return DispatchReport()

		if not getattr(settings, "PUSH_NOTIFICATIONS_ENABLED", True):
			logger.info("Push notifications disabled; skipping %s donors for request %s", len(donors), blood_request.pk)
			report = DispatchReport(enabled=False)
			for donor in donors:
				_record(report, DeliveryOutcome(donor.donor_id, donor.distance_km, False, "push-disabled"))
			return report

		workers = min(self.max_workers, len(donors))
		if workers == 1:
			results = [self._send_one(blood_request, donor) for donor in donors]
		else:
			with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="push") as pool:
				futures = [pool.submit(self._send_one, blood_request, donor) for donor in donors]
			results = [future.result() for future in futures]

		report = DispatchReport()
		fatal: Optional[NotificationBackendError] = None
		for outcome, error in results:
			_record(report, outcome)
			if error is not None and fatal is None:
				fatal = error

		logger.info(
			"Notifications for request %s: %s sent, %s failed",
			blood_request.pk,
			report.sent_count,
			len(report.failures),
		)
		if fatal is not None and report.sent_count == 0:
			fatal.report = report
			raise fatal
		return report

	def _send_one(self, blood_request, donor: EligibleDonor):
		try:
			message_id = self.sender(build_nearby_request_message(blood_request, donor))
		except NotificationBackendError as exc:
			return DeliveryOutcome(donor.donor_id, donor.distance_km, False, str(exc)), exc
		except _FATAL_ERRORS as exc:
			logger.error("Push backend rejected credentials while notifying donor %s: %s", donor.donor_id, exc)
			return (
				DeliveryOutcome(donor.donor_id, donor.distance_km, False, exc.__class__.__name__),
				NotificationBackendError(f"Push backend refused the request: {exc}"),
			)
		except Exception as exc:
			logger.warning(
				"Failed to push request %s to donor %s: %s",
				blood_request.pk,
				donor.donor_id,
				exc,
			)
			return DeliveryOutcome(donor.donor_id, donor.distance_km, False, _reason(exc)), None
		return DeliveryOutcome(donor.donor_id, donor.distance_km, True, message_id=message_id), None

	def notify_requester(self, donation) -> Optional[str]:
		"""Tell the requester a donor accepted. Best effort: returns None on failure."""

		blood_request = donation.request
		requester = blood_request.requester
		token = (requester.notification_token or "").strip()
		if not token:
			logger.info("Requester of %s has no push token; skipping acceptance push", blood_request.pk)
			return None
		if not getattr(settings, "PUSH_NOTIFICATIONS_ENABLED", True):
			return None

		donor = donation.donor
		message = messaging.Message(
			token=token,
			notification=messaging.Notification(
				title="Donor Found!",
				body=f"{donor.username} has accepted your blood request",
			),
			data={
				"type": DONOR_ACCEPTED_TYPE,
				"requestId": str(blood_request.pk),
				"donorId": str(donor.pk),
				"donorName": donor.username,
				"donorPhone": donor.mobile,
				"donationId": str(donation.pk),
			},
		)
		try:
			return self.sender(message)
		except (NotificationBackendError, firebase_exceptions.FirebaseError, ValueError) as exc:
			logger.error("Acceptance push for request %s failed: %s", blood_request.pk, exc)
			return None


def _record(report: DispatchReport, outcome: DeliveryOutcome) -> None:
	report.outcomes.append(outcome)
	if outcome.delivered:
		report.sent_count += 1
	else:
		report.failures.append(NotificationDeliveryFailure(donor_id=outcome.donor_id, reason=outcome.reason))


def _reason(exc: Exception) -> str:
	code = getattr(exc, "code", None)
	text = f"{exc.__class__.__name__}: {exc}" if not code else f"{code}: {exc}"
	return text[:255]


__all__ = [
	"DONOR_ACCEPTED_TYPE",
	"DeliveryOutcome",
	"DispatchReport",
	"NEARBY_REQUEST_TYPE",
	"NotificationDispatcher",
	"build_nearby_request_message",
	"firebase_send",
	"get_firebase_app",
]

"""Errors raised by the request pipeline.

Each error carries a machine-readable ``code`` and the HTTP status the JSON
views answer with.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional


class BloodAlertError(Exception):
	code = "error"
	status_code = 500

	def __init__(self, message: Optional[str] = None):
		super().__init__(message or self.__class__.__doc__ or self.code)
		self.message = message or (self.__class__.__doc__ or self.code).strip()

	def as_dict(self) -> Dict:
		return {"success": False, "error": self.message, "code": self.code}


class ValidationError(BloodAlertError):
	"""Missing or invalid request fields."""

	code = "validation_error"
	status_code = 400

	def __init__(self, fields: Dict[str, List[str]], message: Optional[str] = None):
		self.fields = dict(fields)
		super().__init__(message or "Missing or invalid fields: " + ", ".join(sorted(self.fields)))

	def as_dict(self) -> Dict:
		data = super().as_dict()
		data["fields"] = self.fields
		return data


class InvalidBloodTypeError(BloodAlertError, ValueError):
	code = "invalid_blood_type"
	status_code = 400

	def __init__(self, value):
		self.value = value
		super().__init__(f"Unknown blood type: {value!r}")


class LocationResolutionError(BloodAlertError):
	"""Could not find hospital location."""

	code = "location_unresolved"
	status_code = 400


class EligibilityComputationError(BloodAlertError):
	"""Donor directory or location store failed during matching."""

	code = "eligibility_failed"
	status_code = 503


class NotificationBackendError(BloodAlertError):
	"""The push backend cannot be used at all (credentials, auth)."""

	code = "notification_backend_unavailable"
	status_code = 503
	report = None


class NotFoundError(BloodAlertError):
	code = "not_found"
	status_code = 404


class ConcurrencyConflictError(BloodAlertError):
	"""Another acceptance changed this request first."""

	code = "conflict"
	status_code = 409


class RequestExpiredError(ConcurrencyConflictError):
	"""This request is no longer available."""

	code = "request_expired"


class RequestAlreadyAcceptedError(ConcurrencyConflictError):
	"""This request already has an accepted donor."""

	code = "already_accepted"


class RequestClosedError(BloodAlertError):
	"""This request is closed."""

	code = "request_closed"
	status_code = 409


class DuplicateAcceptanceError(BloodAlertError):
	"""You have already accepted this request."""

	code = "duplicate_acceptance"
	status_code = 409


class SelfDonationError(BloodAlertError):
	"""You cannot accept your own request."""

	code = "self_donation"
	status_code = 400


class DonorNotEligibleError(BloodAlertError):
	code = "donor_not_eligible"
	status_code = 400


@dataclass(frozen=True)
class NotificationDeliveryFailure:
	"""Per-donor delivery failure; collected into a dispatch report, never raised."""

	donor_id: int
	reason: str

"""Shared builders for donor/request fixtures."""

import threading
from decimal import Decimal

from django.contrib.auth.models import User
from django.core.cache import caches

from blood.models import BloodRequest
from donor.location_store import DonorLocationStore
from donor.models import Donor

HOSPITAL_ADDRESS = "Lilavati Hospital, Bandra West, Mumbai"
HOSPITAL_COORDS = (19.0, 72.8)


class DonorFixturesMixin:
	def setUp(self):
		super().setUp()
		caches["locations"].clear()
		self.locations = DonorLocationStore()

	def make_donor(self, username, bloodgroup="O-", *, is_donor=True, token=None, location=None, last_donated_at=None, mobile="9876543210"):
		user = User.objects.create_user(username=username, password="DemoPass123!")
		donor = Donor.objects.create(
			user=user,
			bloodgroup=bloodgroup,
			mobile=mobile,
			is_donor=is_donor,
			notification_token=f"fcm-{username}" if token is None else token,
			last_donated_at=last_donated_at,
		)
		if location is not None:
			self.locations.put(donor.pk, *location)
		return donor

	def make_request(self, requester, bloodgroup="O-", *, coords=HOSPITAL_COORDS, units=1, **extra):
		return BloodRequest.objects.create(
			requester=requester,
			bloodgroup=bloodgroup,
			hospital_address=extra.pop("hospital_address", HOSPITAL_ADDRESS),
			hospital_latitude=Decimal(str(coords[0])),
			hospital_longitude=Decimal(str(coords[1])),
			units_required=units,
			contact_phone="9876543210",
			**extra,
		)


class FakeSender:
	"""Stands in for firebase_admin.messaging.send."""

	def __init__(self, fail_tokens=(), error=None):
		self.messages = []
		self.fail_tokens = set(fail_tokens)
		self.error = error
		self._lock = threading.Lock()

	def __call__(self, message):
		with self._lock:
			self.messages.append(message)
			count = len(self.messages)
		if self.error is not None:
			raise self.error
		if message.token in self.fail_tokens:
			raise RuntimeError(f"Requested entity was not found: {message.token}")
		return f"projects/bloodalert/messages/{count}"

	@property
	def tokens(self):
		return [message.token for message in self.messages]

from django.test import TestCase, override_settings
from firebase_admin import exceptions as firebase_exceptions

from blood.exceptions import NotificationBackendError
from blood.models import Donation
from blood.services.donor_directory import DonorCandidate
from blood.services.matching import EligibleDonor
from blood.services.push import DONOR_ACCEPTED_TYPE, NEARBY_REQUEST_TYPE, NotificationDispatcher
from blood.tests.helpers import DonorFixturesMixin, FakeSender


def _eligible(donor_id, distance=1.0):
	return EligibleDonor(
		donor_id=donor_id,
		distance_km=distance,
		donor=DonorCandidate(donor_id, f"token-{donor_id}", f"donor{donor_id}", "O-", "9876543210"),
	)


@override_settings(PUSH_NOTIFICATIONS_ENABLED=True)
class NotificationDispatcherTests(DonorFixturesMixin, TestCase):
	def setUp(self):
		super().setUp()
		self.requester = self.make_donor("requester", "B+")
		self.blood_request = self.make_request(self.requester, "B+", units=2)

	def test_failure_for_one_donor_does_not_stop_the_rest(self):
		donors = [_eligible(i, distance=i) for i in range(1, 7)]
		sender = FakeSender(fail_tokens={"token-3"})

		report = NotificationDispatcher(sender, max_workers=1).dispatch(donors, self.blood_request)

		self.assertEqual(sender.tokens, [f"token-{i}" for i in range(1, 7)])
		self.assertEqual(report.sent_count, 5)
		self.assertEqual([f.donor_id for f in report.failures], [3])
		self.assertIn("not found", report.failures[0].reason)
		self.assertEqual(report.sent_count + len(report.failures), len(donors))
		self.assertEqual([o.donor_id for o in report.outcomes], list(range(1, 7)))

	def test_concurrent_fan_out_reports_in_input_order(self):
		donors = [_eligible(i) for i in range(1, 21)]
		sender = FakeSender(fail_tokens={"token-4", "token-17"})

		report = NotificationDispatcher(sender, max_workers=8).dispatch(donors, self.blood_request)

		self.assertEqual(len(sender.messages), 20)
		self.assertEqual([o.donor_id for o in report.outcomes], list(range(1, 21)))
		self.assertEqual(sorted(f.donor_id for f in report.failures), [4, 17])
		self.assertEqual(report.sent_count, 18)

	def test_empty_donor_list_makes_no_calls(self):
		sender = FakeSender()
		report = NotificationDispatcher(sender).dispatch([], self.blood_request)
		self.assertEqual((report.sent_count, report.failures), (0, []))
		self.assertEqual(sender.messages, [])

	def test_payload_carries_request_details(self):
		sender = FakeSender()
		NotificationDispatcher(sender, max_workers=1).dispatch([_eligible(9, distance=3.14159)], self.blood_request)

		message = sender.messages[0]
		self.assertEqual(message.token, "token-9")
		self.assertEqual(message.data["requestId"], str(self.blood_request.pk))
		self.assertEqual(message.data["bloodType"], "B+")
		self.assertEqual(message.data["hospitalAddress"], self.blood_request.hospital_address)
		self.assertEqual(message.data["unitsRequired"], "2")
		self.assertEqual(message.data["distanceKm"], "3.14")
		self.assertEqual(message.data["type"], NEARBY_REQUEST_TYPE)
		self.assertTrue(all(isinstance(value, str) for value in message.data.values()))

	def test_backend_auth_failure_is_fatal(self):
		sender = FakeSender(error=firebase_exceptions.UnauthenticatedError("invalid service account"))
		with self.assertRaises(NotificationBackendError) as ctx:
			NotificationDispatcher(sender, max_workers=1).dispatch([_eligible(1), _eligible(2)], self.blood_request)
		self.assertEqual(ctx.exception.report.attempted, 2)
		self.assertEqual(ctx.exception.report.sent_count, 0)

	def test_missing_credentials_are_fatal(self):
		with override_settings(FIREBASE_CREDENTIALS="/nonexistent/serviceAccountKey.json"):
			with self.assertRaises(NotificationBackendError):
				NotificationDispatcher(max_workers=1).dispatch([_eligible(1)], self.blood_request)

	@override_settings(PUSH_NOTIFICATIONS_ENABLED=False)
	def test_disabled_reports_every_donor_as_skipped(self):
		sender = FakeSender()
		report = NotificationDispatcher(sender).dispatch([_eligible(1), _eligible(2)], self.blood_request)
		self.assertFalse(report.enabled)
		self.assertEqual(sender.messages, [])
		self.assertEqual([f.reason for f in report.failures], ["push-disabled", "push-disabled"])

	def test_notify_requester_sends_donor_accepted(self):
		self.requester.refresh_token("fcm-requester-device")
		donor = self.make_donor("helper", "O-", mobile="9123456780")
		donation = Donation.objects.create(request=self.blood_request, donor=donor)
		sender = FakeSender()

		message_id = NotificationDispatcher(sender).notify_requester(donation)

		self.assertIsNotNone(message_id)
		message = sender.messages[0]
		self.assertEqual(message.token, "fcm-requester-device")
		self.assertEqual(message.data["type"], DONOR_ACCEPTED_TYPE)
		self.assertEqual(message.data["donorPhone"], "9123456780")

	def test_notify_requester_without_token_is_noop(self):
		self.requester.refresh_token("")
		donation = Donation.objects.create(request=self.blood_request, donor=self.make_donor("helper", "O-"))
		sender = FakeSender()
		self.assertIsNone(NotificationDispatcher(sender).notify_requester(donation))
		self.assertEqual(sender.messages, [])

	def test_notify_requester_swallows_delivery_errors(self):
		donation = Donation.objects.create(request=self.blood_request, donor=self.make_donor("helper", "O-"))
		sender = FakeSender(error=firebase_exceptions.NotFoundError("unregistered"))
		self.assertIsNone(NotificationDispatcher(sender).notify_requester(donation))

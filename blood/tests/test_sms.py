from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError
from django.test import TestCase, override_settings

from blood import tasks
from blood.models import Donation
from blood.services import sms
from blood.tests.helpers import DonorFixturesMixin
from blood.utils.phone import normalize_phone_number


class PhoneNormalizationTests(TestCase):
	@override_settings(AWS_SNS_DEFAULT_COUNTRY_CODE='+91')
	def test_local_numbers_get_default_country_code(self):
		self.assertEqual(normalize_phone_number('98765 43210'), '+919876543210')
		self.assertEqual(normalize_phone_number('098765-43210'), '+919876543210')
		self.assertEqual(normalize_phone_number('919876543210'), '+919876543210')

	def test_international_numbers_kept(self):
		self.assertEqual(normalize_phone_number('+1 (415) 555-0100'), '+14155550100')

	def test_missing_numbers(self):
		self.assertIsNone(normalize_phone_number(''))
		self.assertIsNone(normalize_phone_number(None))
		self.assertIsNone(normalize_phone_number('+12'))


@override_settings(AWS_SNS_ENABLED=True, AWS_SNS_SMS_TYPE='Transactional', AWS_SNS_SENDER_ID='BLOODALERT-IN', AWS_SNS_DEFAULT_COUNTRY_CODE='+91')
class RequesterSmsTests(DonorFixturesMixin, TestCase):
	def setUp(self):
		super().setUp()
		self.requester = self.make_donor('requester', 'AB-', token='')
		self.donor = self.make_donor('donor', 'O-', mobile='+919812345678')
		self.blood_request = self.make_request(self.requester, 'AB-', units=2)
		self.client_mock = MagicMock()
		self.client_mock.publish.return_value = {'MessageId': 'sns-1'}

	def test_confirmation_published(self):
		result = sms.send_requester_confirmation(self.blood_request, sns_client=self.client_mock)

		self.assertEqual(result, {'status': 'success', 'to': '+919876543210', 'message_id': 'sns-1'})
		kwargs = self.client_mock.publish.call_args.kwargs
		self.assertIn('AB- request for 2 unit(s)', kwargs['Message'])
		self.assertEqual(kwargs['MessageAttributes']['AWS.SNS.SMS.SenderID']['StringValue'], 'BLOODALERT-')

	def test_client_errors_reported_not_raised(self):
		self.client_mock.publish.side_effect = ClientError({'Error': {'Code': 'Throttling', 'Message': 'slow down'}}, 'Publish')
		result = sms.send_requester_confirmation(self.blood_request, sns_client=self.client_mock)
		self.assertEqual(result['status'], 'error')

	@override_settings(AWS_SNS_ENABLED=False)
	def test_disabled(self):
		result = sms.send_requester_confirmation(self.blood_request, sns_client=self.client_mock)
		self.assertEqual(result, {'status': 'skipped', 'reason': 'sns-disabled'})
		self.client_mock.publish.assert_not_called()

	def test_no_contact(self):
		self.blood_request.contact_phone = ''
		result = sms.send_requester_confirmation(self.blood_request, sns_client=self.client_mock)
		self.assertEqual(result['reason'], 'no-contact')

	def test_acceptance_task_falls_back_to_sms_without_push_token(self):
		donation = Donation.objects.create(request=self.blood_request, donor=self.donor)

		with patch.object(sms, '_get_sns_client', return_value=self.client_mock):
			tasks.notify_requester_of_acceptance.apply(args=(donation.pk,)).get()

		message = self.client_mock.publish.call_args.kwargs['Message']
		self.assertIn('donor accepted your AB- request', message)
		self.assertIn('+919812345678', message)

	def test_confirmation_task(self):
		with patch.object(sms, '_get_sns_client', return_value=self.client_mock):
			tasks.send_requester_confirmation_sms.apply(args=(str(self.blood_request.pk),)).get()
		self.client_mock.publish.assert_called_once()

import json

from django.contrib.auth.models import User
from django.core.cache import caches
from django.test import TestCase
from django.urls import reverse

from donor.location_store import DonorLocationStore
from donor.models import Donor


class DonorEndpointTests(TestCase):
	def setUp(self):
		caches['locations'].clear()
		user = User.objects.create_user(username='asha', password='DemoPass123!')
		self.donor = Donor.objects.create(user=user, bloodgroup='B+', mobile='9876543210', is_donor=True)

	def post_json(self, url, data):
		return self.client.post(url, json.dumps(data), content_type='application/json')

	def test_report_location(self):
		response = self.post_json(reverse('donor-report-location', args=[self.donor.pk]), {'latitude': 19.07, 'longitude': 72.87})

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.json()['success'])
		location = DonorLocationStore().get(self.donor.pk)
		self.assertEqual((location.latitude, location.longitude), (19.07, 72.87))

	def test_report_location_form_encoded(self):
		response = self.client.post(reverse('donor-report-location', args=[self.donor.pk]), {'latitude': '19.07', 'longitude': '72.87'})
		self.assertEqual(response.status_code, 200)

	def test_report_location_invalid(self):
		response = self.post_json(reverse('donor-report-location', args=[self.donor.pk]), {'latitude': 120, 'longitude': 72.87})

		self.assertEqual(response.status_code, 400)
		self.assertIn('latitude', response.json()['fields'])
		self.assertIsNone(DonorLocationStore().get(self.donor.pk))

	def test_report_location_unknown_donor(self):
		response = self.post_json(reverse('donor-report-location', args=[9999]), {'latitude': 1, 'longitude': 1})
		self.assertEqual(response.status_code, 404)

	def test_refresh_token(self):
		response = self.post_json(reverse('donor-refresh-token', args=[self.donor.pk]), {'notification_token': ' fcm-new '})

		self.assertEqual(response.status_code, 200)
		self.donor.refresh_from_db()
		self.assertEqual(self.donor.notification_token, 'fcm-new')
		self.assertIsNotNone(self.donor.token_updated_at)

	def test_location_requires_post(self):
		self.assertEqual(self.client.get(reverse('donor-report-location', args=[self.donor.pk])).status_code, 405)

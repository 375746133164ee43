from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from blood import tasks
from blood.models import BloodRequest
from blood.services.expiry import ExpiryReaper
from blood.tests.helpers import DonorFixturesMixin


class ExpiryReaperTests(DonorFixturesMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.requester = self.make_donor("requester", "B+")
        past = timezone.now() - timedelta(hours=1)
        self.stale = self.make_request(self.requester, "B+", expires_at=past)
        self.stale_partial = self.make_request(
            self.requester, "B+", expires_at=past, status=BloodRequest.PARTIALLY_FULFILLED
        )
        self.done = self.make_request(self.requester, "B+", expires_at=past, status=BloodRequest.COMPLETED)
        self.live = self.make_request(self.requester, "B+")

    def test_marks_open_requests_past_ttl(self):
        self.assertEqual(ExpiryReaper().run_once(), 2)

        statuses = dict(BloodRequest.objects.values_list("pk", "status"))
        self.assertEqual(statuses[self.stale.pk], BloodRequest.EXPIRED)
        self.assertEqual(statuses[self.stale_partial.pk], BloodRequest.EXPIRED)
        self.assertEqual(statuses[self.done.pk], BloodRequest.COMPLETED)
        self.assertEqual(statuses[self.live.pk], BloodRequest.LOOKING)

    def test_second_run_is_a_no_op(self):
        ExpiryReaper().run_once()
        self.stale.refresh_from_db()
        version = self.stale.version

        self.assertEqual(ExpiryReaper().run_once(), 0)
        self.stale.refresh_from_db()
        self.assertEqual(self.stale.version, version)

    def test_rows_are_kept(self):
        ExpiryReaper().run_once()
        self.assertEqual(BloodRequest.objects.count(), 4)

    def test_explicit_clock(self):
        later = timezone.now() + timedelta(hours=49)
        self.assertEqual(ExpiryReaper().run_once(now=later), 3)

    def test_management_command(self):
        out = StringIO()
        call_command("reap_expired_requests", stdout=out)
        self.assertIn("Expired 2 blood requests", out.getvalue())

        out = StringIO()
        call_command("reap_expired_requests", stdout=out)
        self.assertIn("No blood requests to expire", out.getvalue())

    def test_beat_task(self):
        self.assertEqual(tasks.reap_expired_requests.apply().get(), 2)

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from blood import models as bmodels
from blood.exceptions import EligibilityComputationError
from blood.services.matching import EligibilityMatcher


class Command(BaseCommand):
    help = "List the donors a blood request would be pushed to, without sending anything."

    def add_arguments(self, parser):
        parser.add_argument('request_id', help='UUID of the blood request.')
        parser.add_argument('--radius', type=float, help='Override DONOR_MATCH_RADIUS_KM for this preview.')
        parser.add_argument('--limit', type=int, help='Override DONOR_MATCH_MAX_RECIPIENTS for this preview.')

    def handle(self, *args, **options):
        blood_request = bmodels.BloodRequest.objects.filter(pk=options['request_id']).first()
        if blood_request is None:
            raise CommandError(f"Blood request {options['request_id']} not found")

        matcher = EligibilityMatcher(radius_km=options.get('radius'), max_recipients=options.get('limit'))
        try:
            matches = matcher.match(blood_request)
        except EligibilityComputationError as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(
            f"{blood_request.bloodgroup} request at {blood_request.hospital_address} "
            f"({blood_request.hospital_latitude}, {blood_request.hospital_longitude}), radius {matcher.radius_km:.1f} km"
        )
        if not matches:
            self.stdout.write(self.style.WARNING("No eligible donors in range."))
            return

        for rank, match in enumerate(matches, start=1):
            self.stdout.write(
                f"[{rank}] donor #{match.donor_id} {match.donor.username} ({match.donor.bloodgroup}) {match.distance_km:.2f} km"
            )
        self.stdout.write(self.style.SUCCESS(f"{len(matches)} donors would be notified."))

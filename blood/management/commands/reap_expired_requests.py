from django.core.management.base import BaseCommand

from blood.services.expiry import ExpiryReaper


class Command(BaseCommand):
    help = "Mark open blood requests past their TTL as expired (the hourly Celery beat job, run by hand)."

    def handle(self, *args, **options):
        count = ExpiryReaper().run_once()
        if count:
            self.stdout.write(self.style.SUCCESS(f"Expired {count} blood requests."))
        else:
            self.stdout.write("No blood requests to expire.")

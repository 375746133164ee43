import logging

from celery import shared_task

from blood import models
from blood.services import sms as sms_service
from blood.services.expiry import ExpiryReaper
from blood.services.push import NotificationDispatcher


logger = logging.getLogger(__name__)


@shared_task(bind=True, autoretry_for=(Exception,), retry_backoff=True, retry_kwargs={'max_retries': 3})
def notify_requester_of_acceptance(self, donation_id: int) -> None:
    donation = models.Donation.objects.select_related('request__requester__user', 'donor__user').get(pk=donation_id)
    message_id = NotificationDispatcher().notify_requester(donation)
    if message_id is None:
        sms_service.send_acceptance_sms(donation)


@shared_task(bind=True, autoretry_for=(Exception,), retry_backoff=True, retry_kwargs={'max_retries': 3})
def send_requester_confirmation_sms(self, blood_request_id: str) -> None:
    blood_request = models.BloodRequest.objects.get(pk=blood_request_id)
    sms_service.send_requester_confirmation(blood_request)


@shared_task
def reap_expired_requests() -> int:
    count = ExpiryReaper().run_once()
    logger.info("Expiry sweep processed %s requests", count)
    return count

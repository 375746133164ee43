"""AWS SNS SMS helpers for requester-facing confirmations."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

from blood.utils.phone import normalize_phone_number

logger = logging.getLogger(__name__)


def send_requester_confirmation(blood_request, *, sns_client=None) -> Dict:
	"""Text the request's contact phone with its id and notification outcome."""

	message = (
		f"BloodAlert #{str(blood_request.pk)[:8]}: We received your {blood_request.bloodgroup} "
		f"request for {blood_request.units_required} unit(s). "
		f"{blood_request.notifications_sent} nearby donor(s) have been notified."
	)
	return _send(blood_request.contact_phone, message, sns_client=sns_client, context=f"confirmation for {blood_request.pk}")


def send_acceptance_sms(donation, *, sns_client=None) -> Dict:
	"""Fallback for requesters without a push token: text them the donor's contact."""

	blood_request = donation.request
	donor = donation.donor
	message = (
		f"BloodAlert: {donor.username} accepted your {blood_request.bloodgroup} request "
		f"at {blood_request.hospital_address}. Contact: {donor.mobile}"
	)[:1200]
	return _send(blood_request.contact_phone, message, sns_client=sns_client, context=f"acceptance for {blood_request.pk}")


def _send(raw_phone: Optional[str], message: str, *, sns_client=None, context: str = "") -> Dict:
	phone = normalize_phone_number(raw_phone)
	if not phone:
		return {'status': 'skipped', 'reason': 'no-contact'}

	if not settings.AWS_SNS_ENABLED:
		logger.info("AWS SNS alerts disabled; skipping %s", context)
		return {'status': 'skipped', 'reason': 'sns-disabled'}

	if sns_client is None:
		sns_client = _get_sns_client()

	try:
		response = sns_client.publish(PhoneNumber=phone, Message=message, MessageAttributes=_message_attributes())
	except (BotoCoreError, ClientError) as exc:
		logger.error("SMS %s to %s failed: %s", context, phone, exc)
		return {'status': 'error', 'to': phone, 'reason': str(exc)}

	return {'status': 'success', 'to': phone, 'message_id': response.get('MessageId')}


def _get_sns_client():
	return boto3.client('sns', region_name=settings.AWS_SNS_REGION)


def _message_attributes():
	attributes = {
		'AWS.SNS.SMS.SMSType': {'DataType': 'String', 'StringValue': settings.AWS_SNS_SMS_TYPE},
	}
	if settings.AWS_SNS_SENDER_ID:
		attributes['AWS.SNS.SMS.SenderID'] = {
			'DataType': 'String',
			'StringValue': settings.AWS_SNS_SENDER_ID[:11],
		}
	return attributes


from __future__ import annotations

import logging

from django.db.models.signals import pre_save
from django.dispatch import receiver
from django.utils import timezone

from .models import Donor

LOGGER = logging.getLogger(__name__)


@receiver(pre_save, sender=Donor)
def stamp_token_refresh(sender, instance: Donor, **kwargs):
	"""Record when the push token last changed so stale devices can be spotted."""

	token = (instance.notification_token or "").strip()
	instance.notification_token = token

	if instance.pk is None:
		if token:
			instance.token_updated_at = timezone.now()
		return

	previous = sender.objects.filter(pk=instance.pk).values_list("notification_token", flat=True).first()
	if previous == token:
		return

	instance.token_updated_at = timezone.now() if token else None
	LOGGER.debug("Push token %s for donor %s", "refreshed" if token else "cleared", instance.pk)

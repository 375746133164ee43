import json
import logging

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from .forms import LocationReportForm, TokenRefreshForm
from .location_store import DonorLocationStore
from .models import Donor

logger = logging.getLogger(__name__)


def _payload(request):
    if request.content_type == 'application/json':
        try:
            return json.loads(request.body or b'{}')
        except ValueError:
            return {}
    return request.POST


@csrf_exempt
@require_POST
def report_location_view(request, pk):
    """Store the latest device position for a donor in the location store."""
    donor = get_object_or_404(Donor, pk=pk)
    form = LocationReportForm(_payload(request))
    if not form.is_valid():
        return JsonResponse(
            {'success': False, 'error': 'Latitude and longitude are required', 'code': 'validation_error', 'fields': form.errors.get_json_data()},
            status=400,
        )

    location = DonorLocationStore().put(donor.pk, form.cleaned_data['latitude'], form.cleaned_data['longitude'])
    logger.debug("Stored location for donor %s", donor.pk)
    return JsonResponse({
        'success': True,
        'donor_id': donor.pk,
        'latitude': location.latitude,
        'longitude': location.longitude,
        'updated_at': location.updated_at,
    })


@csrf_exempt
@require_POST
def refresh_token_view(request, pk):
    donor = get_object_or_404(Donor, pk=pk)
    form = TokenRefreshForm(_payload(request), instance=donor)
    if not form.is_valid():
        return JsonResponse(
            {'success': False, 'error': 'Invalid notification token', 'code': 'validation_error', 'fields': form.errors.get_json_data()},
            status=400,
        )

    donor.refresh_token(form.cleaned_data['notification_token'])
    return JsonResponse({'success': True, 'donor_id': donor.pk, 'token_updated_at': donor.token_updated_at})

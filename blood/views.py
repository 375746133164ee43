import json
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .exceptions import BloodAlertError, ValidationError
from .services.lifecycle import RequestLifecycleManager

logger = logging.getLogger(__name__)


def _payload(request):
    if request.content_type == 'application/json':
        try:
            data = json.loads(request.body or b'{}')
        except ValueError:
            raise ValidationError({'body': ['Request body must be valid JSON.']})
        if not isinstance(data, dict):
            raise ValidationError({'body': ['Request body must be a JSON object.']})
        return data
    return request.POST


def _acting_donor_id(request, payload, field):
    """Donor profile of the logged-in user, else an explicit id in the payload."""
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated and hasattr(user, 'donor'):
        return user.donor.pk
    value = payload.get(field) or request.GET.get(field)
    if not value:
        raise ValidationError({field: ['This field is required.']})
    return value


def _error_response(exc: BloodAlertError):
    return JsonResponse(exc.as_dict(), status=exc.status_code)


def _serialize_request(blood_request):
    return {
        'id': str(blood_request.pk),
        'requester': {
            'id': blood_request.requester_id,
            'username': blood_request.requester.username,
            'phone': blood_request.requester.mobile,
        },
        'blood_type': blood_request.bloodgroup,
        'description': blood_request.description,
        'hospital_address': blood_request.hospital_address,
        'hospital_latitude': float(blood_request.hospital_latitude),
        'hospital_longitude': float(blood_request.hospital_longitude),
        'units_required': blood_request.units_required,
        'contact_phone': blood_request.contact_phone,
        'status': blood_request.status,
        'donors_found': blood_request.donors_found,
        'notifications_sent': blood_request.notifications_sent,
        'notifications_failed': blood_request.notifications_failed,
        'created_at': blood_request.created_at,
        'expires_at': blood_request.expires_at,
    }


@csrf_exempt
@require_POST
def create_request_view(request):
    try:
        payload = _payload(request)
        requester_id = _acting_donor_id(request, payload, 'requester_id')
        result = RequestLifecycleManager().create_request(payload, requester_id)
    except BloodAlertError as exc:
        logger.info("Blood request rejected: %s", exc.message)
        return _error_response(exc)

    blood_request = result.blood_request
    return JsonResponse({
        'success': True,
        'message': 'Blood request created successfully',
        'request_id': str(blood_request.pk),
        'expires_at': blood_request.expires_at,
        'donors_found': result.donors_found,
        'notifications_sent': result.notifications_sent,
    }, status=201)


@csrf_exempt
@require_POST
def accept_request_view(request, pk):
    try:
        payload = _payload(request)
        donor_id = _acting_donor_id(request, payload, 'donor_id')
        result = RequestLifecycleManager().accept_request(pk, donor_id)
    except BloodAlertError as exc:
        return _error_response(exc)

    blood_request = result.blood_request
    donor = result.donation.donor
    return JsonResponse({
        'success': True,
        'message': 'Successfully accepted the blood request',
        'donation_id': result.donation_id,
        'request_id': str(blood_request.pk),
        'status': blood_request.status,
        'donor_contact': donor.mobile,
        'hospital_address': blood_request.hospital_address,
    })


@require_GET
def active_requests_view(request):
    try:
        user_id = _acting_donor_id(request, request.GET, 'user_id')
        requests = RequestLifecycleManager().get_active_requests(user_id)
    except BloodAlertError as exc:
        return _error_response(exc)
    return JsonResponse({'success': True, 'requests': [_serialize_request(item) for item in requests]})


@require_GET
def request_detail_view(request, pk):
    try:
        details = RequestLifecycleManager().get_request_details(pk)
    except BloodAlertError as exc:
        return _error_response(exc)

    data = _serialize_request(details.blood_request)
    data['donations'] = [
        {
            'id': donation.pk,
            'donor_id': donation.donor_id,
            'username': donation.donor.username,
            'blood_type': donation.donor.bloodgroup,
            'units_donated': donation.units_donated,
            'donated_at': donation.donated_at,
            'status': donation.status,
        }
        for donation in details.donations
    ]
    data['notified_donors'] = [
        {
            'donor_id': notified.donor_id,
            'distance_km': round(notified.distance_km, 2),
            'delivered': notified.delivered,
            'failure_reason': notified.failure_reason,
        }
        for notified in details.notified_donors
    ]
    return JsonResponse({
        'success': True,
        'request': data,
        'time_remaining': f"{details.hours_remaining} hours",
        'is_expired': details.is_expired,
    })


@csrf_exempt
@require_POST
def cleanup_view(request):
    count = RequestLifecycleManager().cleanup_expired()
    return JsonResponse({'success': True, 'message': 'Cleanup completed', 'expired_count': count})

import json
import logging

import requests
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from .services import Msg91Service, OtpError, get_otp_sessions

logger = logging.getLogger(__name__)


def _error(message, status):
    return JsonResponse({'type': 'error', 'message': message}, status=status)


@csrf_exempt
@require_POST
def send_otp(request):
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return _error('Invalid JSON.', 400)
    if not isinstance(data, dict):
        return _error('Request body must be a JSON object.', 400)

    mobile = str(data.get('mobile') or '').strip()
    if not mobile:
        return _error('Mobile number is required.', 400)

    try:
        session = Msg91Service().send_otp(mobile)
    except OtpError as e:
        return _error(str(e), 500)
    except requests.exceptions.RequestException as e:
        logger.error(f"Error sending OTP to {mobile}: {e}")
        return _error('An error occurred on the server.', 500)

    get_otp_sessions().put(mobile, session)
    return JsonResponse({'type': 'success', 'message': 'OTP sent successfully.'})


@csrf_exempt
@require_POST
def verify_otp(request):
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return _error('Invalid JSON.', 400)
    if not isinstance(data, dict):
        return _error('Request body must be a JSON object.', 400)

    mobile = str(data.get('mobile') or '').strip()
    otp = str(data.get('otp') or '').strip()
    if not mobile or not otp:
        return _error('Mobile and OTP are required.', 400)

    sessions = get_otp_sessions()
    session = sessions.get(mobile)
    if not session:
        return _error('OTP session not found or expired.', 400)

    try:
        Msg91Service().verify_otp(mobile, otp, session)
    except OtpError as e:
        return _error(str(e), 400)
    except requests.exceptions.RequestException as e:
        logger.error(f"Error verifying OTP for {mobile}: {e}")
        return _error('An error occurred on the server.', 500)

    sessions.pop(mobile)
    return JsonResponse({'type': 'success', 'message': 'OTP verified successfully.'})

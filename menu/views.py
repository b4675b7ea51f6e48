import json
import logging

import requests
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from accounts.auth import admin_required
from .services import CloudinaryService

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
@admin_required
def upload_image(request):
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)
    if not isinstance(data, dict):
        return JsonResponse({'error': 'Request body must be a JSON object'}, status=400)

    image_data = data.get('data')
    if not image_data:
        return JsonResponse({'error': 'Image data is required'}, status=400)

    try:
        secure_url = CloudinaryService().upload(image_data)
    except (requests.exceptions.RequestException, KeyError) as e:
        logger.error(f"Upload Error: {e}")
        return JsonResponse({'error': 'Something went wrong'}, status=500)

    return JsonResponse({'secure_url': secure_url})


@csrf_exempt
@require_POST
@admin_required
def delete_image(request):
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return JsonResponse({'success': False, 'message': 'Invalid JSON'}, status=400)
    if not isinstance(data, dict):
        return JsonResponse({'success': False, 'message': 'Request body must be a JSON object'}, status=400)

    public_id = data.get('publicId')
    if not public_id:
        return JsonResponse({'success': False, 'message': 'publicId is required'}, status=400)

    try:
        deleted = CloudinaryService().delete(public_id)
    except requests.exceptions.RequestException as e:
        logger.error(f"Error deleting image {public_id}: {e}")
        return JsonResponse({'success': False, 'message': 'Server error'}, status=500)

    if deleted:
        return JsonResponse({'success': True, 'message': 'Image deleted successfully'})
    return JsonResponse({'success': False, 'message': 'Failed to delete image'}, status=400)

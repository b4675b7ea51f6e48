import functools
import logging

from django.conf import settings
from django.http import JsonResponse
from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError

from farmhouse_backend.firebase_config import initialize_firebase

logger = logging.getLogger(__name__)


def admin_required(view):
    """
    Lets the request through only with `Authorization: Bearer <Firebase ID token>`
    whose claims carry `admin: true`. The caller's uid is kept on
    `request.admin_uid` for audit logging.
    """

    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        request.admin_uid = None
        if not settings.ADMIN_AUTH_REQUIRED:
            return view(request, *args, **kwargs)

        header = request.headers.get('Authorization', '')
        if not header.startswith('Bearer '):
            return JsonResponse({'error': 'Authentication required.'}, status=401)

        try:
            initialize_firebase()
            claims = auth.verify_id_token(header[len('Bearer '):].strip())
        except (ValueError, FirebaseError) as e:
            logger.warning(f"Rejected admin request to {request.path}: {e}")
            return JsonResponse({'error': 'Invalid or expired token.'}, status=401)

        if not claims.get('admin'):
            logger.warning(f"User {claims.get('uid')} is not an admin; denied {request.path}.")
            return JsonResponse({'error': 'Admin access required.'}, status=403)

        request.admin_uid = claims.get('uid')
        return view(request, *args, **kwargs)

    return wrapper

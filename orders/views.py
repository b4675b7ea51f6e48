import functools
import json
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from accounts.auth import admin_required
from .exceptions import OrderError, RemoteUnavailable, ValidationError
from .models import OrderStatus, parse_status
from .repository import OrderFilter, OrderRepository

logger = logging.getLogger(__name__)


def handle_order_errors(view):
    """Renders OrderError subclasses as JSON with their HTTP status."""

    @functools.wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except RemoteUnavailable as e:
            logger.error(f"Store unavailable during {request.method} {request.path}: {e}")
            return JsonResponse({'error': 'Could not load or update orders. Please try again.'},
                                status=e.status_code)
        except OrderError as e:
            return JsonResponse({'error': str(e)}, status=e.status_code)

    return wrapper


def _load_json(request):
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON.")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def _truthy(value):
    return (value or '').lower() in ('1', 'true', 'yes')


@csrf_exempt
@require_POST
@handle_order_errors
def create_order(request):
    """
    Places an order from the checkout payload:
    {userId?, items: [{name, price, qty, size?, addons?, crust?}], userDetails: {...}}
    """
    order = OrderRepository().create(_load_json(request))
    return JsonResponse(order.to_json(), status=201)


@require_GET
@handle_order_errors
def customer_orders(request, user_id):
    orders = OrderRepository().list_by_customer(user_id)
    return JsonResponse([order.to_json() for order in orders], safe=False)


@require_GET
@admin_required
@handle_order_errors
def admin_orders(request):
    """
    All orders, newest first. Optional query parameters:
    status=<status>, today=1 (created since local midnight),
    active=1 (hide delivered orders).
    """
    status = request.GET.get('status')
    kwargs = {
        'status': parse_status(status) if status else None,
        'exclude_status': OrderStatus.DELIVERED if _truthy(request.GET.get('active')) else None,
    }
    if _truthy(request.GET.get('today')):
        order_filter = OrderFilter.today(**kwargs)
    else:
        order_filter = OrderFilter(**kwargs)

    orders = OrderRepository().list_all(order_filter)
    return JsonResponse([order.to_json() for order in orders], safe=False)


@csrf_exempt
@require_http_methods(["PUT"])
@admin_required
@handle_order_errors
def update_order_status(request, order_id):
    data = _load_json(request)
    status = data.get('status')
    if not status:
        raise ValidationError("Status is required.")

    order = OrderRepository().update_status(order_id, status, operator=request.admin_uid)
    return JsonResponse(order.to_json())

"""
JSON response helpers shared by the API views.

Every response uses the same envelope:
    {"success": bool, "message": str, "data": ...}

api_view maps the domain exceptions raised by services onto status codes:
- ValidationError  -> 400
- PermissionDenied -> 403
- Http404          -> 404
"""

import json
import logging
from functools import wraps

from django.core.exceptions import PermissionDenied, ValidationError
from django.http import Http404, JsonResponse
from django.views.decorators.http import require_http_methods

logger = logging.getLogger(__name__)


def success_response(data=None, message='', status=200):
    return JsonResponse(
        {'success': True, 'message': message, 'data': data},
        status=status,
    )


def error_response(message, status=400, errors=None):
    payload = {'success': False, 'message': message, 'data': None}
    if errors:
        payload['errors'] = errors
    return JsonResponse(payload, status=status)


def _validation_payload(exc):
    if hasattr(exc, 'error_dict'):
        return exc.message_dict
    return {'non_field_errors': exc.messages}


def parse_json_body(request):
    """
    Decode a JSON object body.

    Raises:
        ValidationError: If the body is not a JSON object
    """
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (TypeError, ValueError):
        raise ValidationError('Request body must be valid JSON.')
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object.')
    return data


def api_view(methods):
    """
    Decorator for JSON endpoints.

    Rejects anonymous users with 401 (no login redirect), restricts the
    allowed HTTP methods and turns service exceptions into JSON errors.

    Usage:
        @api_view(['GET', 'POST'])
        def task_collection_view(request):
            ...
    """
    def decorator(view_func):
        @require_http_methods(methods)
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return error_response('Authentication required.', status=401)
            try:
                return view_func(request, *args, **kwargs)
            except ValidationError as e:
                payload = _validation_payload(e)
                first = next(iter(payload.values()), ['Invalid request.'])
                return error_response(first[0], status=400, errors=payload)
            except PermissionDenied as e:
                return error_response(str(e) or 'Permission denied.', status=403)
            except Http404 as e:
                return error_response(str(e) or 'Not found.', status=404)
        return wrapper
    return decorator


def form_errors_response(form):
    """400 response carrying a bound form's field errors."""
    errors = {field: [str(msg) for msg in messages] for field, messages in form.errors.items()}
    first = next(iter(errors.values()), ['Invalid request.'])
    return error_response(first[0], status=400, errors=errors)

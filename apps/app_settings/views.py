"""
Views for app_settings.

Admins and managers read and upsert settings; only admins delete.
"""

from functools import wraps

from django.core.exceptions import PermissionDenied
from django.http import Http404

from apps.common.http import api_view, parse_json_body, success_response
from .models import Setting
from .services import delete_setting, update_setting


def settings_manager_required(view_func):
    """Decorator to require a role that may manage settings."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.can_manage_settings():
            raise PermissionDenied("You don't have permission to manage settings.")
        return view_func(request, *args, **kwargs)
    return wrapper


@api_view(['GET', 'POST', 'PUT'])
@settings_manager_required
def setting_collection_view(request):
    if request.method == 'GET':
        return success_response({'settings': [s.to_dict() for s in Setting.objects.all()]})

    data = parse_json_body(request)
    setting = update_setting(
        key=data.get('key', ''),
        value=data.get('value'),
        description=data.get('description'),
    )
    return success_response({'setting': setting.to_dict()}, 'Setting saved successfully')


@api_view(['GET', 'PUT', 'DELETE'])
@settings_manager_required
def setting_detail_view(request, key):
    if request.method == 'GET':
        setting = Setting.objects.filter(key=key).first()
        if setting is None:
            raise Http404('Setting not found.')
        return success_response({'setting': setting.to_dict()})

    if request.method == 'DELETE':
        if not request.user.is_admin():
            raise PermissionDenied('Only admins can delete settings.')
        if not delete_setting(key):
            raise Http404('Setting not found.')
        return success_response(None, 'Setting deleted successfully')

    data = parse_json_body(request)
    setting = update_setting(key=key, value=data.get('value'), description=data.get('description'))
    return success_response({'setting': setting.to_dict()}, 'Setting saved successfully')

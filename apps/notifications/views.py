"""
Views for notifications app.

A user only ever sees and changes their own notifications.
"""

from django.http import Http404

from apps.common.http import api_view, success_response
from .models import Notification

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _get_own_notification(request, pk):
    notification = Notification.objects.filter(pk=pk, recipient=request.user).first()
    if notification is None:
        raise Http404('Notification not found.')
    return notification


@api_view(['GET'])
def notification_list_view(request):
    """
    List the requester's notifications, newest first.

    Query params:
        read: 'true' / 'false' to filter on read state
        type: notification type
        limit: max rows (default 50)
    """
    notifications = Notification.objects.filter(recipient=request.user)

    read = request.GET.get('read')
    if read in ('true', 'false'):
        notifications = notifications.filter(is_read=(read == 'true'))

    notification_type = request.GET.get('type')
    if notification_type in Notification.Type.values:
        notifications = notifications.filter(type=notification_type)

    try:
        limit = int(request.GET.get('limit', DEFAULT_LIMIT))
    except (TypeError, ValueError):
        limit = DEFAULT_LIMIT
    limit = max(1, min(limit, MAX_LIMIT))

    unread_count = Notification.objects.filter(recipient=request.user, is_read=False).count()

    return success_response({
        'notifications': [n.to_dict() for n in notifications[:limit]],
        'unread_count': unread_count,
    })


@api_view(['POST', 'PATCH'])
def notification_read_view(request, pk):
    notification = _get_own_notification(request, pk)
    notification.mark_as_read()
    return success_response({'notification': notification.to_dict()}, 'Notification marked as read')


@api_view(['POST', 'PATCH'])
def notification_read_all_view(request):
    updated = Notification.mark_all_as_read(request.user)
    return success_response({'updated': updated}, 'All notifications marked as read')


@api_view(['DELETE'])
def notification_delete_view(request, pk):
    notification = _get_own_notification(request, pk)
    notification.delete()
    return success_response(None, 'Notification deleted')

"""
Views for accounts app.

Includes:
- User listing, scoped by the requester's role
- Profile of the requesting user
"""

from django.contrib.auth import get_user_model
from django.db.models import Q

from apps.common.http import api_view, success_response
from apps.tasks.permissions import build_user_visibility_predicate

User = get_user_model()


@api_view(['GET'])
def user_list_view(request):
    """
    List users the requester may see.

    Admins see everyone, managers see regular users, regular users get 403.

    Query params:
        search: name or email contains
        role: exact role
        active: 'true' / 'false'
    """
    users = User.objects.filter(build_user_visibility_predicate(request.user))

    search = request.GET.get('search', '').strip()
    if search:
        users = users.filter(
            Q(first_name__icontains=search) |
            Q(last_name__icontains=search) |
            Q(email__icontains=search)
        )

    role = request.GET.get('role')
    if role in User.Role.values:
        users = users.filter(role=role)

    active = request.GET.get('active')
    if active in ('true', 'false'):
        users = users.filter(is_active=(active == 'true'))

    return success_response({
        'users': [
            dict(user.to_summary(), is_active=user.is_active)
            for user in users.order_by('first_name', 'last_name')
        ],
    })


@api_view(['GET'])
def profile_view(request):
    """Display the requesting user's profile."""
    user = request.user
    return success_response({
        'user': dict(
            user.to_summary(),
            is_active=user.is_active,
            date_joined=user.date_joined.isoformat(),
        ),
    })

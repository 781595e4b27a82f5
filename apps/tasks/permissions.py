"""
Permission helpers for tasks app.

Role-based access control for task operations:
- Admin: Full access to all tasks and users
- Manager: Tasks assigned to regular users, plus tasks assigned to or reported by self
- User: Tasks assigned to self only

build_visibility_predicate() is the single source of task visibility. Listing,
dashboard counts, CSV export and single-task checks all go through it so the
three surfaces cannot drift apart.
"""

from django.core.exceptions import ImproperlyConfigured, PermissionDenied, ValidationError
from django.db.models import Q

from apps.accounts.models import User
from .models import Task


# =============================================================================
# Visibility Predicates
# =============================================================================

def _admin_tasks(actor):
    return Q()


def _manager_tasks(actor):
    return (
        Q(assignee__role=User.Role.USER) |
        Q(assignee=actor) |
        Q(reporter=actor)
    )


def _user_tasks(actor):
    return Q(assignee=actor)


TASK_VISIBILITY_RULES = {
    User.Role.ADMIN: _admin_tasks,
    User.Role.MANAGER: _manager_tasks,
    User.Role.USER: _user_tasks,
}

# None means the role may not list users at all
USER_VISIBILITY_RULES = {
    User.Role.ADMIN: lambda actor: Q(),
    User.Role.MANAGER: lambda actor: Q(role=User.Role.USER),
    User.Role.USER: None,
}


def _rule_for(table, actor):
    try:
        return table[actor.role]
    except KeyError:
        raise ImproperlyConfigured(f"No visibility rule for role '{actor.role}'.")


def build_visibility_predicate(actor):
    """
    Return a Q restricting Task rows to those the actor may see.

    The Q is evaluated by the database; callers AND further filters onto
    a queryset already filtered by it.
    """
    return _rule_for(TASK_VISIBILITY_RULES, actor)(actor)


def build_user_visibility_predicate(actor):
    """
    Return a Q restricting User rows for user listings.

    Raises:
        PermissionDenied: If the actor's role may not list users
    """
    rule = _rule_for(USER_VISIBILITY_RULES, actor)
    if rule is None:
        raise PermissionDenied("You don't have permission to list users.")
    return rule(actor)


def get_visible_tasks(actor):
    """
    Get queryset of tasks visible to this user based on their role.
    """
    return Task.objects.select_related('assignee', 'reporter').filter(
        build_visibility_predicate(actor)
    )


def can_view_task(actor, task):
    """Check visibility of a single task with the same predicate as listings."""
    if not actor.is_authenticated:
        return False
    return Task.objects.filter(build_visibility_predicate(actor), pk=task.pk).exists()


def validate_assignee_override(actor, assignee_id):
    """
    Validate an explicit ?assignee= override before it is applied.

    Returns the assignee id to filter on, or None when the override does
    not apply to the actor's role (a regular user's predicate already pins
    the assignee).

    Raises:
        ValidationError: If assignee_id is not a valid id
        PermissionDenied: If a manager targets someone outside their allowed set
    """
    if assignee_id in (None, ''):
        return None

    try:
        assignee_id = int(assignee_id)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid assignee id: {assignee_id}')

    if actor.role == User.Role.USER:
        return None

    if actor.role == User.Role.MANAGER and assignee_id != actor.pk:
        allowed = User.objects.filter(pk=assignee_id, role=User.Role.USER).exists()
        if not allowed:
            raise PermissionDenied("You can't view tasks assigned to that user.")

    return assignee_id


# =============================================================================
# Edit Permissions
# =============================================================================

def can_edit_task(actor, task):
    """
    Check if user can edit a task's fields.

    Rules:
    - Admin can edit any task
    - Reporter and assignee can edit
    """
    if not actor.is_authenticated:
        return False

    if actor.is_admin():
        return True

    return actor.pk in (task.reporter_id, task.assignee_id)


def can_change_status(actor, task):
    """
    Check if user can change task status.

    Rules:
    - Admin can change any status
    - Assignee and reporter can change status
    - Manager can change status of tasks they can see
    """
    if not actor.is_authenticated:
        return False

    if actor.is_admin():
        return True

    if actor.pk in (task.assignee_id, task.reporter_id):
        return True

    if actor.is_manager():
        return can_view_task(actor, task)

    return False


def can_reassign_task(actor, task):
    """
    Check if user can move a task to another assignee.

    Rules:
    - Admin can reassign any task
    - Manager can reassign tasks they can see
    - Regular users cannot reassign
    """
    if not actor.is_authenticated or not actor.can_reassign_tasks():
        return False
    return actor.is_admin() or can_view_task(actor, task)


def can_delete_task(actor, task):
    """Only the reporter (owner) or an admin can delete."""
    if not actor.is_authenticated:
        return False
    return actor.is_admin() or task.reporter_id == actor.pk


# =============================================================================
# Assignment Permissions
# =============================================================================

def get_assignable_users(actor):
    """
    Get queryset of users the current user can assign tasks to.

    - Admin: any active user
    - Manager: active regular users and self
    - User: self only
    """
    base_qs = User.objects.filter(is_active=True)

    if actor.role == User.Role.ADMIN:
        return base_qs
    if actor.role == User.Role.MANAGER:
        return base_qs.filter(Q(role=User.Role.USER) | Q(pk=actor.pk))
    return base_qs.filter(pk=actor.pk)


def can_assign_to(actor, target_user):
    """Check if actor can assign tasks to target_user."""
    if not actor.is_authenticated:
        return False
    return get_assignable_users(actor).filter(pk=target_user.pk).exists()

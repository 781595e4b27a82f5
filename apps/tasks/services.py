"""
Service layer for tasks app.

All business logic for task operations is centralized here so views,
management commands and tests share one path.

Services:
- create_task: Create new task with permissions check
- update_task: Update task fields, reassigning when the assignee changes
- change_status: Change task status with workflow validation
- delete_task: Delete a task (reporter or admin)
- get_filtered_tasks: Visible tasks narrowed by query-string filters
- get_dashboard: Per-status task lists and counts
- export_tasks_csv: Write visible, filtered tasks as CSV

Each mutation records its notification fan-out as an outbox intent in the
same transaction as the task write, then delivers it once that transaction
has committed. A delivery failure is logged and left for the retry sweep;
it never rolls back or fails the task mutation.
"""

import csv
import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.notifications import services as notifications
from .filters import TaskFilter, apply_sorting
from .models import Task
from .permissions import (
    can_assign_to, can_change_status, can_delete_task, can_edit_task,
    can_reassign_task, get_visible_tasks,
)

logger = logging.getLogger(__name__)


def _validate_window(start_date, end_date):
    if not start_date or not end_date:
        raise ValidationError("Start date and end date are required.")
    if end_date <= start_date:
        raise ValidationError({'end_date': 'End date must be after start date.'})


def _validate_assignee(actor, assignee):
    if not assignee.is_active:
        raise ValidationError("Cannot assign task to inactive user.")

    if not can_assign_to(actor, assignee):
        if actor.is_manager():
            raise PermissionDenied("Managers can only assign tasks to regular users or themselves.")
        raise PermissionDenied("You don't have permission to assign tasks to this user.")


def _fan_out(intent):
    """Deliver a committed intent; the task write stands whatever happens."""
    try:
        notifications.deliver_intent(intent)
    except notifications.FanoutError:
        logger.exception(
            'Notification fan-out failed for task %s; left for retry', intent.task_id
        )


def create_task(
    title: str,
    actor,
    start_date,
    end_date,
    description: str = '',
    priority: str = Task.Priority.MEDIUM,
    assignee=None,
    now=None,
):
    """
    Central task creation function.

    Args:
        title: Task title (required)
        actor: User creating the task; becomes the reporter
        start_date: When work starts
        end_date: Deadline, must be after start_date
        description: Task description (optional)
        priority: low/medium/high (default: medium)
        assignee: User to assign to (default: actor)

    Returns:
        Created Task instance

    Raises:
        PermissionDenied: If assignment violates role-based rules
        ValidationError: If required fields are missing or invalid
    """
    now = now or timezone.now()

    if not title or not title.strip():
        raise ValidationError("Task title is required.")

    _validate_window(start_date, end_date)

    if priority not in Task.Priority.values:
        raise ValidationError(f"Invalid priority: {priority}")

    assignee = assignee or actor
    _validate_assignee(actor, assignee)

    with transaction.atomic():
        task = Task.objects.create(
            title=title.strip(),
            description=description.strip() if description else '',
            start_date=start_date,
            end_date=end_date,
            priority=priority,
            status=Task.Status.UPCOMING if start_date > now else Task.Status.IN_PROGRESS,
            assignee=assignee,
            reporter=actor,
        )
        intent = notifications.record_intent(notifications.EventKind.TASK_CREATED, task, actor)

    logger.info('Task %s created by user %s for user %s', task.pk, actor.pk, assignee.pk)
    _fan_out(intent)
    return task


EDITABLE_FIELDS = ['title', 'description', 'start_date', 'end_date', 'priority']


def update_task(task, actor, **kwargs):
    """
    Update task fields.

    Admin, reporter and assignee may edit. Passing `assignee` moves the
    task; only admins and managers may do that.

    Returns:
        Updated Task instance

    Raises:
        PermissionDenied: If user cannot edit the task or reassign it
        ValidationError: If validation fails
    """
    if not can_edit_task(actor, task):
        raise PermissionDenied("You don't have permission to edit this task.")

    changed = []
    for field in EDITABLE_FIELDS:
        if field not in kwargs:
            continue
        new_value = kwargs[field]

        if field == 'title':
            if not new_value or not new_value.strip():
                raise ValidationError("Task title cannot be empty.")
            new_value = new_value.strip()
        elif field == 'description':
            new_value = new_value.strip() if new_value else ''
        elif field == 'priority' and new_value not in Task.Priority.values:
            raise ValidationError(f"Invalid priority: {new_value}")

        if getattr(task, field) != new_value:
            setattr(task, field, new_value)
            changed.append(field)

    _validate_window(task.start_date, task.end_date)

    old_assignee_id = task.assignee_id
    new_assignee = kwargs.get('assignee')
    reassigned = new_assignee is not None and new_assignee.pk != old_assignee_id
    if reassigned:
        if not can_reassign_task(actor, task):
            raise PermissionDenied("You don't have permission to reassign this task.")
        _validate_assignee(actor, new_assignee)
        task.assignee = new_assignee
        changed.append('assignee')

    if not changed:
        return task

    intent = None
    with transaction.atomic():
        task.save(update_fields=changed + ['updated_at'])
        if reassigned:
            intent = notifications.record_intent(
                notifications.EventKind.REASSIGNED, task, actor,
                old_assignee_id=old_assignee_id,
            )

    logger.info('Task %s updated by user %s: %s', task.pk, actor.pk, ', '.join(changed))
    if intent is not None:
        _fan_out(intent)
    return task


def change_status(task, actor, new_status):
    """
    Change task status with workflow validation.

    Workflow Rules:
    - upcoming → in_progress → completed (terminal)
    - overdue → completed
    - overdue is set only by the status sweep, never here

    Setting the current status again is a no-op and notifies nobody.

    Raises:
        PermissionDenied: If user cannot change status
        ValidationError: If transition is invalid
    """
    if not can_change_status(actor, task):
        raise PermissionDenied("You don't have permission to change this task's status.")

    if new_status not in Task.Status.values:
        raise ValidationError(f"Invalid status: {new_status}")

    if new_status == Task.Status.OVERDUE:
        raise ValidationError("Tasks become overdue automatically once their end date passes.")

    old_status = task.status
    if new_status == old_status:
        return task

    if not task.can_transition_to(new_status):
        raise ValidationError(
            f"Cannot change status from '{task.get_status_display()}' to "
            f"'{Task.Status(new_status).label}'."
        )

    with transaction.atomic():
        task.status = new_status
        task.save(update_fields=['status', 'updated_at'])
        intent = notifications.record_intent(
            notifications.EventKind.STATUS_CHANGED, task, actor,
            old_status=old_status, new_status=new_status,
        )

    logger.info(
        'Task %s status %s -> %s by user %s', task.pk, old_status, new_status, actor.pk
    )
    _fan_out(intent)
    return task


def delete_task(task, actor):
    """
    Delete a task. Its notifications go with it.

    Raises:
        PermissionDenied: If user is neither the reporter nor an admin
    """
    if not can_delete_task(actor, task):
        raise PermissionDenied("Only the task reporter or an admin can delete this task.")

    task_id = task.pk
    task.delete()
    logger.info('Task %s deleted by user %s', task_id, actor.pk)


# =============================================================================
# Query Helpers
# =============================================================================

def get_filtered_tasks(actor, params):
    """
    Visible tasks narrowed by query-string filters and sorted.

    Raises:
        ValidationError: If a filter value is malformed
        PermissionDenied: If an assignee override is outside the actor's scope
    """
    filterset = TaskFilter(params, queryset=get_visible_tasks(actor), actor=actor)
    if not filterset.is_valid():
        raise ValidationError(filterset.errors)
    return apply_sorting(filterset.qs, params.get('sort'))


DASHBOARD_LIMIT = 10


def get_dashboard(actor, now=None):
    """
    Task snapshot for the dashboard.

    Upcoming includes in-progress tasks not yet due, matching how the
    board groups them. Every query starts from the actor's visible set.

    Returns:
        dict: 'upcoming', 'in_progress', 'overdue' lists (earliest due
        first) and 'counts' including completed
    """
    now = now or timezone.now()
    visible = get_visible_tasks(actor)

    buckets = {
        'upcoming': Q(status=Task.Status.UPCOMING) | Q(status=Task.Status.IN_PROGRESS, end_date__gte=now),
        'in_progress': Q(status=Task.Status.IN_PROGRESS, end_date__gte=now),
        'overdue': Q(status=Task.Status.OVERDUE),
    }

    dashboard = {'counts': {}}
    for name, condition in buckets.items():
        queryset = visible.filter(condition).order_by('end_date')
        dashboard[name] = list(queryset[:DASHBOARD_LIMIT])
        dashboard['counts'][name] = queryset.count()

    dashboard['counts']['completed'] = visible.filter(status=Task.Status.COMPLETED).count()
    return dashboard


CSV_HEADER = [
    'Title',
    'Description',
    'Start Date',
    'End Date',
    'Priority',
    'Status',
    'Assignee Name',
    'Assignee Email',
    'Reporter Name',
    'Reporter Email',
    'Created At',
]


def export_tasks_csv(actor, params, output):
    """
    Write the actor's visible tasks, filtered by params, to output as CSV.

    Args:
        actor: User requesting the export
        params: Query parameters accepted by TaskFilter
        output: Writable file-like object (an HttpResponse works)

    Returns:
        int: Number of task rows written
    """
    tasks = get_filtered_tasks(actor, params).order_by('-created_at')

    writer = csv.writer(output)
    writer.writerow(CSV_HEADER)

    count = 0
    for task in tasks.iterator():
        writer.writerow([
            task.title,
            task.description,
            task.start_date.isoformat(),
            task.end_date.isoformat(),
            task.get_priority_display(),
            task.get_status_display(),
            task.assignee.get_full_name(),
            task.assignee.email,
            task.reporter.get_full_name(),
            task.reporter.email,
            task.created_at.isoformat(),
        ])
        count += 1

    logger.info('User %s exported %d task(s) to CSV', actor.pk, count)
    return count

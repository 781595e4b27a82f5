"""
Service layer for notifications app.

Notification fan-out engine: turns task lifecycle events into one
Notification row per eligible recipient, plus best-effort emails.

Entry points:
- record_intent: called by apps.tasks.services inside the task write's
  transaction, so the pending fan-out commits or rolls back with it
- deliver_intent: called once that transaction has committed, and again
  by the retry sweep for intents whose delivery failed
- on_task_created / on_task_reassigned / on_status_changed: the team
  event handlers deliver_intent replays
- on_task_overdue / on_task_reminder: called by the sweeps in tasks.py,
  which enforce their own idempotency before calling in

Recipient selection is keyed off the assignee's role through
ASSIGNEE_AUDIENCE; a role missing from that table is a configuration
error, not a silent no-op.
"""

import logging
import math
from dataclasses import dataclass, field

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.mail import EmailMultiAlternatives
from django.db import DatabaseError, transaction
from django.template.loader import render_to_string
from django.utils import timezone

from apps.accounts.models import User
from .models import EventKind, FanoutIntent, Notification

logger = logging.getLogger(__name__)


class FanoutError(Exception):
    """Raised when an event had recipients but every write failed."""

    def __init__(self, event, failures):
        self.event = event
        self.failures = failures
        super().__init__(
            f"All {len(failures)} notification write(s) failed for "
            f"{event.kind} on task {event.task.pk}"
        )


@dataclass(frozen=True)
class LifecycleEvent:
    kind: str
    task: object
    actor: object = None
    extra: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Wording:
    type: str
    title: str
    message: str
    email_template: str = None
    email_subject: str = None


@dataclass(frozen=True)
class Delivery:
    recipient: object
    wording: Wording


# =============================================================================
# Rule Tables
# =============================================================================

# Who hears about team events, keyed by the assignee's role:
# - SUPERVISORS: every active admin/manager watches regular users' work
# - PEERS: supervisors' own self-assigned work is broadcast to the other supervisors
AUDIENCE_SUPERVISORS = 'supervisors'
AUDIENCE_PEERS = 'peers'

ASSIGNEE_AUDIENCE = {
    User.Role.USER: AUDIENCE_SUPERVISORS,
    User.Role.MANAGER: AUDIENCE_PEERS,
    User.Role.ADMIN: AUDIENCE_PEERS,
}

TEAM_WORDING = {
    EventKind.TASK_CREATED: {
        'assignee': Wording(
            Notification.Type.ASSIGNMENT,
            'New Task Assigned',
            'You have been assigned a new task: "{title}"',
            email_template='notifications/emails/task_assigned',
            email_subject='New Task: {title}',
        ),
        'watcher': Wording(
            Notification.Type.TASK_CREATED,
            'New Task Created',
            'A new task "{title}" has been created for user {assignee}',
        ),
        'confirmation': Wording(
            Notification.Type.TASK_CREATED,
            'Task Created',
            'You created a new task "{title}" for user {assignee}',
        ),
        'peer': Wording(
            Notification.Type.TASK_CREATED,
            'New Task Created',
            '{actor} created a new task "{title}" for themselves',
        ),
    },
    EventKind.REASSIGNED: {
        'assignee': Wording(
            Notification.Type.ASSIGNMENT,
            'Task Assigned to You',
            'You have been assigned to task: "{title}"',
            email_template='notifications/emails/task_assigned',
            email_subject='New Task: {title}',
        ),
        'watcher': Wording(
            Notification.Type.ASSIGNMENT,
            'Task Reassigned',
            'Task "{title}" has been reassigned to user {assignee}',
        ),
        'confirmation': Wording(
            Notification.Type.ASSIGNMENT,
            'Task Reassigned',
            'You reassigned task "{title}" to user {assignee}',
        ),
        'peer': Wording(
            Notification.Type.ASSIGNMENT,
            'Task Reassigned',
            '{actor} assigned task "{title}" to themselves',
        ),
    },
    EventKind.STATUS_CHANGED: {
        'assignee': Wording(
            Notification.Type.STATUS_CHANGE,
            'Task Status Updated',
            '{actor} changed task "{title}" status from "{old_status}" to "{new_status}"',
        ),
        'watcher': Wording(
            Notification.Type.STATUS_CHANGE,
            'Task Status Updated',
            'Task "{title}" status changed from "{old_status}" to "{new_status}" by {actor}',
        ),
        'confirmation': Wording(
            Notification.Type.STATUS_CHANGE,
            'Task Status Updated',
            'You changed task "{title}" status from "{old_status}" to "{new_status}"',
        ),
        'peer': Wording(
            Notification.Type.STATUS_CHANGE,
            'Task Status Updated',
            '{actor} updated task "{title}" status from "{old_status}" to "{new_status}"',
        ),
    },
}

OVERDUE_WORDING = Wording(
    Notification.Type.OVERDUE,
    'Task Overdue',
    'Task "{title}" is now overdue',
    email_template='notifications/emails/task_overdue',
    email_subject='Overdue Task: {title}',
)

REMINDER_WORDING = Wording(
    Notification.Type.REMINDER,
    'Task Reminder',
    'Task "{title}" is due soon',
    email_template='notifications/emails/task_reminder',
    email_subject='Reminder: {title} - Due Soon',
)


# =============================================================================
# Recipient Selection
# =============================================================================

def _audience_for(assignee):
    try:
        return ASSIGNEE_AUDIENCE[assignee.role]
    except KeyError:
        raise ImproperlyConfigured(f"No fan-out audience for role '{assignee.role}'.")


def _active_supervisors(exclude_pk):
    return User.objects.find_active_by_role(*User.SUPERVISOR_ROLES).exclude(pk=exclude_pk)


def _plan_team_event(event):
    """Recipients for created / reassigned / status-changed events."""
    task, actor = event.task, event.actor
    assignee = task.assignee
    wording = TEAM_WORDING[event.kind]
    self_action = actor is not None and actor.pk == assignee.pk
    actor_pk = actor.pk if actor is not None else None
    audience = _audience_for(assignee)
    plan = []

    # A supervisor's self-assignment goes to peers only; nobody is told
    # about a status change they made themselves.
    if not self_action or (
        audience == AUDIENCE_SUPERVISORS and event.kind != EventKind.STATUS_CHANGED
    ):
        plan.append(Delivery(assignee, wording['assignee']))

    if audience == AUDIENCE_SUPERVISORS:
        for supervisor in _active_supervisors(exclude_pk=actor_pk):
            plan.append(Delivery(supervisor, wording['watcher']))
        if (
            getattr(settings, 'FANOUT_CONFIRM_TO_ACTOR', False)
            and actor is not None
            and actor.is_supervisor()
            and not self_action
        ):
            plan.append(Delivery(actor, wording['confirmation']))
    elif audience == AUDIENCE_PEERS and self_action:
        for peer in _active_supervisors(exclude_pk=actor_pk):
            plan.append(Delivery(peer, wording['peer']))

    return plan


def plan_recipients(event):
    """
    Ordered, de-duplicated list of deliveries for an event.

    When two rules select the same recipient the first one wins.
    """
    if event.kind in TEAM_WORDING:
        plan = _plan_team_event(event)
    elif event.kind == EventKind.OVERDUE:
        plan = [Delivery(event.task.assignee, OVERDUE_WORDING)]
    elif event.kind == EventKind.REMINDER:
        plan = [Delivery(event.task.assignee, REMINDER_WORDING)]
    else:
        raise ValueError(f"Unknown event kind: {event.kind}")

    seen = set()
    unique = []
    for delivery in plan:
        if delivery.recipient.pk in seen:
            continue
        seen.add(delivery.recipient.pk)
        unique.append(delivery)
    return unique


# =============================================================================
# Dispatch
# =============================================================================

def _message_context(event):
    task, actor = event.task, event.actor
    return {
        'title': task.title,
        'assignee': task.assignee.get_full_name(),
        'actor': actor.get_full_name() if actor is not None else 'System',
        'old_status': event.extra.get('old_status', ''),
        'new_status': event.extra.get('new_status', ''),
    }


def _payload(event):
    payload = {'task_id': event.task.pk}
    if event.kind in TEAM_WORDING:
        payload['assignee_id'] = event.task.assignee_id
    payload.update(event.extra)
    return payload


def dispatch(event):
    """
    Write one notification per planned recipient.

    Each write runs in its own savepoint so one failing recipient cannot
    poison the others. Returns the created notifications.

    Raises:
        FanoutError: If there were recipients and none could be written
    """
    deliveries = plan_recipients(event)
    if not deliveries:
        return []

    context = _message_context(event)
    payload = _payload(event)
    created = []
    failures = []

    for delivery in deliveries:
        wording = delivery.wording
        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    recipient=delivery.recipient,
                    type=wording.type,
                    title=wording.title,
                    message=wording.message.format(**context),
                    payload=payload,
                    task=event.task,
                )
        except DatabaseError as exc:
            logger.exception(
                'Notification write failed: event=%s task=%s recipient=%s',
                event.kind, event.task.pk, delivery.recipient.pk,
            )
            failures.append((delivery.recipient.pk, exc))
            continue

        created.append(notification)
        if wording.email_template:
            _send_event_email(delivery.recipient, wording, event, context)

    if failures:
        if not created:
            raise FanoutError(event, failures)
        logger.warning(
            'Partial fan-out for %s on task %s: %d written, %d failed',
            event.kind, event.task.pk, len(created), len(failures),
        )

    logger.debug(
        'Fan-out %s on task %s: %d notification(s)',
        event.kind, event.task.pk, len(created),
    )
    return created


def on_task_created(task, actor):
    """Fan out a newly created task."""
    return dispatch(LifecycleEvent(EventKind.TASK_CREATED, task, actor))


def on_task_reassigned(task, old_assignee_id, actor):
    """Fan out an assignee change; the previous assignee is not notified."""
    return dispatch(LifecycleEvent(
        EventKind.REASSIGNED, task, actor,
        extra={'old_assignee_id': old_assignee_id},
    ))


def on_status_changed(task, old_status, actor, new_status=None):
    """
    Fan out a status change. No-op when the status did not change.

    new_status defaults to the task's current status; a replayed intent
    passes the status it recorded.
    """
    new_status = new_status or task.status
    if old_status == new_status:
        return []
    return dispatch(LifecycleEvent(
        EventKind.STATUS_CHANGED, task, actor,
        extra={'old_status': old_status, 'new_status': new_status},
    ))


def on_task_overdue(task):
    """Single overdue notice to the assignee."""
    return dispatch(LifecycleEvent(EventKind.OVERDUE, task))


def on_task_reminder(task):
    """Single deadline reminder to the assignee."""
    return dispatch(LifecycleEvent(EventKind.REMINDER, task))


# =============================================================================
# Outbox
# =============================================================================

def record_intent(kind, task, actor=None, **extra):
    """
    Store a pending team fan-out for task.

    Call inside the transaction that writes the task change so both
    commit together.
    """
    if kind not in TEAM_WORDING:
        raise ValueError(f"No outbox delivery for event kind: {kind}")
    return FanoutIntent.objects.create(kind=kind, task=task, actor=actor, extra=extra)


def deliver_intent(intent):
    """
    Run the handler for a pending intent and drop it once delivered.

    Partial delivery counts as delivered; retrying it would duplicate the
    notifications that did get written.

    Raises:
        FanoutError: If every write failed. The intent is kept with its
            attempt count bumped so the retry sweep can pick it up.
    """
    task, actor, extra = intent.task, intent.actor, intent.extra

    try:
        if intent.kind == EventKind.TASK_CREATED:
            created = on_task_created(task, actor)
        elif intent.kind == EventKind.REASSIGNED:
            created = on_task_reassigned(task, extra.get('old_assignee_id'), actor)
        elif intent.kind == EventKind.STATUS_CHANGED:
            created = on_status_changed(
                task, extra.get('old_status'), actor, extra.get('new_status')
            )
        else:
            raise ValueError(f"No outbox delivery for event kind: {intent.kind}")
    except FanoutError as exc:
        intent.attempts += 1
        intent.last_error = str(exc)
        intent.save(update_fields=['attempts', 'last_error'])
        raise

    intent.delete()
    return created


# =============================================================================
# Email
# =============================================================================

def send_notification_email(to_email, subject, template_name, context, from_email=None):
    """
    Generic email sending function.

    Best-effort: failures are logged and reported as False, never raised.

    Args:
        to_email: Recipient email address
        subject: Email subject
        template_name: Template path without extension; both the .html and
            .txt versions are rendered
        context: Template context dict
        from_email: Sender email (defaults to DEFAULT_FROM_EMAIL)

    Returns:
        bool: True if email sent successfully
    """
    if not to_email:
        return False

    try:
        html_content = render_to_string(f'{template_name}.html', context)
        text_content = render_to_string(f'{template_name}.txt', context)
        email = EmailMultiAlternatives(
            subject=subject,
            body=text_content,
            from_email=from_email or settings.DEFAULT_FROM_EMAIL,
            to=[to_email],
        )
        email.attach_alternative(html_content, 'text/html')
        email.send()
        return True
    except Exception as e:
        logger.error(f'Failed to send "{subject}" email to {to_email}: {e}')
        return False


def _send_event_email(recipient, wording, event, context):
    task = event.task
    now = timezone.now()
    days_left = max(0, math.ceil((task.end_date - now).total_seconds() / 86400))
    site_url = getattr(settings, 'SITE_URL', 'http://localhost:8000')

    return send_notification_email(
        to_email=recipient.email,
        subject=wording.email_subject.format(**context),
        template_name=wording.email_template,
        context={
            'recipient': recipient,
            'task': task,
            'reporter': task.reporter,
            'days_left': days_left,
            'task_url': f'{site_url}/tasks/{task.pk}',
        },
    )

"""
Scheduled tasks for notifications app.

Background jobs, registered with Django-Q2 by `manage.py setup_schedules`:
- Status sweep (every 30 minutes): flips expired tasks to overdue
- Reminder sweep (hourly): reminds assignees of approaching deadlines
- Fan-out retry sweep (every 15 minutes): redelivers outbox intents whose
  first delivery failed

Every sweep is single-flight and idempotent; a tick that overlaps a
running sweep is skipped. None of them raises: failures are logged and
reported in the returned summary.
"""

import logging
from contextlib import contextmanager
from datetime import timedelta

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone

from apps.app_settings.services import get_reminder_before_hours
from apps.tasks.models import Task
from .models import FanoutIntent, Notification
from .services import FanoutError, deliver_intent, on_task_overdue, on_task_reminder

logger = logging.getLogger(__name__)

STATUS_SWEEP_LOCK = 'sweep-lock:status'
REMINDER_SWEEP_LOCK = 'sweep-lock:reminder'
FANOUT_RETRY_LOCK = 'sweep-lock:fanout-retry'


@contextmanager
def single_flight(lock_key):
    """
    Yield True if this run holds the lock, False if another run does.

    The lock expires after SWEEP_LOCK_TIMEOUT so a crashed worker cannot
    block the sweep forever.
    """
    timeout = getattr(settings, 'SWEEP_LOCK_TIMEOUT', 1800)
    acquired = cache.add(lock_key, timezone.now().isoformat(), timeout)
    try:
        yield acquired
    finally:
        if acquired:
            cache.delete(lock_key)


def _summary(**counts):
    summary = {
        'matched': 0,
        'updated': 0,
        'notified': 0,
        'failed': 0,
        'skipped': False,
    }
    summary.update(counts)
    return summary


# =============================================================================
# Status Sweep
# =============================================================================

def run_status_sweep(now=None):
    """
    Move every open task whose end_date has passed to OVERDUE.

    Each flip is a conditional update, so a task completed or already
    swept by a concurrent writer is left alone. Only tasks this run
    actually flipped produce an overdue notification, and a flip whose
    notification could not be written is rolled back.

    Returns:
        dict: matched / updated / notified / failed counts, skipped flag
    """
    now = now or timezone.now()

    with single_flight(STATUS_SWEEP_LOCK) as acquired:
        if not acquired:
            logger.info('Status sweep already running; skipping this tick')
            return _summary(skipped=True)

        summary = _summary()
        try:
            expired_ids = (
                Task.objects
                .filter(status__in=Task.ACTIVE_STATUSES, end_date__lt=now)
                .order_by('end_date')
                .values_list('pk', flat=True)
                .iterator()
            )
            for task_id in expired_ids:
                summary['matched'] += 1
                _expire_task(task_id, now, summary)
        except DatabaseError:
            logger.exception('Status sweep aborted: task store unavailable')
            summary['aborted'] = True
            return summary

    logger.info(
        'Status sweep done: matched=%d updated=%d notified=%d failed=%d',
        summary['matched'], summary['updated'], summary['notified'], summary['failed'],
    )
    return summary


def _expire_task(task_id, now, summary):
    # The flip and its notice commit together; a failed notice leaves the
    # task open so the next sweep tries again.
    try:
        with transaction.atomic():
            flipped = Task.objects.filter(
                pk=task_id,
                status__in=Task.ACTIVE_STATUSES,
            ).update(status=Task.Status.OVERDUE, updated_at=now)
            if not flipped:
                logger.debug('Task %s changed before it could be expired; skipping', task_id)
                return

            task = Task.objects.select_related('assignee', 'reporter').get(pk=task_id)
            notify = not Notification.exists_for(
                task.assignee_id, Notification.Type.OVERDUE, task.pk, unread_only=True
            )
            if notify:
                on_task_overdue(task)

        summary['updated'] += 1
        if notify:
            summary['notified'] += 1
    except (DatabaseError, FanoutError):
        summary['failed'] += 1
        logger.exception('Status sweep failed for task %s', task_id)


# =============================================================================
# Reminder Sweep
# =============================================================================

def run_reminder_sweep(now=None):
    """
    Remind assignees of open tasks due within the next H hours.

    H comes from the reminder_before_hours setting, read fresh each run.
    A task gets at most one reminder per assignee, whatever its read state,
    so a reminder sent under an older window is never repeated.

    Returns:
        dict: matched / notified / failed counts, skipped flag, hours
    """
    now = now or timezone.now()

    with single_flight(REMINDER_SWEEP_LOCK) as acquired:
        if not acquired:
            logger.info('Reminder sweep already running; skipping this tick')
            return _summary(skipped=True)

        summary = _summary()
        try:
            hours = get_reminder_before_hours()
            summary['hours'] = hours
            due_soon = (
                Task.objects
                .select_related('assignee', 'reporter')
                .filter(
                    status__in=Task.ACTIVE_STATUSES,
                    end_date__gte=now,
                    end_date__lte=now + timedelta(hours=hours),
                )
                .order_by('end_date')
                .iterator()
            )
            for task in due_soon:
                summary['matched'] += 1
                _remind_task(task, summary)
        except DatabaseError:
            logger.exception('Reminder sweep aborted: task store unavailable')
            summary['aborted'] = True
            return summary

    logger.info(
        'Reminder sweep done (H=%s): matched=%d notified=%d failed=%d',
        summary['hours'], summary['matched'], summary['notified'], summary['failed'],
    )
    return summary


def _remind_task(task, summary):
    try:
        if Notification.exists_for(task.assignee_id, Notification.Type.REMINDER, task.pk):
            return
        on_task_reminder(task)
        summary['notified'] += 1
    except (DatabaseError, FanoutError):
        summary['failed'] += 1
        logger.exception('Reminder sweep failed for task %s', task.pk)


# =============================================================================
# Fan-out Retry Sweep
# =============================================================================

def run_fanout_retry_sweep(now=None):
    """
    Redeliver outbox intents left behind by a failed or interrupted delivery.

    An intent is due once its first delivery has failed, or once it is
    older than FANOUT_RETRY_GRACE_MINUTES (the process died between
    commit and delivery). Intents at FANOUT_MAX_ATTEMPTS are left for
    an operator and counted as abandoned.

    Returns:
        dict: matched / notified / failed counts, skipped flag, abandoned
    """
    now = now or timezone.now()
    max_attempts = getattr(settings, 'FANOUT_MAX_ATTEMPTS', 5)
    grace = timedelta(minutes=getattr(settings, 'FANOUT_RETRY_GRACE_MINUTES', 10))

    with single_flight(FANOUT_RETRY_LOCK) as acquired:
        if not acquired:
            logger.info('Fan-out retry sweep already running; skipping this tick')
            return _summary(skipped=True)

        summary = _summary()
        try:
            summary['abandoned'] = FanoutIntent.objects.filter(attempts__gte=max_attempts).count()
            due = (
                FanoutIntent.objects
                .select_related('task__assignee', 'task__reporter', 'actor')
                .filter(attempts__lt=max_attempts)
                .filter(Q(attempts__gt=0) | Q(created_at__lt=now - grace))
                .iterator()
            )
            for intent in due:
                summary['matched'] += 1
                _retry_intent(intent, summary)
        except DatabaseError:
            logger.exception('Fan-out retry sweep aborted: outbox unavailable')
            summary['aborted'] = True
            return summary

    if summary['abandoned']:
        logger.warning(
            '%d fan-out intent(s) reached %d attempts and need attention',
            summary['abandoned'], max_attempts,
        )
    logger.info(
        'Fan-out retry sweep done: matched=%d notified=%d failed=%d',
        summary['matched'], summary['notified'], summary['failed'],
    )
    return summary


def _retry_intent(intent, summary):
    try:
        deliver_intent(intent)
        summary['notified'] += 1
    except (DatabaseError, FanoutError):
        summary['failed'] += 1
        logger.exception('Fan-out retry failed for intent %s (task %s)', intent.pk, intent.task_id)

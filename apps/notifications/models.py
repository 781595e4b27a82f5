"""
Notification models.

Notifications are derived records: the fan-out engine in services.py is
the only writer. After creation only the read state changes.

FanoutIntent is the outbox the engine drains for team events.
"""

from django.db import models
from django.conf import settings
from django.utils import timezone


class Notification(models.Model):
    """
    A user-facing notification about a task lifecycle event.

    The payload always carries the originating task_id so clients can
    deep-link; the indexed `task` column backs idempotency lookups.
    """

    class Type(models.TextChoices):
        ASSIGNMENT = 'assignment', 'Assignment'
        REMINDER = 'reminder', 'Reminder'
        OVERDUE = 'overdue', 'Overdue'
        STATUS_CHANGE = 'status_change', 'Status Change'
        TASK_CREATED = 'task_created', 'Task Created'

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
        help_text='User who receives this notification'
    )
    type = models.CharField(
        max_length=20,
        choices=Type.choices,
        db_index=True,
    )
    title = models.CharField(max_length=200)
    message = models.TextField()
    payload = models.JSONField(default=dict, blank=True)

    task = models.ForeignKey(
        'tasks.Task',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='notifications',
    )

    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient', 'is_read'], name='notif_recipient_read_idx'),
            models.Index(fields=['recipient', 'type', 'task'], name='notif_recipient_type_task_idx'),
        ]

    def __str__(self):
        return f"{self.recipient} | {self.type.upper()} | {self.title}"

    def mark_as_read(self):
        """Mark notification as read."""
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=['is_read', 'read_at'])

    @classmethod
    def mark_all_as_read(cls, user):
        """Mark all unread notifications for a user as read."""
        return cls.objects.filter(recipient=user, is_read=False).update(
            is_read=True,
            read_at=timezone.now(),
        )

    @classmethod
    def exists_for(cls, recipient_id, type, task_id, unread_only=False):
        """Idempotency lookup on the (recipient, type, task) key."""
        qs = cls.objects.filter(recipient_id=recipient_id, type=type, task_id=task_id)
        if unread_only:
            qs = qs.filter(is_read=False)
        return qs.exists()

    def to_dict(self):
        return {
            'id': self.pk,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'payload': self.payload,
            'read': self.is_read,
            'read_at': self.read_at.isoformat() if self.read_at else None,
            'created_at': self.created_at.isoformat(),
        }


class EventKind(models.TextChoices):
    TASK_CREATED = 'task_created', 'Task Created'
    REASSIGNED = 'reassigned', 'Reassigned'
    STATUS_CHANGED = 'status_changed', 'Status Changed'
    OVERDUE = 'overdue', 'Overdue'
    REMINDER = 'reminder', 'Reminder'


class FanoutIntent(models.Model):
    """
    A pending team fan-out, written in the same transaction as the task
    change that caused it.

    Deleted once delivered. A row that survives is retried by the
    fan-out retry sweep until it succeeds or runs out of attempts.
    """

    kind = models.CharField(max_length=20, choices=EventKind.choices)
    task = models.ForeignKey(
        'tasks.Task',
        on_delete=models.CASCADE,
        related_name='fanout_intents',
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    extra = models.JSONField(default=dict, blank=True)

    attempts = models.PositiveSmallIntegerField(default=0)
    last_error = models.TextField(blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"{self.kind} on task {self.task_id} ({self.attempts} attempt(s))"

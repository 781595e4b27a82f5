"""
Task management models.

Models:
- Task: Work item with a start/end window, priority and a time-driven status
"""

from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError


class Task(models.Model):
    """
    Main Task model.

    Status workflow (user-driven):
    - upcoming → in_progress → completed (terminal)
    - overdue → completed

    Only the status sweep moves upcoming/in_progress tasks to overdue,
    once end_date has passed. Nothing moves upcoming → in_progress
    automatically when start_date passes.
    """

    class Status(models.TextChoices):
        UPCOMING = 'upcoming', 'Upcoming'
        IN_PROGRESS = 'in_progress', 'In Progress'
        COMPLETED = 'completed', 'Completed'
        OVERDUE = 'overdue', 'Overdue'

    class Priority(models.TextChoices):
        LOW = 'low', 'Low'
        MEDIUM = 'medium', 'Medium'
        HIGH = 'high', 'High'

    # Statuses the sweeps consider "still open"
    ACTIVE_STATUSES = (Status.UPCOMING, Status.IN_PROGRESS)

    # Valid user-driven transitions; OVERDUE is never a target here
    USER_TRANSITIONS = {
        Status.UPCOMING: (Status.IN_PROGRESS, Status.COMPLETED),
        Status.IN_PROGRESS: (Status.COMPLETED,),
        Status.OVERDUE: (Status.COMPLETED,),
        Status.COMPLETED: (),
    }

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)

    start_date = models.DateTimeField()
    end_date = models.DateTimeField(db_index=True)

    priority = models.CharField(
        max_length=10,
        choices=Priority.choices,
        default=Priority.MEDIUM,
        db_index=True,
    )
    status = models.CharField(
        max_length=15,
        choices=Status.choices,
        default=Status.UPCOMING,
        db_index=True,
    )

    # Relationships
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='assigned_tasks',
        help_text='User responsible for completing this task'
    )
    reporter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='reported_tasks',
        help_text='User who created this task'
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'task'
        verbose_name_plural = 'tasks'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['assignee', 'status'], name='tasks_assignee_status_idx'),
            models.Index(fields=['status', 'end_date'], name='tasks_status_end_date_idx'),
        ]

    def __str__(self):
        return f"#{self.pk}: {self.title}"

    def clean(self):
        """Enforce end_date > start_date."""
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValidationError({'end_date': 'End date must be after start date.'})

    # ==========================================================================
    # Status Properties
    # ==========================================================================

    @property
    def is_active(self):
        """Upcoming or in progress."""
        return self.status in self.ACTIVE_STATUSES

    @property
    def is_terminal(self):
        return self.status == self.Status.COMPLETED

    def is_past_due(self, now):
        """Check if task is past end_date and still open."""
        return self.is_active and self.end_date < now

    # ==========================================================================
    # Status Workflow Methods
    # ==========================================================================

    def can_transition_to(self, new_status):
        """Check if a user-driven status transition is valid."""
        return new_status in self.USER_TRANSITIONS.get(self.status, ())

    def to_dict(self):
        """Serialize for JSON responses."""
        return {
            'id': self.pk,
            'title': self.title,
            'description': self.description,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'priority': self.priority,
            'status': self.status,
            'assignee': self.assignee.to_summary(),
            'reporter': self.reporter.to_summary(),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

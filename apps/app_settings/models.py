"""
Runtime-tunable key/value settings.

Read fresh on every use; nothing here is cached across requests or sweeps.
"""

from django.db import models


class Setting(models.Model):
    """A single runtime setting, e.g. reminder_before_hours."""

    REMINDER_BEFORE_HOURS = 'reminder_before_hours'

    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.CharField(max_length=255, blank=True)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['key']

    def __str__(self):
        return f"{self.key}={self.value}"

    def to_dict(self):
        return {
            'key': self.key,
            'value': self.value,
            'description': self.description,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

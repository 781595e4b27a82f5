"""
Service layer for app_settings.

get_setting is the SettingsStore read used by the reminder sweep; it always
hits the database so an update takes effect on the very next sweep.
"""

import logging

from django.conf import settings
from django.core.exceptions import ValidationError

from .models import Setting

logger = logging.getLogger(__name__)


# Validators for keys the application interprets
def _positive_int(value):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'"{value}" is not a whole number.')
    if parsed <= 0:
        raise ValidationError('Value must be greater than zero.')
    return str(parsed)


KNOWN_SETTINGS = {
    Setting.REMINDER_BEFORE_HOURS: _positive_int,
}


def get_setting(key, default=None):
    """Return the raw value stored for key, or default."""
    value = Setting.objects.filter(key=key).values_list('value', flat=True).first()
    return default if value is None else value


def get_reminder_before_hours():
    """
    Lead time (hours) for deadline reminders.

    Setting row first, then REMINDER_BEFORE_HOURS from the environment.
    An unparsable stored value falls back to the environment default.
    """
    default = getattr(settings, 'REMINDER_BEFORE_HOURS', 24)
    raw = get_setting(Setting.REMINDER_BEFORE_HOURS)
    if raw is None:
        return default
    try:
        hours = int(raw)
    except (TypeError, ValueError):
        logger.warning(
            'Invalid %s value %r; falling back to %s',
            Setting.REMINDER_BEFORE_HOURS, raw, default,
        )
        return default
    if hours <= 0:
        logger.warning(
            'Non-positive %s value %r; falling back to %s',
            Setting.REMINDER_BEFORE_HOURS, raw, default,
        )
        return default
    return hours


def update_setting(key, value, description=None):
    """
    Create or update a setting (upsert).

    Raises:
        ValidationError: If key is empty or value fails the key's validator
    """
    if not key or not key.strip():
        raise ValidationError('Key is required.')
    if value is None:
        raise ValidationError('Value is required.')

    validator = KNOWN_SETTINGS.get(key)
    value = validator(value) if validator else str(value)

    defaults = {'value': value}
    if description is not None:
        defaults['description'] = description

    setting, created = Setting.objects.update_or_create(key=key, defaults=defaults)
    logger.info('Setting %s %s to %r', key, 'created' if created else 'updated', value)
    return setting


def delete_setting(key):
    """Delete a setting. Returns True if a row was removed."""
    deleted, _ = Setting.objects.filter(key=key).delete()
    return deleted > 0

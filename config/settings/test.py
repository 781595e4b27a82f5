"""
Django test settings for task_tracker project.

Used by pytest-django (see [tool.pytest.ini_options] in pyproject.toml).
"""

from .base import *

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

# Fast hashing keeps user fixtures cheap
PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'task-tracker-tests',
    }
}

REMINDER_BEFORE_HOURS = 24
FANOUT_CONFIRM_TO_ACTOR = False

Q_CLUSTER = {
    'name': 'task_tracker_test',
    'sync': True,
    'timeout': 25 * 60,
    'retry': 30 * 60,
    'orm': 'default',
}

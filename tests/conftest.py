"""
Shared fixtures: user and task factories plus a fixed clock.
"""

import itertools
from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.core.cache import cache

from apps.accounts.models import User
from apps.tasks.models import Task

_counter = itertools.count(1)


@pytest.fixture(autouse=True)
def _clear_cache():
    """Sweep locks live in the cache; never let them leak between tests."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def now():
    return datetime(2025, 3, 10, 12, 0, tzinfo=dt_timezone.utc)


@pytest.fixture
def make_user(db):
    def factory(role=User.Role.USER, is_active=True, **kwargs):
        n = next(_counter)
        kwargs.setdefault('email', f'{role}{n}@example.com')
        kwargs.setdefault('first_name', role.capitalize())
        kwargs.setdefault('last_name', str(n))
        return User.objects.create_user(
            password='pass1234',
            role=role,
            is_active=is_active,
            **kwargs,
        )
    return factory


@pytest.fixture
def admin(make_user):
    return make_user(User.Role.ADMIN)


@pytest.fixture
def manager(make_user):
    return make_user(User.Role.MANAGER)


@pytest.fixture
def user(make_user):
    return make_user(User.Role.USER)


@pytest.fixture
def make_task(db, now):
    """Insert a task directly, bypassing services and fan-out."""
    def factory(assignee, reporter=None, status=Task.Status.UPCOMING, **kwargs):
        kwargs.setdefault('title', f'Task {next(_counter)}')
        kwargs.setdefault('start_date', now - timedelta(days=1))
        kwargs.setdefault('end_date', now + timedelta(days=3))
        return Task.objects.create(
            assignee=assignee,
            reporter=reporter or assignee,
            status=status,
            **kwargs,
        )
    return factory


@pytest.fixture
def api_client(client):
    """Django test client with a JSON helper and force_login shortcut."""
    def login(user):
        client.force_login(user)
        return client
    client.login_as = login
    return client

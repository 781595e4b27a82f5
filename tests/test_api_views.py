import json
from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone

from apps.accounts.models import User
from apps.notifications.models import Notification
from apps.tasks.models import Task


def _json(client, method, url, body):
    return getattr(client, method)(url, data=json.dumps(body), content_type='application/json')


@pytest.mark.django_db
class TestAuthentication:

    @pytest.mark.parametrize('name', [
        'tasks:task_list', 'tasks:dashboard', 'notifications:notification_list',
        'accounts:user_list', 'app_settings:setting_list',
    ])
    def test_anonymous_gets_401(self, client, name):
        response = client.get(reverse(name))
        assert response.status_code == 401
        assert response.json()['success'] is False

    def test_wrong_method_is_405(self, api_client, user):
        response = api_client.login_as(user).delete(reverse('tasks:dashboard'))
        assert response.status_code == 405


@pytest.mark.django_db
class TestTaskEndpoints:

    def test_create_task(self, api_client, manager, user):
        start = timezone.now() + timedelta(hours=2)
        response = _json(api_client.login_as(manager), 'post', reverse('tasks:task_list'), {
            'title': 'Draft budget',
            'start_date': start.isoformat(),
            'end_date': (start + timedelta(days=2)).isoformat(),
            'assignee': user.pk,
        })

        assert response.status_code == 201
        task = response.json()['data']['task']
        assert task['status'] == Task.Status.UPCOMING
        assert task['priority'] == Task.Priority.MEDIUM
        assert task['assignee']['id'] == user.pk
        assert Notification.objects.filter(recipient=user, type=Notification.Type.ASSIGNMENT).exists()

    def test_create_rejects_bad_window(self, api_client, user):
        start = timezone.now()
        response = _json(api_client.login_as(user), 'post', reverse('tasks:task_list'), {
            'title': 'Backwards',
            'start_date': start.isoformat(),
            'end_date': (start - timedelta(hours=1)).isoformat(),
        })

        assert response.status_code == 400
        assert 'end_date' in response.json()['errors']

    def test_create_for_other_manager_is_403(self, api_client, manager, make_user):
        peer = make_user(User.Role.MANAGER)
        start = timezone.now()
        response = _json(api_client.login_as(manager), 'post', reverse('tasks:task_list'), {
            'title': 'Not yours',
            'start_date': start.isoformat(),
            'end_date': (start + timedelta(days=1)).isoformat(),
            'assignee': peer.pk,
        })
        assert response.status_code == 403

    def test_malformed_body_is_400(self, api_client, user):
        response = api_client.login_as(user).post(
            reverse('tasks:task_list'), data='{not json', content_type='application/json'
        )
        assert response.status_code == 400

    def test_list_is_scoped_and_paginated(self, api_client, make_user, make_task):
        alice = make_user(User.Role.USER)
        bob = make_user(User.Role.USER)
        for _ in range(3):
            make_task(alice)
        make_task(bob)

        response = api_client.login_as(alice).get(reverse('tasks:task_list'), {'limit': 2})

        data = response.json()['data']
        assert response.status_code == 200
        assert len(data['tasks']) == 2
        assert data['pagination'] == {'page': 1, 'pages': 2, 'total': 3}

    def test_list_override_outside_scope_is_403(self, api_client, manager, make_user):
        peer = make_user(User.Role.MANAGER)
        response = api_client.login_as(manager).get(
            reverse('tasks:task_list'), {'assignee': peer.pk}
        )
        assert response.status_code == 403

    def test_list_sorted_by_priority(self, api_client, user, make_task):
        make_task(user, title='Low', priority=Task.Priority.LOW)
        make_task(user, title='High', priority=Task.Priority.HIGH)

        response = api_client.login_as(user).get(reverse('tasks:task_list'), {'sort': '-priority_order'})

        titles = [t['title'] for t in response.json()['data']['tasks']]
        assert titles == ['High', 'Low']

    def test_detail_missing_and_hidden(self, api_client, make_user, make_task):
        alice = make_user(User.Role.USER)
        bob = make_user(User.Role.USER)
        hidden = make_task(bob)
        client = api_client.login_as(alice)

        assert client.get(reverse('tasks:task_detail', args=[hidden.pk])).status_code == 403
        assert client.get(reverse('tasks:task_detail', args=[hidden.pk + 1000])).status_code == 404

    def test_partial_update(self, api_client, user, make_task):
        task = make_task(user, title='Old title')

        response = _json(
            api_client.login_as(user), 'patch',
            reverse('tasks:task_detail', args=[task.pk]), {'title': 'New title'},
        )

        assert response.status_code == 200
        task.refresh_from_db()
        assert task.title == 'New title'

    def test_status_change_and_invalid_transition(self, api_client, user, make_task):
        task = make_task(user, status=Task.Status.IN_PROGRESS)
        client = api_client.login_as(user)
        url = reverse('tasks:task_status', args=[task.pk])

        assert _json(client, 'post', url, {'status': Task.Status.COMPLETED}).status_code == 200
        assert _json(client, 'post', url, {'status': Task.Status.UPCOMING}).status_code == 400

    def test_manual_overdue_is_400(self, api_client, admin, make_task):
        task = make_task(admin, status=Task.Status.IN_PROGRESS)
        response = _json(
            api_client.login_as(admin), 'post',
            reverse('tasks:task_status', args=[task.pk]), {'status': Task.Status.OVERDUE},
        )
        assert response.status_code == 400

    def test_delete(self, api_client, user, make_task):
        task = make_task(user)
        response = api_client.login_as(user).delete(reverse('tasks:task_detail', args=[task.pk]))
        assert response.status_code == 200
        assert not Task.objects.filter(pk=task.pk).exists()

    def test_dashboard(self, api_client, user, make_task):
        make_task(user, status=Task.Status.OVERDUE, end_date=timezone.now() - timedelta(days=1))

        response = api_client.login_as(user).get(reverse('tasks:dashboard'))

        data = response.json()['data']
        assert data['counts']['overdue'] == 1
        assert data['overdue'][0]['status'] == Task.Status.OVERDUE

    def test_export(self, api_client, user, make_task):
        make_task(user, title='Exported')

        response = api_client.login_as(user).get(reverse('tasks:task_export'))

        assert response.status_code == 200
        assert response['Content-Type'] == 'text/csv'
        assert 'attachment' in response['Content-Disposition']
        lines = response.content.decode().splitlines()
        assert len(lines) == 2
        assert lines[1].startswith('Exported,')


@pytest.mark.django_db
class TestNotificationEndpoints:

    @pytest.fixture
    def inbox(self, user, make_user, make_task):
        task = make_task(user)
        mine = [
            Notification.objects.create(
                recipient=user, type=kind, title=kind, message='m',
                payload={'task_id': task.pk}, task=task,
            )
            for kind in (Notification.Type.REMINDER, Notification.Type.OVERDUE)
        ]
        stranger = make_user(User.Role.USER)
        theirs = Notification.objects.create(
            recipient=stranger, type=Notification.Type.REMINDER, title='t', message='m',
            payload={'task_id': task.pk}, task=task,
        )
        return mine, theirs

    def test_list_only_own(self, api_client, user, inbox):
        response = api_client.login_as(user).get(reverse('notifications:notification_list'))

        data = response.json()['data']
        assert len(data['notifications']) == 2
        assert data['unread_count'] == 2

    def test_list_filters(self, api_client, user, inbox):
        response = api_client.login_as(user).get(
            reverse('notifications:notification_list'), {'type': Notification.Type.OVERDUE}
        )
        notifications = response.json()['data']['notifications']
        assert [n['type'] for n in notifications] == [Notification.Type.OVERDUE]

    def test_mark_read(self, api_client, user, inbox):
        mine, _ = inbox
        client = api_client.login_as(user)

        response = client.post(reverse('notifications:notification_read', args=[mine[0].pk]))

        assert response.status_code == 200
        assert response.json()['data']['notification']['read'] is True
        unread = client.get(reverse('notifications:notification_list'), {'read': 'false'})
        assert len(unread.json()['data']['notifications']) == 1

    def test_mark_all_read(self, api_client, user, inbox):
        response = api_client.login_as(user).post(reverse('notifications:notification_read_all'))
        assert response.json()['data']['updated'] == 2
        assert not Notification.objects.filter(recipient=user, is_read=False).exists()

    def test_cannot_touch_someone_elses(self, api_client, user, inbox):
        _, theirs = inbox
        client = api_client.login_as(user)

        assert client.post(reverse('notifications:notification_read', args=[theirs.pk])).status_code == 404
        assert client.delete(reverse('notifications:notification_delete', args=[theirs.pk])).status_code == 404
        assert Notification.objects.filter(pk=theirs.pk).exists()

    def test_delete_own(self, api_client, user, inbox):
        mine, _ = inbox
        response = api_client.login_as(user).delete(
            reverse('notifications:notification_delete', args=[mine[0].pk])
        )
        assert response.status_code == 200
        assert not Notification.objects.filter(pk=mine[0].pk).exists()


@pytest.mark.django_db
class TestUserEndpoints:

    def test_regular_user_cannot_list(self, api_client, user):
        response = api_client.login_as(user).get(reverse('accounts:user_list'))
        assert response.status_code == 403

    def test_manager_lists_regular_users(self, api_client, manager, make_user):
        make_user(User.Role.USER)
        make_user(User.Role.ADMIN)

        response = api_client.login_as(manager).get(reverse('accounts:user_list'))

        roles = {u['role'] for u in response.json()['data']['users']}
        assert roles == {User.Role.USER}

    def test_profile(self, api_client, user):
        response = api_client.login_as(user).get(reverse('accounts:profile'))
        assert response.json()['data']['user']['email'] == user.email

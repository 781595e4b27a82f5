from unittest import mock

import pytest
from django.core import mail
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError

from apps.accounts.models import User
from apps.notifications import services
from apps.notifications.models import Notification
from apps.tasks.models import Task
from apps.tasks.services import create_task, update_task


@pytest.fixture
def team(make_user):
    return {
        'admin': make_user(User.Role.ADMIN),
        'manager': make_user(User.Role.MANAGER),
        'other_manager': make_user(User.Role.MANAGER),
        'retired_manager': make_user(User.Role.MANAGER, is_active=False),
        'alice': make_user(User.Role.USER),
        'bob': make_user(User.Role.USER),
    }


def _recipients(notifications):
    return sorted(n.recipient_id for n in notifications)


@pytest.mark.django_db
class TestTaskCreated:

    def test_manager_assigns_regular_user(self, team, now):
        """Assignee plus every other active supervisor; never the actor."""
        manager, alice = team['manager'], team['alice']

        task = create_task(
            title='Prepare slides', actor=manager, assignee=alice,
            start_date=now, end_date=now.replace(day=20), now=now,
        )

        notifications = Notification.objects.filter(task=task)
        assert _recipients(notifications) == sorted([
            alice.pk, team['admin'].pk, team['other_manager'].pk,
        ])
        assert notifications.get(recipient=alice).type == Notification.Type.ASSIGNMENT
        assert notifications.get(recipient=team['admin']).type == Notification.Type.TASK_CREATED
        assert not notifications.filter(recipient=manager).exists()
        assert not notifications.filter(recipient=team['retired_manager']).exists()

    def test_admin_self_assigns(self, team, now, make_task):
        admin = team['admin']
        task = make_task(admin)

        created = services.on_task_created(task, admin)

        assert _recipients(created) == sorted([team['manager'].pk, team['other_manager'].pk])
        assert all(n.type == Notification.Type.TASK_CREATED for n in created)
        assert 'for themselves' in created[0].message

    def test_regular_user_self_assigns(self, team, now):
        alice = team['alice']

        task = create_task(
            title='Own chores', actor=alice,
            start_date=now, end_date=now.replace(day=20), now=now,
        )

        notifications = Notification.objects.filter(task=task)
        own = notifications.filter(recipient=alice).values_list('type', flat=True)
        assert list(own) == [Notification.Type.ASSIGNMENT]
        assert _recipients(notifications) == sorted([
            alice.pk, team['admin'].pk, team['manager'].pk, team['other_manager'].pk,
        ])
        assert mail.outbox[0].to == [alice.email]

    def test_admin_assigns_manager_notifies_only_assignee(self, team, make_task):
        task = make_task(team['manager'], reporter=team['admin'])

        created = services.on_task_created(task, team['admin'])

        assert _recipients(created) == [team['manager'].pk]

    def test_actor_confirmation_when_enabled(self, team, make_task, settings):
        settings.FANOUT_CONFIRM_TO_ACTOR = True
        manager = team['manager']
        task = make_task(team['alice'], reporter=manager)

        created = services.on_task_created(task, manager)

        confirmation = [n for n in created if n.recipient_id == manager.pk]
        assert len(confirmation) == 1
        assert confirmation[0].message.startswith('You created a new task')

    def test_payload_always_has_task_id(self, team, make_task):
        task = make_task(team['alice'], reporter=team['manager'])
        created = services.on_task_created(task, team['manager'])
        assert created
        assert all(n.payload['task_id'] == task.pk for n in created)
        assert all(n.payload['assignee_id'] == team['alice'].pk for n in created)

    def test_assignment_email_sent_to_assignee(self, team, make_task):
        task = make_task(team['alice'], reporter=team['manager'], title='Ship it')

        services.on_task_created(task, team['manager'])

        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == [team['alice'].email]
        assert mail.outbox[0].subject == 'New Task: Ship it'


@pytest.mark.django_db
class TestReassigned:

    def test_new_assignee_and_watchers_notified(self, team, make_task):
        admin, alice, bob = team['admin'], team['alice'], team['bob']
        task = make_task(bob, reporter=admin)

        created = services.on_task_reassigned(task, alice.pk, admin)

        assert _recipients(created) == sorted([
            bob.pk, team['manager'].pk, team['other_manager'].pk,
        ])
        assert all(n.type == Notification.Type.ASSIGNMENT for n in created)
        assert all(n.payload['old_assignee_id'] == alice.pk for n in created)

    def test_manager_reassigns_to_regular_user(self, team, make_task):
        """New assignee plus the other active supervisors; the actor is left out."""
        manager, alice, bob = team['manager'], team['alice'], team['bob']
        task = make_task(alice, reporter=manager)

        update_task(task, manager, assignee=bob)

        notifications = Notification.objects.filter(task=task)
        assert _recipients(notifications) == sorted([
            bob.pk, team['admin'].pk, team['other_manager'].pk,
        ])
        assert not notifications.filter(recipient=manager).exists()
        assert not notifications.filter(recipient=alice).exists()
        assert notifications.get(recipient=bob).title == 'Task Assigned to You'

    def test_actor_left_out_of_watchers(self, team, make_task):
        task = make_task(team['bob'], reporter=team['manager'])

        created = services.on_task_reassigned(task, team['alice'].pk, team['other_manager'])

        assert team['other_manager'].pk not in _recipients(created)
        assert team['manager'].pk in _recipients(created)

    def test_previous_assignee_not_notified(self, team, make_task):
        task = make_task(team['bob'], reporter=team['manager'])
        created = services.on_task_reassigned(task, team['alice'].pk, team['manager'])
        assert team['alice'].pk not in _recipients(created)


@pytest.mark.django_db
class TestStatusChanged:

    def test_user_updates_own_task(self, team, make_task):
        alice = team['alice']
        task = make_task(alice, reporter=team['manager'], status=Task.Status.IN_PROGRESS)

        created = services.on_status_changed(task, Task.Status.UPCOMING, alice)

        assert _recipients(created) == sorted([
            team['admin'].pk, team['manager'].pk, team['other_manager'].pk,
        ])
        notification = created[0]
        assert notification.type == Notification.Type.STATUS_CHANGE
        assert notification.payload['old_status'] == Task.Status.UPCOMING
        assert notification.payload['new_status'] == Task.Status.IN_PROGRESS
        assert '"upcoming" to "in_progress"' in notification.message

    def test_manager_updates_users_task(self, team, make_task):
        manager, alice = team['manager'], team['alice']
        task = make_task(alice, status=Task.Status.COMPLETED)

        created = services.on_status_changed(task, Task.Status.IN_PROGRESS, manager)

        assert alice.pk in _recipients(created)
        assert manager.pk not in _recipients(created)

    def test_supervisor_updates_own_task_notifies_peers(self, team, make_task):
        manager = team['manager']
        task = make_task(manager, status=Task.Status.COMPLETED)

        created = services.on_status_changed(task, Task.Status.IN_PROGRESS, manager)

        assert _recipients(created) == sorted([team['admin'].pk, team['other_manager'].pk])

    def test_unchanged_status_is_silent(self, team, make_task):
        task = make_task(team['alice'], status=Task.Status.IN_PROGRESS)
        assert services.on_status_changed(task, Task.Status.IN_PROGRESS, team['alice']) == []
        assert not Notification.objects.exists()


@pytest.mark.django_db
class TestRecipientPlanning:

    def test_recipients_are_deduplicated_first_rule_wins(self, team, make_task):
        alice = team['alice']
        task = make_task(alice, reporter=team['admin'])
        event = services.LifecycleEvent(services.EventKind.TASK_CREATED, task, team['admin'])
        wording = services.TEAM_WORDING[services.EventKind.TASK_CREATED]
        overlapping = [
            services.Delivery(alice, wording['assignee']),
            services.Delivery(team['manager'], wording['watcher']),
            services.Delivery(alice, wording['watcher']),
        ]

        with mock.patch.object(services, '_plan_team_event', return_value=overlapping):
            deliveries = services.plan_recipients(event)

        assert [d.recipient.pk for d in deliveries] == [alice.pk, team['manager'].pk]
        assert deliveries[0].wording is wording['assignee']

    def test_confirmation_never_duplicates_actor(self, team, make_task, settings):
        settings.FANOUT_CONFIRM_TO_ACTOR = True
        task = make_task(team['alice'], reporter=team['admin'])

        created = services.on_task_created(task, team['admin'])

        pks = _recipients(created)
        assert len(pks) == len(set(pks))
        assert pks.count(team['admin'].pk) == 1

    def test_every_role_has_an_audience(self):
        assert set(services.ASSIGNEE_AUDIENCE) == set(User.Role)

    def test_unknown_assignee_role(self, team, make_task):
        task = make_task(team['alice'])
        task.assignee.role = 'ghost'
        with pytest.raises(ImproperlyConfigured):
            services.on_task_created(task, team['manager'])

    def test_overdue_and_reminder_target_assignee_only(self, team, make_task):
        task = make_task(team['alice'], reporter=team['manager'])

        overdue = services.on_task_overdue(task)
        reminder = services.on_task_reminder(task)

        assert _recipients(overdue) == [team['alice'].pk]
        assert _recipients(reminder) == [team['alice'].pk]
        assert overdue[0].type == Notification.Type.OVERDUE
        assert reminder[0].type == Notification.Type.REMINDER


@pytest.mark.django_db
class TestFailureSemantics:

    def test_one_failing_recipient_does_not_block_others(self, team, make_task):
        task = make_task(team['alice'], reporter=team['manager'])
        victim = team['admin']
        real_create = Notification.objects.create

        def flaky_create(**kwargs):
            if kwargs['recipient'].pk == victim.pk:
                raise DatabaseError('disk full')
            return real_create(**kwargs)

        with mock.patch.object(Notification.objects, 'create', side_effect=flaky_create):
            created = services.on_task_created(task, team['manager'])

        assert _recipients(created) == sorted([team['alice'].pk, team['other_manager'].pk])
        assert not Notification.objects.filter(recipient=victim).exists()

    def test_all_writes_failing_raises(self, team, make_task):
        task = make_task(team['alice'], reporter=team['manager'])

        with mock.patch.object(
            Notification.objects, 'create', side_effect=DatabaseError('down')
        ):
            with pytest.raises(services.FanoutError) as exc_info:
                services.on_task_created(task, team['manager'])

        assert len(exc_info.value.failures) == 3

    def test_email_failure_keeps_notification(self, team, make_task):
        task = make_task(team['alice'], reporter=team['manager'])

        with mock.patch.object(
            services.EmailMultiAlternatives, 'send', side_effect=OSError('smtp down')
        ):
            created = services.on_task_overdue(task)

        assert len(created) == 1
        assert Notification.objects.filter(
            recipient=team['alice'], type=Notification.Type.OVERDUE
        ).exists()
        assert mail.outbox == []

    def test_send_notification_email_reports_failure(self):
        with mock.patch.object(
            services.EmailMultiAlternatives, 'send', side_effect=OSError('smtp down')
        ):
            sent = services.send_notification_email(
                'someone@example.com', 'Hi', 'notifications/emails/task_overdue', {}
            )
        assert sent is False

    def test_send_notification_email_without_address(self):
        assert services.send_notification_email('', 'Hi', 'notifications/emails/task_overdue', {}) is False

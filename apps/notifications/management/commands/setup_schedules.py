"""
Management command to set up Django-Q2 schedules for the sweeps.

Creates/updates the scheduled jobs:
- Status sweep (STATUS_SWEEP_CRON, default every 30 minutes)
- Reminder sweep (REMINDER_SWEEP_CRON, default hourly)
- Notification retry sweep (FANOUT_RETRY_CRON, default every 15 minutes)

Usage:
    python manage.py setup_schedules

The command is idempotent - safe to run multiple times.
Cron expressions are evaluated in TIME_ZONE by the Django-Q cluster.
"""
from django.conf import settings
from django.core.management.base import BaseCommand
from django_q.models import Schedule


SWEEP_SCHEDULES = (
    ('Task Status Sweep', 'apps.notifications.tasks.run_status_sweep', 'STATUS_SWEEP_CRON'),
    ('Deadline Reminder Sweep', 'apps.notifications.tasks.run_reminder_sweep', 'REMINDER_SWEEP_CRON'),
    ('Notification Retry Sweep', 'apps.notifications.tasks.run_fanout_retry_sweep', 'FANOUT_RETRY_CRON'),
)


class Command(BaseCommand):
    help = 'Set up Django-Q2 schedules for the status, reminder and retry sweeps'

    def handle(self, *args, **options):
        self.stdout.write('\nSetting up Django-Q2 schedules...\n')

        created_count = 0
        for name, func, cron_setting in SWEEP_SCHEDULES:
            cron = getattr(settings, cron_setting)
            _, created = Schedule.objects.update_or_create(
                name=name,
                defaults={
                    'func': func,
                    'schedule_type': Schedule.CRON,
                    'cron': cron,
                    'repeats': -1,  # Run forever
                },
            )
            if created:
                created_count += 1
                self.stdout.write(self.style.SUCCESS(f'✓ Created schedule: {name} ({cron})'))
            else:
                self.stdout.write(self.style.WARNING(f'↻ Updated schedule: {name} ({cron})'))

        self.stdout.write('')
        self.stdout.write(self.style.SUCCESS(
            f'Done! {created_count} created, '
            f'{len(SWEEP_SCHEDULES) - created_count} updated '
            f'(timezone: {settings.TIME_ZONE}).'
        ))
        self.stdout.write(
            self.style.NOTICE('Note: Ensure Django-Q cluster is running: python manage.py qcluster')
        )
        self.stdout.write('')

"""
Run a single sweep outside the Django-Q cluster.

Usage:
    python manage.py run_sweep status
    python manage.py run_sweep reminder
    python manage.py run_sweep fanout

Useful from system cron or when debugging; honours the same
single-flight lock as the scheduled runs.
"""
from django.core.management.base import BaseCommand

from apps.notifications.tasks import run_fanout_retry_sweep, run_reminder_sweep, run_status_sweep


SWEEPS = {
    'status': run_status_sweep,
    'reminder': run_reminder_sweep,
    'fanout': run_fanout_retry_sweep,
}


class Command(BaseCommand):
    help = 'Run one sweep once: status, reminder or fanout'

    def add_arguments(self, parser):
        parser.add_argument('sweep', choices=sorted(SWEEPS))

    def handle(self, *args, **options):
        summary = SWEEPS[options['sweep']]()

        if summary.get('skipped'):
            self.stdout.write(self.style.WARNING('Another run holds the lock; skipped.'))
        elif summary.get('aborted'):
            self.stdout.write(self.style.ERROR('Sweep aborted, see logs.'))
        else:
            details = ', '.join(
                f'{key}={value}' for key, value in summary.items() if key != 'skipped'
            )
            self.stdout.write(self.style.SUCCESS(f'{options["sweep"]} sweep: {details}'))

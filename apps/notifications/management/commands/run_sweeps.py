"""
Management command to run the reconciliation sweeps in the foreground.

Alternative to the Django-Q2 cluster for single-process deployments.
Each selected sweep runs once at start, then at its configured interval.

Usage:
    python manage.py run_sweeps                      # loop forever
    python manage.py run_sweeps --once               # one pass, print summaries
    python manage.py run_sweeps --sweep coordinator  # only one sweep

Run either this command or qcluster with setup_schedules, not both.
"""
from django.core.management.base import BaseCommand

from apps.accounts.sweeps import CoordinatorSweep
from apps.notifications.scheduler import SweepScheduler
from apps.tasks.reminders import TaskReminderSweep

SWEEPS = {
    'coordinator': CoordinatorSweep,
    'reminders': TaskReminderSweep,
}


class Command(BaseCommand):
    help = 'Run the coordinator and task reminder sweeps'

    def add_arguments(self, parser):
        parser.add_argument(
            '--sweep',
            action='append',
            choices=sorted(SWEEPS),
            help='Sweep to run (repeatable). Defaults to all sweeps.',
        )
        parser.add_argument(
            '--once',
            action='store_true',
            help='Run each selected sweep a single time and exit.',
        )
        parser.add_argument(
            '--poll-seconds',
            type=float,
            default=60.0,
            help='Longest sleep between scheduler ticks.',
        )

    def handle(self, *args, **options):
        names = options['sweep'] or sorted(SWEEPS)
        scheduler = SweepScheduler()
        for name in names:
            scheduler.add(SWEEPS[name]())

        if options['once']:
            for summary in scheduler.run_pending():
                style = self.style.ERROR if summary.failed else self.style.SUCCESS
                self.stdout.write(style(str(summary)))
            return

        for entry in scheduler.entries:
            self.stdout.write(f'• {entry.sweep.name} → every {entry.interval}')
        self.stdout.write(self.style.NOTICE('Running sweeps. Press Ctrl+C to stop.'))

        try:
            scheduler.run_forever(poll_seconds=options['poll_seconds'])
        except KeyboardInterrupt:
            self.stdout.write('\nStopped.')

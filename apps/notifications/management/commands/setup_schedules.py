"""
Management command to set up Django-Q2 schedules for the reconciliation sweeps.

This command creates/updates the scheduled tasks required for:
- Coordinator sweep (every COORDINATOR_SWEEP_INTERVAL_HOURS, default 6)
- Task reminder sweep (every TASK_REMINDER_INTERVAL_MINUTES, default 60)

Both schedules get next_run=now when created, so they run as soon as the
cluster starts and then at their interval.

Usage:
    python manage.py setup_schedules

The command is idempotent - safe to run multiple times.
Existing schedules keep their next run and get their interval updated.
"""
from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone
from django_q.models import Schedule


def get_schedule_definitions():
    """Name, job path and interval (minutes) of every sweep schedule."""
    coordinator_hours = getattr(settings, 'COORDINATOR_SWEEP_INTERVAL_HOURS', 6)
    reminder_minutes = getattr(settings, 'TASK_REMINDER_INTERVAL_MINUTES', 60)
    return [
        {
            'name': 'Coordinator Sweep',
            'func': 'apps.notifications.tasks.run_coordinator_sweep',
            'minutes': coordinator_hours * 60,
            'label': f'every {coordinator_hours} hour(s)',
        },
        {
            'name': 'Task Reminder Sweep',
            'func': 'apps.notifications.tasks.run_task_reminder_sweep',
            'minutes': reminder_minutes,
            'label': f'every {reminder_minutes} minute(s)',
        },
    ]


class Command(BaseCommand):
    help = 'Set up Django-Q2 schedules for the coordinator and task reminder sweeps'

    def handle(self, *args, **options):
        self.stdout.write('\nSetting up Django-Q2 schedules...\n')

        schedules_created = 0
        schedules_updated = 0

        for definition in get_schedule_definitions():
            schedule, created = Schedule.objects.update_or_create(
                name=definition['name'],
                defaults={
                    'func': definition['func'],
                    'schedule_type': Schedule.MINUTES,
                    'minutes': definition['minutes'],
                    'repeats': -1,  # Run forever
                },
            )
            if created:
                # Run once straight away, then on the interval
                schedule.next_run = timezone.now()
                schedule.save(update_fields=['next_run'])
                schedules_created += 1
                self.stdout.write(
                    self.style.SUCCESS(f"✓ Created schedule: {definition['name']} ({definition['label']})")
                )
            else:
                schedules_updated += 1
                self.stdout.write(
                    self.style.WARNING(f"↻ Updated schedule: {definition['name']} ({definition['label']})")
                )

        total = schedules_created + schedules_updated
        self.stdout.write('')
        self.stdout.write(
            self.style.SUCCESS(
                f'Done! {schedules_created} schedule(s) created, '
                f'{schedules_updated} schedule(s) updated. '
                f'Total: {total} schedules configured.'
            )
        )
        self.stdout.write('')
        self.stdout.write(
            self.style.NOTICE(
                'Note: Ensure Django-Q cluster is running: python manage.py qcluster'
            )
        )
        self.stdout.write('')

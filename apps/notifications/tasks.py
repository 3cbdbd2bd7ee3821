"""
Scheduled tasks for notifications app.

Background jobs, run by the Django-Q2 cluster (see setup_schedules):
- Coordinator sweep (every 6 hours)
- Task reminder sweep (hourly)

Each job returns the sweep summary as a dict so it is stored with the
task result. Errors loading the candidate rows propagate and are recorded
by Django-Q as a failed task.
"""


def run_coordinator_sweep():
    """Scheduled job: demote expired coordinators, refresh cached statuses."""
    from apps.accounts.sweeps import CoordinatorSweep

    return CoordinatorSweep().run_once().as_dict()


def run_task_reminder_sweep():
    """Scheduled job: send 3-day, 24-hour and overdue task reminders."""
    from apps.tasks.reminders import TaskReminderSweep

    return TaskReminderSweep().run_once().as_dict()

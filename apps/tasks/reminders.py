"""
Task due-date reminders.

Runs every TASK_REMINDER_INTERVAL_MINUTES (60 by default) and once at start.
For every active task with a due date, at most one notification batch is sent
per threshold, and at most one threshold fires per task per run:

- 72h >= time left > 24h -> "due in 3 days"       (reminder_before3)
- 24h >= time left >= 0  -> "due within 24 hours" (reminder_before1)
- time left < 0          -> "overdue"             (reminder_overdue)

A threshold whose window passed while no sweep ran is not sent late; only
the window the task is currently in can fire.
"""

import logging
from datetime import timedelta

from django.conf import settings

from apps.notifications.scheduler import Sweep
from apps.notifications.services import notify_users, submissions_action_url, task_action_url

from .models import Task
from .services import ensure_recipients, get_staff_ids_for_task, get_student_ids_for_task

logger = logging.getLogger(__name__)

BEFORE3 = 'before3'
BEFORE1 = 'before1'
OVERDUE = 'overdue'

# Marker field on Task for each threshold
MARKER_FIELDS = {
    BEFORE3: 'reminder_before3',
    BEFORE1: 'reminder_before1',
    OVERDUE: 'reminder_overdue',
}

# In the order a task reaches them
THRESHOLDS = [BEFORE3, BEFORE1, OVERDUE]


def _in_window(threshold, hours_left):
    if threshold == OVERDUE:
        return hours_left < 0
    if threshold == BEFORE1:
        return 0 <= hours_left <= 24
    return 24 < hours_left <= 72


def select_reminder_threshold(hours_left, task):
    """
    Pick the threshold to fire for a task, or None.

    Args:
        hours_left: Hours until the due date (negative when overdue)
        task: Task, read for its reminder markers

    Returns:
        str: 'before3', 'before1', 'overdue' or None
    """
    if hours_left is None:
        return None

    for threshold in reversed(THRESHOLDS):
        if _in_window(threshold, hours_left):
            if getattr(task, MARKER_FIELDS[threshold]) is None:
                return threshold
            return None
    return None


def skipped_thresholds(threshold, task):
    """Earlier thresholds that were never sent before `threshold` fired."""
    earlier = THRESHOLDS[:THRESHOLDS.index(threshold)]
    return [name for name in earlier if getattr(task, MARKER_FIELDS[name]) is None]


def build_messages(threshold, task):
    """
    Titles and messages for a threshold.

    Returns:
        tuple: (student_title, student_message, staff_title, staff_message)
    """
    if threshold == BEFORE3:
        message = f'{task.title} is due in 3 days.'
        return 'Task due soon', message, 'Upcoming due date', message

    if threshold == BEFORE1:
        message = f'{task.title} is due within 24 hours.'
        return 'Task due tomorrow', message, 'Upcoming due date', message

    pending_count = task.pending_recipient_count()
    return (
        'Task overdue',
        f'{task.title} is overdue. Submit as soon as possible.',
        'Overdue submissions',
        f'{pending_count} student(s) still pending for {task.title}.',
    )


def send_task_reminder(task, threshold, now):
    """
    Send one threshold's notification batch and record the marker.

    Returns:
        int: Number of notifications created
    """
    student_title, student_message, staff_title, staff_message = build_messages(threshold, task)

    sent = notify_users(
        get_student_ids_for_task(task), task,
        student_title, student_message, task_action_url(task),
    )
    sent += notify_users(
        get_staff_ids_for_task(task), task,
        staff_title, staff_message, submissions_action_url(task),
    )

    marker = MARKER_FIELDS[threshold]
    setattr(task, marker, now)
    task.save(update_fields=[marker, 'updated_at'])

    logger.info(
        'Sent %s reminder for task %s "%s" (%d notification(s))',
        threshold, task.pk, task.title, len(sent),
    )
    return len(sent)


def process_task_reminders(task, now):
    """
    Reconcile one task's reminders at `now`.

    Returns:
        str: The threshold that fired, or 'unchanged' / 'skipped'
    """
    if not task.due_date or task.status != Task.Status.ACTIVE:
        return 'skipped'

    ensure_recipients(task)

    threshold = select_reminder_threshold(task.hours_until_due(now), task)
    if threshold is None:
        return 'unchanged'

    missed = skipped_thresholds(threshold, task)
    if missed:
        logger.info(
            'Task %s passed %s without a reminder; sending %s only',
            task.pk, ', '.join(missed), threshold,
        )

    send_task_reminder(task, threshold, now)
    return threshold


class TaskReminderSweep(Sweep):
    name = 'Task reminder sweep'

    @property
    def default_interval(self):
        return timedelta(minutes=getattr(settings, 'TASK_REMINDER_INTERVAL_MINUTES', 60))

    def get_queryset(self, now):
        return (
            Task.objects
            .filter(status=Task.Status.ACTIVE, due_date__isnull=False)
            .select_related('subject')
            .order_by('due_date', 'pk')
        )

    def process(self, task, now):
        return process_task_reminders(task, now)

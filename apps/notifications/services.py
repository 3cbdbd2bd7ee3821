"""
Service layer for notifications app.

- notify_users: Insert one notification per user for a task
- mark_notification_read / mark_all_read: Read-state updates
- get_unread_count: Badge count
"""

import logging

from django.utils import timezone

from .models import Notification

logger = logging.getLogger(__name__)


def task_action_url(task):
    """Student-facing link to the subject's task list."""
    return f'/subjects/{task.subject_id}/tasks'


def submissions_action_url(task):
    """Staff-facing link to the task's submissions page."""
    return f'/teacher/tasks/{task.pk}/submissions'


def notify_users(user_ids, task, title, message, action_url=None):
    """
    Insert one notification per user about a task, in a single batch.

    Args:
        user_ids: Iterable of user primary keys (duplicates are dropped)
        task: Task the notifications refer to
        title: Notification title
        message: Notification body
        action_url: Link target (defaults to the subject's task list)

    Returns:
        list: Created Notification instances (empty if no users)
    """
    unique_ids = list(dict.fromkeys(user_ids or []))
    if not unique_ids:
        return []

    notifications = [
        Notification(
            user_id=user_id,
            type=task.category or Notification.Type.TASK,
            title=title,
            message=message,
            related_type=Notification.RelatedType.TASK,
            related_id=task.pk,
            subject_id=task.subject_id,
            is_notice=False,
            action_url=action_url or task_action_url(task),
        )
        for user_id in unique_ids
    ]
    created = Notification.objects.bulk_create(notifications)
    logger.debug('Inserted %d "%s" notification(s) for task %s', len(created), title, task.pk)
    return created


def mark_notification_read(notification_id, user, now=None):
    """
    Mark one of the user's notifications as read.

    Raises:
        Notification.DoesNotExist: If the notification does not belong to the user
    """
    now = now or timezone.now()
    updated = Notification.objects.filter(pk=notification_id, user=user).update(
        is_read=True, read_at=now
    )
    if not updated:
        raise Notification.DoesNotExist('Notification not found')
    return Notification.objects.get(pk=notification_id)


def mark_all_read(user, now=None):
    """Mark all unread notifications of a user as read. Returns the count."""
    now = now or timezone.now()
    return Notification.objects.filter(user=user, is_read=False).update(
        is_read=True, read_at=now
    )


def get_unread_count(user):
    return Notification.objects.filter(user=user, is_read=False).count()

"""
In-app notification model.

Notifications are inserted in batches by the task reminder sweep (and by
notice/task publishing elsewhere) and read by the portal's notification bell.
"""

from django.conf import settings
from django.db import models


class Notification(models.Model):
    """A single notification addressed to one user."""

    class Type(models.TextChoices):
        TASK = 'Task', 'Task'
        NOTICE = 'Notice', 'Notice'
        ASSIGNMENT = 'Assignment', 'Assignment'
        CUSTOM = 'Custom', 'Custom'
        SYSTEM = 'System', 'System'

    class RelatedType(models.TextChoices):
        TASK = 'Task', 'Task'
        NOTICE = 'Notice', 'Notice'

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
    )
    type = models.CharField(max_length=20, choices=Type.choices)
    title = models.CharField(max_length=255)
    message = models.TextField()

    # Reference to the Task or Notice this is about
    related_type = models.CharField(max_length=10, choices=RelatedType.choices)
    related_id = models.PositiveBigIntegerField(null=True, blank=True)

    subject = models.ForeignKey(
        'academics.Subject',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications',
    )
    is_notice = models.BooleanField(default=False)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    action_url = models.CharField(max_length=255, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'notification'
        verbose_name_plural = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notif_user_read_idx'),
            models.Index(fields=['user', '-created_at'], name='notif_user_created_idx'),
            models.Index(fields=['related_type', 'related_id'], name='notif_related_idx'),
        ]

    def __str__(self):
        return f"{self.title} -> {self.user}"

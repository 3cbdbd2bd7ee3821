"""
Task models.

Models:
- Task: Work set for one subject's students, with a due date and reminder markers
- TaskRecipient: One student's copy of a task and their submission status
"""

from django.conf import settings
from django.db import models


class Task(models.Model):
    """
    A task or assignment given to the students of a subject.

    Reminder markers (reminder_before3, reminder_before1, reminder_overdue)
    record when the matching notification batch was sent. Each is set once
    by the reminder sweep and never cleared.
    """

    class Category(models.TextChoices):
        TASK = 'Task', 'Task'
        ASSIGNMENT = 'Assignment', 'Assignment'
        CUSTOM = 'Custom', 'Custom'

    class Status(models.TextChoices):
        DRAFT = 'draft', 'Draft'
        ACTIVE = 'active', 'Active'
        ARCHIVED = 'archived', 'Archived'
        DELETED = 'deleted', 'Deleted'

    title = models.CharField(max_length=255)
    description = models.TextField()
    category = models.CharField(
        max_length=20,
        choices=Category.choices,
        default=Category.TASK,
    )

    # Relationships
    subject = models.ForeignKey(
        'academics.Subject',
        on_delete=models.PROTECT,
        related_name='tasks',
    )
    branch = models.ForeignKey(
        'academics.Branch',
        on_delete=models.PROTECT,
        related_name='tasks',
        help_text='Auto-populated from subject'
    )
    semester = models.ForeignKey(
        'academics.Semester',
        on_delete=models.PROTECT,
        related_name='tasks',
        help_text='Auto-populated from subject'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='created_tasks',
    )
    created_by_role = models.CharField(max_length=20)

    due_date = models.DateTimeField(null=True, blank=True, db_index=True)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )

    # Reminder tracking
    reminder_before3 = models.DateTimeField(
        null=True,
        blank=True,
        help_text='When the 3-day reminder batch was sent'
    )
    reminder_before1 = models.DateTimeField(
        null=True,
        blank=True,
        help_text='When the 24-hour reminder batch was sent'
    )
    reminder_overdue = models.DateTimeField(
        null=True,
        blank=True,
        help_text='When the overdue notification batch was sent'
    )

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'task'
        verbose_name_plural = 'tasks'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['subject', 'branch', 'semester'], name='task_subject_scope_idx'),
            models.Index(fields=['status', 'due_date'], name='task_status_due_idx'),
        ]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        # Auto-populate branch and semester from subject
        if self.subject_id and not (self.branch_id and self.semester_id):
            self.branch_id = self.subject.branch_id
            self.semester_id = self.subject.semester_id
        super().save(*args, **kwargs)

    def hours_until_due(self, now):
        """Hours from `now` to the due date; negative once overdue, None without a due date."""
        if not self.due_date:
            return None
        return (self.due_date - now).total_seconds() / 3600

    @property
    def is_active(self):
        return self.status == self.Status.ACTIVE

    def pending_recipient_count(self):
        """Number of recipients who have not submitted or completed the task."""
        return self.recipients.exclude(
            status__in=TaskRecipient.DONE_STATUSES
        ).count()


class TaskRecipient(models.Model):
    """A student's copy of a task."""

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        IN_PROGRESS = 'in-progress', 'In Progress'
        SUBMITTED = 'submitted', 'Submitted'
        COMPLETED = 'completed', 'Completed'

    DONE_STATUSES = [Status.SUBMITTED, Status.COMPLETED]

    task = models.ForeignKey(
        Task,
        on_delete=models.CASCADE,
        related_name='recipients',
    )
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='task_copies',
    )
    status = models.CharField(
        max_length=15,
        choices=Status.choices,
        default=Status.PENDING,
    )
    submitted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = 'task recipient'
        verbose_name_plural = 'task recipients'
        constraints = [
            models.UniqueConstraint(fields=['task', 'student'], name='unique_task_recipient'),
        ]

    def __str__(self):
        return f"{self.student} - {self.task} ({self.get_status_display()})"

    @property
    def is_done(self):
        return self.status in self.DONE_STATUSES

"""
Service layer for tasks app.

All business logic for task operations is centralized here.

Services:
- get_student_ids_for_task: Active students of the task's branch/semester
- get_staff_ids_for_task: Teachers/HODs of the subject plus the creator
- ensure_recipients: One-time recipient backfill
- create_task: Create a task for a subject with permission checks
- update_recipient_status: Track a student's progress on a task
"""

import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.utils import timezone

from apps.accounts.coordinators import can_coordinator_manage_subject, get_effective_role
from apps.accounts.models import User

from .models import Task, TaskRecipient

logger = logging.getLogger(__name__)

CREATOR_ROLES = [User.Role.ADMIN, User.Role.HOD, User.Role.TEACHER, User.Role.COORDINATOR]


def get_student_ids_for_task(task):
    """Primary keys of active students in the task's branch and semester."""
    return list(
        User.objects.active_students(task.branch_id, task.semester_id)
        .order_by('pk')
        .values_list('pk', flat=True)
    )


def get_staff_ids_for_task(task):
    """
    Primary keys of staff to notify about a task.

    Active teachers and HODs who teach the task's subject, plus the task's
    creator. No duplicates; creator last unless already included.
    """
    staff_ids = list(
        User.objects.filter(
            role__in=[User.Role.TEACHER, User.Role.HOD],
            status=User.Status.ACTIVE,
            assigned_subjects=task.subject_id,
        )
        .order_by('pk')
        .values_list('pk', flat=True)
        .distinct()
    )
    if task.created_by_id and task.created_by_id not in staff_ids:
        staff_ids.append(task.created_by_id)
    return staff_ids


def ensure_recipients(task):
    """
    Populate the task's recipients from the current class list, once.

    Tasks that already have recipients are left untouched.

    Returns:
        int: Number of recipients created
    """
    if task.recipients.exists():
        return 0

    student_ids = get_student_ids_for_task(task)
    TaskRecipient.objects.bulk_create([
        TaskRecipient(task=task, student_id=student_id)
        for student_id in student_ids
    ])
    if student_ids:
        logger.info('Backfilled %d recipient(s) for task %s', len(student_ids), task.pk)
    return len(student_ids)


def can_create_task_for_subject(user, subject, now=None):
    """
    Check if a user may set tasks for a subject.

    - Admin: any subject
    - HOD: subjects of their own branch, or assigned ones
    - Teacher: subjects assigned to them
    - Coordinator: subjects inside the coordinator scope, or assigned ones
    """
    role = get_effective_role(user, now)

    if role == User.Role.ADMIN:
        return True

    if role not in CREATOR_ROLES:
        return False

    if user.has_assigned_subject(subject):
        return True

    if role == User.Role.HOD:
        return bool(user.branch_id) and user.branch_id == subject.branch_id

    return can_coordinator_manage_subject(user, subject, now)


def create_task(
    title: str,
    description: str,
    subject,
    created_by,
    due_date=None,
    category: str = Task.Category.TASK,
    status: str = Task.Status.ACTIVE,
    now=None,
):
    """
    Create a task for every active student of a subject.

    Args:
        title: Task title (required)
        description: Task description (required)
        subject: Subject the task belongs to
        created_by: Teacher, HOD, coordinator or admin creating it
        due_date: Due instant (optional, must be in the future)
        category: Task/Assignment/Custom
        status: Initial status (default: active)

    Returns:
        Created Task instance

    Raises:
        PermissionDenied: If the creator cannot set tasks for the subject
        ValidationError: If required fields are missing or invalid
    """
    now = now or timezone.now()

    if not title or not title.strip():
        raise ValidationError('Task title is required.')

    if not description or not description.strip():
        raise ValidationError('Task description is required.')

    if subject is None:
        raise ValidationError('Subject is required.')

    if category not in Task.Category.values:
        raise ValidationError(f'Invalid category: {category}')

    if status not in Task.Status.values:
        raise ValidationError(f'Invalid status: {status}')

    if due_date and due_date < now:
        raise ValidationError('Due date cannot be in the past.')

    if not can_create_task_for_subject(created_by, subject, now):
        raise PermissionDenied(
            'You can only create tasks for your assigned subjects or coordinator scope.'
        )

    with transaction.atomic():
        task = Task.objects.create(
            title=title.strip(),
            description=description.strip(),
            category=category,
            subject=subject,
            branch_id=subject.branch_id,
            semester_id=subject.semester_id,
            created_by=created_by,
            created_by_role=get_effective_role(created_by, now),
            due_date=due_date,
            status=status,
        )
        ensure_recipients(task)

    logger.info('Task %s "%s" created by %s', task.pk, task.title, created_by.email)
    return task


def update_recipient_status(task, student, new_status, now=None):
    """
    Update a student's status on a task.

    Submitting stamps submitted_at; moving back to pending clears it.

    Raises:
        ValidationError: If the status is invalid or the student is not a recipient
    """
    now = now or timezone.now()

    if new_status not in TaskRecipient.Status.values:
        raise ValidationError(f'Invalid status: {new_status}')

    try:
        recipient = task.recipients.get(student=student)
    except TaskRecipient.DoesNotExist:
        raise ValidationError('Student is not a recipient of this task.')

    recipient.status = new_status
    if new_status == TaskRecipient.Status.SUBMITTED:
        recipient.submitted_at = now
    elif new_status == TaskRecipient.Status.PENDING:
        recipient.submitted_at = None
    recipient.save(update_fields=['status', 'submitted_at'])
    return recipient

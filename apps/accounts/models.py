"""
Custom User model for SmartAcademics.

CRITICAL: This file must be created and AUTH_USER_MODEL set before running
any migrations. Changing the User model after migrations is very complex.

Models:
- User: Email login, role, account status, academic placement
- CoordinatorAssignment: Temporary coordinator grant with expiry and grace
"""

from django.conf import settings
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models


class UserManager(BaseUserManager):
    """
    Custom user manager where email is the unique identifier
    for authentication instead of username.
    """

    def create_user(self, email, password=None, **extra_fields):
        """Create and save a regular user with the given email and password."""
        if not email:
            raise ValueError('The Email field must be set')

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Create and save a SuperUser with the given email and password."""
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', User.Role.ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)

    def active_students(self, branch, semester):
        """Active students enrolled in the given branch and semester."""
        return self.filter(
            role=User.Role.STUDENT,
            status=User.Status.ACTIVE,
            branch=branch,
            semester=semester,
        )


class User(AbstractUser):
    """
    Custom User model with email authentication and role-based access.

    Roles:
    - Admin: Full access, catalogs, user management
    - HOD: Head of a branch, manages teachers and subjects in the branch
    - Teacher: Works with assigned subjects
    - Coordinator: Temporary elevated role granted to a teacher/HOD for a
      branch and set of semesters (see CoordinatorAssignment)
    - Student: Enrolled in one branch and semester
    """

    class Role(models.TextChoices):
        STUDENT = 'student', 'Student'
        TEACHER = 'teacher', 'Teacher'
        HOD = 'hod', 'HOD'
        ADMIN = 'admin', 'Admin'
        COORDINATOR = 'coordinator', 'Coordinator'

    class Status(models.TextChoices):
        PENDING_FIRST_LOGIN = 'pending_first_login', 'Pending First Login'
        ACTIVE = 'active', 'Active'
        DISABLED = 'disabled', 'Disabled'

    # Remove username field, use email instead
    username = None
    email = models.EmailField(
        'email address',
        unique=True,
        error_messages={
            'unique': 'A user with that email already exists.',
        },
    )
    mobile = models.CharField(max_length=15, blank=True)
    enrollment_number = models.CharField(max_length=30, blank=True)

    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.STUDENT,
        db_index=True,
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )

    # Academic placement (students)
    branch = models.ForeignKey(
        'academics.Branch',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='students',
    )
    semester = models.ForeignKey(
        'academics.Semester',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='students',
    )

    # Teaching load (teachers, HODs)
    assigned_subjects = models.ManyToManyField(
        'academics.Subject',
        blank=True,
        related_name='teachers',
    )

    permissions = models.JSONField(
        default=list,
        blank=True,
        help_text='Explicit section keys. Empty means the role defaults apply.',
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    class Meta:
        verbose_name = 'user'
        verbose_name_plural = 'users'
        ordering = ['first_name', 'last_name']
        indexes = [
            models.Index(fields=['role', 'status'], name='user_role_status_idx'),
            models.Index(fields=['branch', 'semester'], name='user_branch_sem_idx'),
        ]

    def __str__(self):
        return f"{self.get_full_name()} ({self.email})"

    def get_full_name(self):
        """Return the first_name plus the last_name, with a space in between."""
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.email

    def get_short_name(self):
        """Return the short name for the user."""
        return self.first_name or self.email.split('@')[0]

    # ==========================================================================
    # Role Methods
    # ==========================================================================

    def is_admin(self):
        return self.role == self.Role.ADMIN

    def is_hod(self):
        return self.role == self.Role.HOD

    def is_teacher(self):
        return self.role == self.Role.TEACHER

    def is_student(self):
        return self.role == self.Role.STUDENT

    def is_coordinator(self):
        """
        Check if user currently holds the coordinator role.

        This reads the stored role only. Authorization code must go through
        apps.accounts.coordinators, which re-resolves the expiry.
        """
        return self.role == self.Role.COORDINATOR

    def is_account_active(self):
        return self.status == self.Status.ACTIVE and self.is_active

    def has_assigned_subject(self, subject):
        subject_id = getattr(subject, 'pk', subject)
        return self.assigned_subjects.filter(pk=subject_id).exists()


class CoordinatorAssignment(models.Model):
    """
    Temporary coordinator grant on a user.

    The grant is valid until `valid_till`, then tolerated for `grace_days`
    more days, then revoked: the user's role goes back to `base_role`.

    `status` is a cached copy of the resolved state, refreshed by the
    coordinator sweep. It is for display only; permission checks resolve
    the state again from `valid_till` and `grace_days`.
    """

    class BaseRole(models.TextChoices):
        TEACHER = 'teacher', 'Teacher'
        HOD = 'hod', 'HOD'

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        GRACE = 'grace', 'Grace'
        EXPIRED = 'expired', 'Expired'

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='coordinator',
    )
    base_role = models.CharField(
        max_length=20,
        choices=BaseRole.choices,
        default=BaseRole.TEACHER,
        help_text='Role restored when the assignment expires',
    )

    # Scope
    branch = models.ForeignKey(
        'academics.Branch',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='coordinator_assignments',
    )
    semesters = models.ManyToManyField(
        'academics.Semester',
        blank=True,
        related_name='coordinator_assignments',
    )

    # Expiry
    valid_till = models.DateTimeField(
        null=True,
        blank=True,
        help_text='Leave empty for an assignment that never expires',
    )
    grace_days = models.PositiveSmallIntegerField(
        default=0,
        help_text='Extra days tolerated after valid_till before revocation',
    )
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )
    revoked_at = models.DateTimeField(null=True, blank=True)

    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='coordinator_grants',
    )
    assigned_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'coordinator assignment'
        verbose_name_plural = 'coordinator assignments'
        ordering = ['valid_till']

    def __str__(self):
        return f"Coordinator: {self.user} ({self.get_status_display()})"

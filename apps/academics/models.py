"""
Academic catalog models.

Models:
- Branch: A degree branch (e.g. Computer Engineering)
- Semester: A semester number shared by all branches
- Subject: A subject taught to one branch in one semester

Students belong to exactly one branch and semester. Tasks and coordinator
scopes are expressed in terms of these catalogs.
"""

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class Branch(models.Model):
    """
    Represents a branch of study.

    Notes:
    - Branches are flat (no parent/child relationships)
    - Code is a short identifier (e.g., "CE", "IT")
    """

    name = models.CharField(
        max_length=100,
        unique=True,
        help_text='Full branch name'
    )
    code = models.CharField(
        max_length=10,
        unique=True,
        help_text='Short identifier (e.g., CE, IT, ME)'
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'branch'
        verbose_name_plural = 'branches'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.code})"

    def save(self, *args, **kwargs):
        # Ensure code is uppercase
        if self.code:
            self.code = self.code.upper()
        super().save(*args, **kwargs)

    @property
    def student_count(self):
        """Return the number of active students in this branch."""
        return self.students.filter(role='student', status='active').count()


class Semester(models.Model):
    """A semester number (1-12) with a display name."""

    number = models.PositiveSmallIntegerField(
        unique=True,
        validators=[MinValueValidator(1), MaxValueValidator(12)],
    )
    name = models.CharField(max_length=50, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name = 'semester'
        verbose_name_plural = 'semesters'
        ordering = ['number']

    def __str__(self):
        return self.name or f"Semester {self.number}"


class Subject(models.Model):
    """
    A subject taught to one branch in one semester.

    Teachers and HODs are linked to subjects through User.assigned_subjects.
    """

    name = models.CharField(max_length=150)
    code = models.CharField(max_length=20, unique=True)
    branch = models.ForeignKey(
        Branch,
        on_delete=models.PROTECT,
        related_name='subjects',
    )
    semester = models.ForeignKey(
        Semester,
        on_delete=models.PROTECT,
        related_name='subjects',
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'subject'
        verbose_name_plural = 'subjects'
        ordering = ['branch__name', 'semester__number', 'name']
        indexes = [
            models.Index(fields=['branch', 'semester'], name='subject_branch_sem_idx'),
        ]

    def __str__(self):
        return f"{self.code}: {self.name}"

    def save(self, *args, **kwargs):
        if self.code:
            self.code = self.code.upper()
        super().save(*args, **kwargs)

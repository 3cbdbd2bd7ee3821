"""
Builders shared by the test modules.
"""

import itertools
from datetime import datetime, timedelta, timezone as dt_timezone

from apps.academics.models import Branch, Semester, Subject
from apps.accounts.coordinators import assign_coordinator
from apps.accounts.models import User
from apps.tasks.models import Task

# Fixed clock for every time-dependent test
NOW = datetime(2025, 1, 15, 12, 0, tzinfo=dt_timezone.utc)

_sequence = itertools.count(1)


def make_catalog(code='CE', semester_number=3):
    """Create a branch, a semester and one subject taught to them."""
    branch, _ = Branch.objects.get_or_create(
        code=code.upper(), defaults={'name': f'Branch {code}'}
    )
    semester, _ = Semester.objects.get_or_create(
        number=semester_number, defaults={'name': f'Semester {semester_number}'}
    )
    subject = Subject.objects.create(
        name='Data Structures',
        code=f'{code}{semester_number}{next(_sequence):02d}',
        branch=branch,
        semester=semester,
    )
    return branch, semester, subject


def make_user(role=User.Role.STUDENT, **extra):
    n = next(_sequence)
    extra.setdefault('first_name', role.title())
    extra.setdefault('last_name', str(n))
    return User.objects.create_user(
        email=extra.pop('email', f'{role}{n}@example.com'),
        password='testpass123',
        role=role,
        **extra,
    )


def make_student(branch, semester, **extra):
    return make_user(User.Role.STUDENT, branch=branch, semester=semester, **extra)


def make_teacher(*subjects, role=User.Role.TEACHER, **extra):
    teacher = make_user(role, **extra)
    if subjects:
        teacher.assigned_subjects.add(*subjects)
    return teacher


def make_coordinator(branch, semesters=(), valid_till=None, grace_days=0,
                     base_role=User.Role.TEACHER, granted_at=None):
    """A teacher/HOD promoted to coordinator at `granted_at` (default: 30 days before NOW)."""
    user = make_user(base_role)
    assign_coordinator(
        user,
        branch,
        semesters=list(semesters),
        valid_till=valid_till,
        grace_days=grace_days,
        now=granted_at or NOW - timedelta(days=30),
    )
    return user


def make_task(subject, created_by, due_date=None, **extra):
    extra.setdefault('title', f'Lab sheet {next(_sequence)}')
    extra.setdefault('description', 'Complete the exercises.')
    extra.setdefault('created_by_role', created_by.role)
    return Task.objects.create(
        subject=subject,
        created_by=created_by,
        due_date=due_date,
        **extra,
    )

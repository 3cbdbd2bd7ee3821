"""
Coordinator role lifecycle.

A coordinator is a teacher or HOD temporarily promoted to coordinate one
branch and a set of semesters. The grant carries an expiry (`valid_till`) and
a grace period (`grace_days`). Once both have passed, the user is demoted back
to the base role recorded on the assignment.

Services:
- resolve_coordinator_status: Pure status resolver (active/grace/expired)
- apply_coordinator_status: Bring one user's stored state in line with it
- assign_coordinator / revoke_coordinator / save_assignment: Admin actions
- get_coordinator_scope / can_coordinator_manage_subject: Scope checks
- get_effective_role: Role to authorize with
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from django.conf import settings
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .models import CoordinatorAssignment, User

logger = logging.getLogger(__name__)

ACTIVE = CoordinatorAssignment.Status.ACTIVE
GRACE = CoordinatorAssignment.Status.GRACE
EXPIRED = CoordinatorAssignment.Status.EXPIRED

# Outcomes reported by apply_coordinator_status
REVOKED = 'revoked'
UPDATED = 'updated'
UNCHANGED = 'unchanged'
SKIPPED = 'skipped'


def _coerce_instant(value):
    """Return an aware datetime for `value`, or None when it is unusable."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = parse_datetime(value.strip())
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if timezone.is_naive(value):
        try:
            value = timezone.make_aware(value)
        except (ValueError, OverflowError):
            return None
    return value


def _coerce_grace_days(value):
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float) and math.isfinite(value):
        return max(value, 0.0)
    return 0


def resolve_coordinator_status(valid_till, grace_days, now):
    """
    Resolve the status of a coordinator assignment at `now`.

    Args:
        valid_till: Expiry instant (datetime or ISO string). Missing or
            unparseable means the assignment never expires.
        grace_days: Days tolerated after expiry; fractional days are
            honored. Negative, non-finite or non-numeric values count as 0.
        now: Current instant

    Returns:
        str: 'active', 'grace' or 'expired'. Never raises.
    """
    expires_at = _coerce_instant(valid_till)
    now = _coerce_instant(now)
    if expires_at is None or now is None:
        return ACTIVE

    if now <= expires_at:
        return ACTIVE

    try:
        grace_ends_at = expires_at + timedelta(days=_coerce_grace_days(grace_days))
    except OverflowError:
        return GRACE

    if now <= grace_ends_at:
        return GRACE
    return EXPIRED


def get_coordinator_status(assignment, now):
    """Resolved status of an assignment; a missing assignment is active."""
    if assignment is None:
        return ACTIVE
    return resolve_coordinator_status(assignment.valid_till, assignment.grace_days, now)


def get_assignment(user):
    """Return the user's CoordinatorAssignment or None."""
    try:
        return user.coordinator
    except CoordinatorAssignment.DoesNotExist:
        return None


def _default_base_role():
    return getattr(settings, 'COORDINATOR_DEFAULT_BASE_ROLE', User.Role.TEACHER)


def _demote(user, assignment, now):
    # Role and assignment change together or not at all
    with transaction.atomic():
        user.role = assignment.base_role or _default_base_role()
        user.save(update_fields=['role', 'updated_at'])

        assignment.status = EXPIRED
        assignment.revoked_at = now
        assignment.save(update_fields=['status', 'revoked_at', 'updated_at'])


def apply_coordinator_status(user, now=None):
    """
    Bring a coordinator's stored role and cached status in line with the
    resolved status.

    - expired: role reverts to the base role, status=expired, revoked_at=now
    - status changed (active <-> grace): cached status updated
    - otherwise: nothing is written

    Args:
        user: User instance
        now: Current instant (defaults to timezone.now())

    Returns:
        str: One of 'revoked', 'updated', 'unchanged', 'skipped'
    """
    now = now or timezone.now()

    if not user.is_coordinator():
        return SKIPPED

    assignment = get_assignment(user)
    if assignment is None:
        logger.warning('Coordinator %s has no assignment record', user.email)
        return SKIPPED

    next_status = get_coordinator_status(assignment, now)

    if next_status == EXPIRED:
        _demote(user, assignment, now)
        logger.info(
            'Coordinator role expired for %s, reverted to %s',
            user.email, user.role,
        )
        return REVOKED

    if assignment.status != next_status:
        previous = assignment.status
        assignment.status = next_status
        assignment.save(update_fields=['status', 'updated_at'])
        logger.info(
            'Coordinator status for %s changed from %s to %s',
            user.email, previous, next_status,
        )
        return UPDATED

    return UNCHANGED


def assign_coordinator(
    user,
    branch,
    semesters=None,
    valid_till=None,
    grace_days: int = 0,
    assigned_by=None,
    base_role: str = None,
    now=None,
):
    """
    Grant the coordinator role to a teacher or HOD.

    Re-assigning an existing coordinator keeps the base role recorded on the
    first grant unless `base_role` is given explicitly.

    Args:
        user: Teacher, HOD or current coordinator
        branch: Branch the coordinator is responsible for
        semesters: Iterable of Semester instances (optional)
        valid_till: Expiry instant, None for no expiry
        grace_days: Days tolerated after expiry
        assigned_by: Admin granting the role
        base_role: Role to revert to (defaults to the user's current role)
        now: Current instant, used to seed the cached status

    Returns:
        CoordinatorAssignment instance

    Raises:
        PermissionDenied: If assigned_by is not an admin
        ValidationError: If the user cannot be promoted
    """
    now = now or timezone.now()

    if assigned_by is not None and not assigned_by.is_admin():
        raise PermissionDenied('Only admins can assign coordinators.')

    if not user.is_account_active():
        raise ValidationError('Cannot assign the coordinator role to an inactive user.')

    if branch is None:
        raise ValidationError('A coordinator must be assigned to a branch.')

    if grace_days is None or grace_days < 0:
        raise ValidationError('Grace days cannot be negative.')

    promotable = [User.Role.TEACHER, User.Role.HOD, User.Role.COORDINATOR]
    if user.role not in promotable:
        raise ValidationError('Only teachers and HODs can be made coordinators.')

    existing = get_assignment(user)

    if base_role is None:
        if user.is_coordinator() and existing is not None:
            base_role = existing.base_role
        elif user.is_coordinator():
            base_role = _default_base_role()
        else:
            base_role = user.role

    if base_role not in CoordinatorAssignment.BaseRole.values:
        raise ValidationError(f'Invalid base role: {base_role}')

    with transaction.atomic():
        assignment = existing or CoordinatorAssignment(user=user)
        assignment.base_role = base_role
        assignment.branch = branch
        assignment.valid_till = valid_till
        assignment.grace_days = grace_days
        assignment.status = resolve_coordinator_status(valid_till, grace_days, now)
        assignment.revoked_at = None
        assignment.assigned_by = assigned_by
        assignment.save()
        assignment.semesters.set(semesters or [])

        user.role = User.Role.COORDINATOR
        user.save(update_fields=['role', 'updated_at'])

        # An already-expired grant is revoked straight away
        if assignment.status == EXPIRED:
            _demote(user, assignment, now)

    logger.info(
        'Coordinator role assigned to %s for %s (valid till %s, grace %s day(s))',
        user.email, branch, valid_till or 'no expiry', grace_days,
    )
    return assignment


def revoke_coordinator(user, now=None):
    """
    Revoke the coordinator role immediately.

    Returns:
        bool: True if the user was demoted
    """
    now = now or timezone.now()

    if not user.is_coordinator():
        return False

    assignment = get_assignment(user)
    with transaction.atomic():
        if assignment is None:
            user.role = _default_base_role()
            user.save(update_fields=['role', 'updated_at'])
        else:
            _demote(user, assignment, now)

    logger.info('Coordinator role revoked for %s', user.email)
    return True


def save_assignment(user, assignment, assigned_by=None, now=None):
    """
    Persist an assignment edited in place and bring the user's role in line.

    Used by the admin inline, where the row is created or changed directly
    rather than through assign_coordinator.

    - resolves to active/grace: user is (re)promoted, revoked_at cleared;
      the base role is taken from the user's role when they are promoted
    - resolves to expired: a current coordinator is demoted straight away

    Args:
        user: User the assignment belongs to
        assignment: Unsaved or edited CoordinatorAssignment
        assigned_by: Admin making the change, stamped on new rows
        now: Current instant (defaults to timezone.now())

    Returns:
        CoordinatorAssignment instance
    """
    now = now or timezone.now()

    with transaction.atomic():
        if assignment.pk is None and assigned_by is not None:
            assignment.assigned_by = assigned_by

        assignment.status = resolve_coordinator_status(
            assignment.valid_till, assignment.grace_days, now
        )

        if assignment.status == EXPIRED:
            assignment.save()
            if user.is_coordinator():
                _demote(user, assignment, now)
                logger.info('Coordinator role for %s saved as expired, reverted to %s', user.email, user.role)
            return assignment

        if not user.is_coordinator():
            if user.role in CoordinatorAssignment.BaseRole.values:
                assignment.base_role = user.role
            user.role = User.Role.COORDINATOR
            user.save(update_fields=['role', 'updated_at'])
            logger.info('Coordinator role granted to %s until %s', user.email, assignment.valid_till or 'no expiry')

        assignment.revoked_at = None
        assignment.save()

    return assignment


# =============================================================================
# Scope and effective role
# =============================================================================

@dataclass(frozen=True)
class CoordinatorScope:
    """Branch and semesters a coordinator may act on."""

    branch_id: int
    semester_ids: frozenset = field(default_factory=frozenset)

    def covers(self, branch_id, semester_id):
        return branch_id == self.branch_id and semester_id in self.semester_ids


def get_coordinator_scope(user, now=None):
    """
    Return the CoordinatorScope for a user, or None.

    The expiry is resolved again here; a coordinator whose grant has lapsed
    gets no scope even if the sweep has not demoted them yet.
    """
    now = now or timezone.now()

    if user is None or not user.is_coordinator():
        return None

    assignment = get_assignment(user)
    if assignment is None or assignment.branch_id is None:
        return None

    if get_coordinator_status(assignment, now) == EXPIRED:
        return None

    semester_ids = frozenset(assignment.semesters.values_list('pk', flat=True))
    return CoordinatorScope(branch_id=assignment.branch_id, semester_ids=semester_ids)


def can_coordinator_manage_subject(user, subject, now=None):
    """Check if a coordinator's scope covers the subject's branch and semester."""
    scope = get_coordinator_scope(user, now)
    if scope is None or subject is None:
        return False
    if not subject.branch_id or not subject.semester_id:
        return False
    return scope.covers(subject.branch_id, subject.semester_id)


def get_effective_role(user, now=None):
    """
    Role to authorize the user with.

    A coordinator whose grant resolves to expired is treated as the base role
    recorded on the assignment.
    """
    if not user.is_coordinator():
        return user.role

    assignment = get_assignment(user)
    if assignment is None:
        return _default_base_role()

    if get_coordinator_status(assignment, now or timezone.now()) == EXPIRED:
        return assignment.base_role or _default_base_role()
    return user.role

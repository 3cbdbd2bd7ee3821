"""
Tests for the coordinator lifecycle: grants, revocation, scope, effective
role and the coordinator sweep.
"""

from datetime import timedelta
from unittest import mock

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import DatabaseError, connection
from django.test import TestCase, override_settings
from django.test.utils import CaptureQueriesContext

from apps.accounts.coordinators import (
    REVOKED,
    SKIPPED,
    UNCHANGED,
    UPDATED,
    apply_coordinator_status,
    assign_coordinator,
    can_coordinator_manage_subject,
    get_coordinator_scope,
    get_effective_role,
    revoke_coordinator,
    save_assignment,
)
from apps.accounts.models import CoordinatorAssignment, User
from apps.accounts.permissions import get_user_sections, has_section_access
from apps.accounts.sweeps import CoordinatorSweep

from .helpers import NOW, make_catalog, make_coordinator, make_user


def write_queries(ctx):
    return [
        q['sql'] for q in ctx.captured_queries
        if q['sql'].lstrip().upper().startswith(('UPDATE', 'INSERT', 'DELETE'))
    ]


# =============================================================================
# Coordinator sweep
# =============================================================================

class CoordinatorSweepTests(TestCase):

    def setUp(self):
        self.branch, self.semester, self.subject = make_catalog()

    def test_expired_grant_is_revoked(self):
        user = make_coordinator(self.branch, [self.semester], valid_till=NOW - timedelta(days=1))

        summary = CoordinatorSweep().run_once(NOW)

        user.refresh_from_db()
        assignment = CoordinatorAssignment.objects.get(user=user)
        self.assertEqual(user.role, User.Role.TEACHER)
        self.assertEqual(assignment.status, CoordinatorAssignment.Status.EXPIRED)
        self.assertEqual(assignment.revoked_at, NOW)
        self.assertEqual(summary.outcomes[REVOKED], 1)
        self.assertEqual(summary.failed, 0)

    def test_hod_reverts_to_hod(self):
        user = make_coordinator(
            self.branch, valid_till=NOW - timedelta(days=1), base_role=User.Role.HOD
        )

        CoordinatorSweep().run_once(NOW)

        user.refresh_from_db()
        self.assertEqual(user.role, User.Role.HOD)

    def test_grant_in_grace_keeps_role(self):
        user = make_coordinator(self.branch, valid_till=NOW - timedelta(days=1), grace_days=3)

        summary = CoordinatorSweep().run_once(NOW)

        user.refresh_from_db()
        assignment = CoordinatorAssignment.objects.get(user=user)
        self.assertEqual(user.role, User.Role.COORDINATOR)
        self.assertEqual(assignment.status, CoordinatorAssignment.Status.GRACE)
        self.assertIsNone(assignment.revoked_at)
        self.assertEqual(summary.outcomes[UPDATED], 1)

    def test_active_grant_is_left_alone(self):
        make_coordinator(self.branch, valid_till=NOW + timedelta(days=10))

        summary = CoordinatorSweep().run_once(NOW)

        self.assertEqual(summary.processed, 1)
        self.assertEqual(summary.changed, 0)
        self.assertEqual(summary.outcomes[UNCHANGED], 1)

    def test_second_run_at_same_instant_writes_nothing(self):
        make_coordinator(self.branch, valid_till=NOW - timedelta(days=1))
        make_coordinator(self.branch, valid_till=NOW - timedelta(days=1), grace_days=3)
        make_coordinator(self.branch, valid_till=NOW + timedelta(days=1))

        first = CoordinatorSweep().run_once(NOW)
        with CaptureQueriesContext(connection) as ctx:
            second = CoordinatorSweep().run_once(NOW)

        self.assertEqual(first.changed, 2)
        self.assertEqual(second.changed, 0)
        self.assertEqual(second.processed, 2)
        self.assertEqual(write_queries(ctx), [])

    def test_coordinator_without_assignment_is_skipped(self):
        make_user(User.Role.COORDINATOR)

        summary = CoordinatorSweep().run_once(NOW)

        self.assertEqual(summary.outcomes[SKIPPED], 1)
        self.assertEqual(summary.failed, 0)

    def test_non_coordinators_are_not_scanned(self):
        make_user(User.Role.TEACHER)
        make_user(User.Role.STUDENT)

        summary = CoordinatorSweep().run_once(NOW)

        self.assertEqual(summary.processed, 0)

    def test_one_failing_user_does_not_stop_the_sweep(self):
        broken = make_coordinator(self.branch, valid_till=NOW - timedelta(days=1))
        healthy = make_coordinator(self.branch, valid_till=NOW - timedelta(days=1))

        class BrokenSweep(CoordinatorSweep):
            def process(self, user, now):
                outcome = super().process(user, now)
                if user.pk == broken.pk:
                    raise RuntimeError('mail relay down')
                return outcome

        with self.assertLogs('apps.notifications.scheduler', level='ERROR'):
            summary = BrokenSweep().run_once(NOW)

        broken.refresh_from_db()
        healthy.refresh_from_db()
        self.assertEqual(summary.processed, 2)
        self.assertEqual(summary.failed, 1)
        self.assertEqual(summary.outcomes[REVOKED], 1)
        self.assertIn('mail relay down', summary.failures[0]['error'])
        # The failed user's demotion was rolled back
        self.assertEqual(broken.role, User.Role.COORDINATOR)
        self.assertEqual(healthy.role, User.Role.TEACHER)

    @override_settings(COORDINATOR_SWEEP_INTERVAL_HOURS=2)
    def test_interval_follows_settings(self):
        self.assertEqual(CoordinatorSweep().default_interval, timedelta(hours=2))


# =============================================================================
# Grants and revocation
# =============================================================================

class AssignCoordinatorTests(TestCase):

    def setUp(self):
        self.branch, self.semester, self.subject = make_catalog()
        self.admin = make_user(User.Role.ADMIN)

    def test_teacher_is_promoted(self):
        teacher = make_user(User.Role.TEACHER)

        assignment = assign_coordinator(
            teacher, self.branch, semesters=[self.semester],
            valid_till=NOW + timedelta(days=30), grace_days=2,
            assigned_by=self.admin, now=NOW,
        )

        teacher.refresh_from_db()
        self.assertEqual(teacher.role, User.Role.COORDINATOR)
        self.assertEqual(assignment.base_role, User.Role.TEACHER)
        self.assertEqual(assignment.status, CoordinatorAssignment.Status.ACTIVE)
        self.assertEqual(assignment.assigned_by, self.admin)
        self.assertEqual(list(assignment.semesters.all()), [self.semester])

    def test_only_admins_can_assign(self):
        teacher = make_user(User.Role.TEACHER)
        hod = make_user(User.Role.HOD)

        with self.assertRaises(PermissionDenied):
            assign_coordinator(teacher, self.branch, assigned_by=hod, now=NOW)

    def test_students_cannot_be_promoted(self):
        student = make_user(User.Role.STUDENT)

        with self.assertRaises(ValidationError):
            assign_coordinator(student, self.branch, now=NOW)

    def test_disabled_user_cannot_be_promoted(self):
        teacher = make_user(User.Role.TEACHER, status=User.Status.DISABLED)

        with self.assertRaises(ValidationError):
            assign_coordinator(teacher, self.branch, now=NOW)

    def test_branch_required(self):
        teacher = make_user(User.Role.TEACHER)

        with self.assertRaises(ValidationError):
            assign_coordinator(teacher, None, now=NOW)

    def test_negative_grace_rejected(self):
        teacher = make_user(User.Role.TEACHER)

        with self.assertRaises(ValidationError):
            assign_coordinator(teacher, self.branch, grace_days=-1, now=NOW)

    def test_reassignment_keeps_base_role(self):
        hod = make_user(User.Role.HOD)
        assign_coordinator(hod, self.branch, valid_till=NOW + timedelta(days=1), now=NOW)

        assignment = assign_coordinator(
            hod, self.branch, valid_till=NOW + timedelta(days=60), now=NOW
        )

        self.assertEqual(assignment.base_role, User.Role.HOD)
        self.assertEqual(CoordinatorAssignment.objects.filter(user=hod).count(), 1)

    def test_already_expired_grant_is_revoked_immediately(self):
        teacher = make_user(User.Role.TEACHER)

        assignment = assign_coordinator(
            teacher, self.branch, valid_till=NOW - timedelta(days=5), now=NOW
        )

        teacher.refresh_from_db()
        self.assertEqual(teacher.role, User.Role.TEACHER)
        self.assertEqual(assignment.status, CoordinatorAssignment.Status.EXPIRED)
        self.assertEqual(assignment.revoked_at, NOW)

    def test_revoke(self):
        user = make_coordinator(self.branch, valid_till=NOW + timedelta(days=10))

        self.assertTrue(revoke_coordinator(user, NOW))
        self.assertFalse(revoke_coordinator(user, NOW))

        user.refresh_from_db()
        self.assertEqual(user.role, User.Role.TEACHER)
        self.assertEqual(user.coordinator.status, CoordinatorAssignment.Status.EXPIRED)

    def test_failed_demotion_leaves_role_unchanged(self):
        user = make_coordinator(self.branch, valid_till=NOW - timedelta(days=1))

        with mock.patch.object(CoordinatorAssignment, 'save', side_effect=DatabaseError('disk full')):
            with self.assertRaises(DatabaseError):
                apply_coordinator_status(user, NOW)

        user.refresh_from_db()
        self.assertEqual(user.role, User.Role.COORDINATOR)

        summary = CoordinatorSweep().run_once(NOW + timedelta(days=1))

        user.refresh_from_db()
        self.assertEqual(summary.outcomes[REVOKED], 1)
        self.assertEqual(user.role, User.Role.TEACHER)
        self.assertEqual(user.coordinator.status, CoordinatorAssignment.Status.EXPIRED)
        self.assertEqual(user.coordinator.revoked_at, NOW + timedelta(days=1))

    def test_extending_a_lapsed_grant_promotes_again(self):
        user = make_coordinator(self.branch, valid_till=NOW - timedelta(days=1))
        CoordinatorSweep().run_once(NOW)
        user.refresh_from_db()

        assignment = user.coordinator
        assignment.valid_till = NOW + timedelta(days=30)
        save_assignment(user, assignment, now=NOW)

        user.refresh_from_db()
        assignment.refresh_from_db()
        self.assertEqual(user.role, User.Role.COORDINATOR)
        self.assertEqual(assignment.base_role, User.Role.TEACHER)
        self.assertEqual(assignment.status, CoordinatorAssignment.Status.ACTIVE)
        self.assertIsNone(assignment.revoked_at)

    def test_saving_an_expired_grant_demotes(self):
        user = make_coordinator(
            self.branch, valid_till=NOW + timedelta(days=10), base_role=User.Role.HOD
        )

        assignment = user.coordinator
        assignment.valid_till = NOW - timedelta(days=2)
        save_assignment(user, assignment, now=NOW)

        user.refresh_from_db()
        assignment.refresh_from_db()
        self.assertEqual(user.role, User.Role.HOD)
        self.assertEqual(assignment.status, CoordinatorAssignment.Status.EXPIRED)
        self.assertEqual(assignment.revoked_at, NOW)

    def test_new_grant_stamps_admin_and_records_base_role(self):
        hod = make_user(User.Role.HOD)

        assignment = save_assignment(
            hod,
            CoordinatorAssignment(user=hod, branch=self.branch, valid_till=NOW + timedelta(days=5)),
            assigned_by=self.admin,
            now=NOW,
        )

        hod.refresh_from_db()
        self.assertEqual(hod.role, User.Role.COORDINATOR)
        self.assertEqual(assignment.base_role, User.Role.HOD)
        self.assertEqual(assignment.assigned_by, self.admin)

    def test_apply_ignores_non_coordinators(self):
        teacher = make_user(User.Role.TEACHER)
        self.assertEqual(apply_coordinator_status(teacher, NOW), SKIPPED)


# =============================================================================
# Scope, effective role and sections
# =============================================================================

class CoordinatorScopeTests(TestCase):

    def setUp(self):
        self.branch, self.semester, self.subject = make_catalog()
        _, self.other_semester, self.other_subject = make_catalog(semester_number=5)
        self.user = make_coordinator(
            self.branch, [self.semester], valid_till=NOW + timedelta(days=7), grace_days=2
        )

    def test_scope_covers_branch_and_semesters(self):
        scope = get_coordinator_scope(self.user, NOW)

        self.assertEqual(scope.branch_id, self.branch.pk)
        self.assertEqual(scope.semester_ids, frozenset([self.semester.pk]))
        self.assertTrue(can_coordinator_manage_subject(self.user, self.subject, NOW))
        self.assertFalse(can_coordinator_manage_subject(self.user, self.other_subject, NOW))

    def test_scope_kept_during_grace(self):
        during_grace = NOW + timedelta(days=8)
        self.assertIsNotNone(get_coordinator_scope(self.user, during_grace))
        self.assertEqual(get_effective_role(self.user, during_grace), User.Role.COORDINATOR)

    def test_lapsed_grant_loses_scope_before_the_sweep_runs(self):
        after_grace = NOW + timedelta(days=10)

        # Stored state still says coordinator/active
        self.assertEqual(self.user.role, User.Role.COORDINATOR)
        self.assertEqual(self.user.coordinator.status, CoordinatorAssignment.Status.ACTIVE)

        self.assertIsNone(get_coordinator_scope(self.user, after_grace))
        self.assertFalse(can_coordinator_manage_subject(self.user, self.subject, after_grace))
        self.assertEqual(get_effective_role(self.user, after_grace), User.Role.TEACHER)

    def test_cached_status_is_not_trusted(self):
        assignment = self.user.coordinator
        assignment.status = CoordinatorAssignment.Status.EXPIRED
        assignment.save(update_fields=['status'])

        self.assertEqual(get_effective_role(self.user, NOW), User.Role.COORDINATOR)
        self.assertTrue(can_coordinator_manage_subject(self.user, self.subject, NOW))

    def test_sections_follow_effective_role(self):
        self.assertTrue(has_section_access(self.user, 'activity', NOW))

        after_grace = NOW + timedelta(days=10)
        self.assertFalse(has_section_access(self.user, 'activity', after_grace))
        self.assertIn('materials', get_user_sections(self.user, after_grace))

    def test_explicit_permissions_replace_defaults(self):
        teacher = make_user(User.Role.TEACHER, permissions=['dashboard'])
        self.assertEqual(get_user_sections(teacher, NOW), ['dashboard'])
        self.assertFalse(has_section_access(teacher, 'tasks', NOW))

    def test_disabled_user_has_no_sections(self):
        teacher = make_user(User.Role.TEACHER, status=User.Status.DISABLED)
        self.assertFalse(has_section_access(teacher, 'dashboard', NOW))

"""
Tests for the task reminder sweep.
"""

from datetime import timedelta
from types import SimpleNamespace

from django.test import SimpleTestCase, TestCase, override_settings

from apps.accounts.models import User
from apps.notifications.models import Notification
from apps.tasks.models import Task, TaskRecipient
from apps.tasks.reminders import (
    BEFORE1,
    BEFORE3,
    OVERDUE,
    TaskReminderSweep,
    select_reminder_threshold,
    skipped_thresholds,
)
from apps.tasks.services import ensure_recipients

from .helpers import NOW, make_catalog, make_student, make_task, make_teacher


def blank_markers(**markers):
    values = {'reminder_before3': None, 'reminder_before1': None, 'reminder_overdue': None}
    values.update(markers)
    return SimpleNamespace(**values)


class SelectReminderThresholdTests(SimpleTestCase):

    def test_windows(self):
        cases = [
            (100, None),
            (72.01, None),
            (72, BEFORE3),
            (48, BEFORE3),
            (24.5, BEFORE3),
            (24, BEFORE1),
            (1, BEFORE1),
            (0, BEFORE1),
            (-0.5, OVERDUE),
            (-200, OVERDUE),
            (None, None),
        ]
        for hours_left, expected in cases:
            with self.subTest(hours_left=hours_left):
                self.assertEqual(select_reminder_threshold(hours_left, blank_markers()), expected)

    def test_sent_threshold_does_not_fire_again(self):
        task = blank_markers(reminder_before3=NOW)
        self.assertIsNone(select_reminder_threshold(48, task))
        self.assertEqual(select_reminder_threshold(12, task), BEFORE1)

    def test_missed_window_is_not_sent_late(self):
        task = blank_markers(reminder_before1=NOW)
        self.assertIsNone(select_reminder_threshold(12, task))

    def test_skipped_thresholds(self):
        self.assertEqual(skipped_thresholds(OVERDUE, blank_markers()), [BEFORE3, BEFORE1])
        self.assertEqual(
            skipped_thresholds(OVERDUE, blank_markers(reminder_before3=NOW)),
            [BEFORE1],
        )
        self.assertEqual(skipped_thresholds(BEFORE3, blank_markers()), [])


class TaskReminderSweepTests(TestCase):

    def setUp(self):
        self.branch, self.semester, self.subject = make_catalog()
        self.students = [make_student(self.branch, self.semester) for _ in range(3)]
        make_student(self.branch, self.semester, status=User.Status.DISABLED)
        self.teacher = make_teacher(self.subject)
        self.hod = make_teacher(self.subject, role=User.Role.HOD)

    def sweep(self, now):
        return TaskReminderSweep().run_once(now)

    def test_due_in_two_days_sends_three_day_reminder_once(self):
        task = make_task(self.subject, self.teacher, due_date=NOW + timedelta(hours=48))

        summary = self.sweep(NOW)

        task.refresh_from_db()
        self.assertEqual(task.reminder_before3, NOW)
        self.assertIsNone(task.reminder_before1)
        self.assertIsNone(task.reminder_overdue)
        self.assertEqual(summary.outcomes[BEFORE3], 1)

        notifications = Notification.objects.filter(related_id=task.pk)
        self.assertEqual(notifications.count(), 5)

        student_notes = notifications.filter(user__role=User.Role.STUDENT)
        self.assertEqual(
            set(student_notes.values_list('user_id', flat=True)),
            {s.pk for s in self.students},
        )
        note = student_notes.first()
        self.assertEqual(note.title, 'Task due soon')
        self.assertEqual(note.message, f'{task.title} is due in 3 days.')
        self.assertEqual(note.action_url, f'/subjects/{self.subject.pk}/tasks')
        self.assertEqual(note.related_type, Notification.RelatedType.TASK)
        self.assertFalse(note.is_read)

        staff_notes = notifications.exclude(user__role=User.Role.STUDENT)
        self.assertEqual(
            set(staff_notes.values_list('user_id', flat=True)),
            {self.teacher.pk, self.hod.pk},
        )
        self.assertEqual(staff_notes.first().title, 'Upcoming due date')
        self.assertEqual(staff_notes.first().action_url, f'/teacher/tasks/{task.pk}/submissions')

        second = self.sweep(NOW + timedelta(hours=1))

        self.assertEqual(Notification.objects.count(), 5)
        self.assertEqual(second.changed, 0)
        task.refresh_from_db()
        self.assertEqual(task.reminder_before3, NOW)

    def test_due_within_a_day_sends_one_day_reminder(self):
        task = make_task(self.subject, self.teacher, due_date=NOW + timedelta(hours=12))

        self.sweep(NOW)

        task.refresh_from_db()
        self.assertEqual(task.reminder_before1, NOW)
        self.assertIsNone(task.reminder_before3)
        self.assertEqual(
            Notification.objects.filter(title='Task due tomorrow').count(), 3
        )

    def test_overdue_reports_pending_count_to_staff(self):
        task = make_task(self.subject, self.teacher, due_date=NOW - timedelta(hours=1))
        ensure_recipients(task)
        TaskRecipient.objects.filter(task=task, student=self.students[0]).update(
            status=TaskRecipient.Status.SUBMITTED
        )

        summary = self.sweep(NOW)

        task.refresh_from_db()
        self.assertEqual(task.reminder_overdue, NOW)
        self.assertEqual(summary.outcomes[OVERDUE], 1)
        self.assertEqual(Notification.objects.filter(title='Task overdue').count(), 3)

        staff_notes = Notification.objects.filter(title='Overdue submissions')
        self.assertEqual(staff_notes.count(), 2)
        self.assertEqual(
            staff_notes.first().message,
            f'2 student(s) still pending for {task.title}.',
        )

    def test_missed_thresholds_are_not_backfilled(self):
        task = make_task(self.subject, self.teacher, due_date=NOW - timedelta(hours=1))

        self.sweep(NOW)

        task.refresh_from_db()
        self.assertIsNone(task.reminder_before3)
        self.assertIsNone(task.reminder_before1)
        self.assertEqual(task.reminder_overdue, NOW)
        self.assertEqual(Notification.objects.count(), 5)

    def test_markers_progress_and_never_reset(self):
        task = make_task(self.subject, self.teacher, due_date=NOW + timedelta(hours=48))
        runs = [
            NOW,
            NOW + timedelta(hours=1),
            NOW + timedelta(hours=30),
            NOW + timedelta(hours=31),
            NOW + timedelta(hours=49),
            NOW + timedelta(hours=72),
        ]

        fired = []
        for run_at in runs:
            summary = self.sweep(run_at)
            fired.extend(name for name in (BEFORE3, BEFORE1, OVERDUE) if summary.outcomes[name])

        task.refresh_from_db()
        self.assertEqual(fired, [BEFORE3, BEFORE1, OVERDUE])
        self.assertEqual(task.reminder_before3, runs[0])
        self.assertEqual(task.reminder_before1, runs[2])
        self.assertEqual(task.reminder_overdue, runs[4])
        self.assertEqual(Notification.objects.count(), 15)

    def test_far_future_task_is_unchanged(self):
        make_task(self.subject, self.teacher, due_date=NOW + timedelta(days=10))

        summary = self.sweep(NOW)

        self.assertEqual(summary.processed, 1)
        self.assertEqual(summary.changed, 0)
        self.assertEqual(Notification.objects.count(), 0)

    def test_recipients_backfilled_without_notifications(self):
        task = make_task(self.subject, self.teacher, due_date=NOW + timedelta(days=10))

        self.sweep(NOW)

        self.assertEqual(task.recipients.count(), 3)

    def test_only_active_tasks_with_due_date_are_scanned(self):
        make_task(self.subject, self.teacher, due_date=None)
        make_task(
            self.subject, self.teacher,
            due_date=NOW + timedelta(hours=10), status=Task.Status.DRAFT,
        )
        make_task(
            self.subject, self.teacher,
            due_date=NOW - timedelta(hours=10), status=Task.Status.ARCHIVED,
        )

        summary = self.sweep(NOW)

        self.assertEqual(summary.processed, 0)
        self.assertEqual(Notification.objects.count(), 0)

    def test_one_failing_task_does_not_stop_the_sweep(self):
        broken = make_task(self.subject, self.teacher, due_date=NOW + timedelta(hours=10))
        healthy = make_task(self.subject, self.teacher, due_date=NOW + timedelta(hours=20))

        class BrokenSweep(TaskReminderSweep):
            def process(self, task, now):
                outcome = super().process(task, now)
                if task.pk == broken.pk:
                    raise RuntimeError('notification insert failed')
                return outcome

        with self.assertLogs('apps.notifications.scheduler', level='ERROR'):
            summary = BrokenSweep().run_once(NOW)

        broken.refresh_from_db()
        healthy.refresh_from_db()
        self.assertEqual(summary.failed, 1)
        self.assertEqual(summary.outcomes[BEFORE1], 1)
        # Nothing from the failed task survives, so the next run retries it
        self.assertIsNone(broken.reminder_before1)
        self.assertFalse(Notification.objects.filter(related_id=broken.pk).exists())
        self.assertEqual(healthy.reminder_before1, NOW)

        retry = self.sweep(NOW + timedelta(hours=1))
        broken.refresh_from_db()
        self.assertEqual(retry.outcomes[BEFORE1], 1)
        self.assertEqual(broken.reminder_before1, NOW + timedelta(hours=1))

    def test_task_without_students_still_notifies_staff(self):
        _, _, empty_subject = make_catalog(code='IT', semester_number=7)
        self.teacher.assigned_subjects.add(empty_subject)
        task = make_task(empty_subject, self.teacher, due_date=NOW + timedelta(hours=5))

        self.sweep(NOW)

        task.refresh_from_db()
        self.assertEqual(task.reminder_before1, NOW)
        self.assertEqual(
            list(Notification.objects.values_list('user_id', flat=True)),
            [self.teacher.pk],
        )

    @override_settings(TASK_REMINDER_INTERVAL_MINUTES=15)
    def test_interval_follows_settings(self):
        self.assertEqual(TaskReminderSweep().default_interval, timedelta(minutes=15))

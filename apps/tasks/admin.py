"""
Admin configuration for tasks app.
"""

from django.contrib import admin
from django.db import transaction
from django.utils import timezone
from django.utils.html import format_html_join

from .models import Task, TaskRecipient
from .reminders import process_task_reminders


class TaskRecipientInline(admin.TabularInline):
    """Inline admin for recipients on task detail."""
    model = TaskRecipient
    extra = 0
    raw_id_fields = ('student',)
    readonly_fields = ('submitted_at',)


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    """Admin for Task model."""

    list_display = (
        'title', 'category', 'subject', 'created_by', 'status',
        'due_date', 'reminders_display', 'created_at'
    )
    list_filter = ('status', 'category', 'branch', 'semester', 'due_date')
    search_fields = ('title', 'description', 'subject__code', 'subject__name')
    ordering = ('-created_at',)
    date_hierarchy = 'created_at'
    raw_id_fields = ('created_by',)

    readonly_fields = (
        'branch', 'semester', 'created_at', 'updated_at',
        'reminder_before3', 'reminder_before1', 'reminder_overdue',
    )

    fieldsets = (
        (None, {
            'fields': ('title', 'description', 'category')
        }),
        ('Audience', {
            'fields': ('subject', 'branch', 'semester', 'created_by', 'created_by_role')
        }),
        ('Status & Due Date', {
            'fields': ('status', 'due_date')
        }),
        ('Reminders', {
            'fields': ('reminder_before3', 'reminder_before1', 'reminder_overdue'),
            'classes': ('collapse',),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    inlines = [TaskRecipientInline]
    actions = ['send_due_reminders']

    def reminders_display(self, obj):
        """Show which reminder batches have been sent."""
        marks = [
            ('3d', obj.reminder_before3),
            ('1d', obj.reminder_before1),
            ('overdue', obj.reminder_overdue),
        ]
        return format_html_join(
            ' ',
            '<span style="color: {};">{}</span>',
            (('#059669' if sent_at else '#9CA3AF', label) for label, sent_at in marks),
        )
    reminders_display.short_description = 'Reminders'

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('subject', 'created_by')

    def send_due_reminders(self, request, queryset):
        """Run the reminder check now for the selected tasks."""
        now = timezone.now()
        fired = 0
        for task in queryset:
            with transaction.atomic():
                outcome = process_task_reminders(task, now)
            if outcome not in ('unchanged', 'skipped'):
                fired += 1
        self.message_user(request, f'Reminders sent for {fired} task(s).')
    send_due_reminders.short_description = 'Send due reminders now'

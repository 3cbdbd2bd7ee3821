"""
Admin configuration for notifications app.
"""

from django.contrib import admin
from django.utils import timezone

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Read-mostly admin for notifications."""

    list_display = ('title', 'user', 'type', 'related_type', 'related_id', 'is_read', 'created_at')
    list_filter = ('type', 'related_type', 'is_read', 'created_at')
    search_fields = ('title', 'message', 'user__email')
    date_hierarchy = 'created_at'
    raw_id_fields = ('user', 'subject')
    readonly_fields = ('created_at', 'read_at')

    actions = ['mark_as_read']

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('user')

    def mark_as_read(self, request, queryset):
        count = queryset.filter(is_read=False).update(is_read=True, read_at=timezone.now())
        self.message_user(request, f'{count} notification(s) marked as read.')
    mark_as_read.short_description = 'Mark selected notifications as read'

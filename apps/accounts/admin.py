"""
Admin configuration for accounts app.
Enhanced with role/status filters and coordinator management.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.db import transaction
from django.utils import timezone
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .coordinators import (
    REVOKED,
    UPDATED,
    apply_coordinator_status,
    revoke_coordinator,
    save_assignment,
)
from .models import CoordinatorAssignment, User


class CoordinatorAssignmentInline(admin.StackedInline):
    """Coordinator grant shown on the user's page."""
    model = CoordinatorAssignment
    fk_name = 'user'
    extra = 0
    max_num = 1
    filter_horizontal = ('semesters',)
    readonly_fields = ('status', 'revoked_at', 'assigned_by', 'assigned_at')
    fields = (
        'base_role', 'branch', 'semesters', 'valid_till', 'grace_days',
        'status', 'revoked_at', 'assigned_by', 'assigned_at',
    )


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Custom User admin with email authentication and role management.
    """

    list_display = (
        'email', 'full_name_display', 'role_display',
        'status', 'branch', 'semester', 'created_at'
    )
    list_filter = ('role', 'status', 'branch', 'semester', 'is_staff')
    search_fields = ('email', 'first_name', 'last_name', 'enrollment_number', 'mobile')
    ordering = ('first_name', 'last_name')
    list_per_page = 25
    filter_horizontal = ('assigned_subjects', 'groups', 'user_permissions')

    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        (_('Personal Info'), {'fields': ('first_name', 'last_name', 'mobile', 'enrollment_number')}),
        (_('Academics'), {'fields': ('role', 'status', 'branch', 'semester', 'assigned_subjects')}),
        (_('Portal Sections'), {'fields': ('permissions',)}),
        (_('Permissions'), {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
            'classes': ('collapse',),
        }),
        (_('Important dates'), {
            'fields': ('last_login', 'created_at', 'updated_at'),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': (
                'email', 'first_name', 'last_name',
                'password1', 'password2', 'role', 'branch', 'semester'
            ),
        }),
    )

    readonly_fields = ('created_at', 'updated_at', 'last_login')
    inlines = [CoordinatorAssignmentInline]

    actions = ['refresh_coordinator_status', 'revoke_coordinator_role']

    def full_name_display(self, obj):
        return obj.get_full_name() or '-'
    full_name_display.short_description = 'Name'
    full_name_display.admin_order_field = 'first_name'

    def role_display(self, obj):
        """Display role with color coding."""
        colors = {
            'admin': '#7C3AED',        # Purple
            'hod': '#DC2626',          # Red
            'coordinator': '#EA580C',  # Orange
            'teacher': '#2563EB',      # Blue
            'student': '#059669',      # Green
        }
        color = colors.get(obj.role, '#6B7280')
        return format_html(
            '<span style="background-color: {}; color: white; padding: 2px 8px; '
            'border-radius: 4px; font-size: 11px; font-weight: 500;">{}</span>',
            color, obj.get_role_display()
        )
    role_display.short_description = 'Role'
    role_display.admin_order_field = 'role'

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('branch', 'semester')

    def save_formset(self, request, form, formset, change):
        """
        Keep the user's role in step with the coordinator inline.

        Deleting the grant demotes the user first; saving it (re)promotes or
        demotes according to the resolved status.
        """
        if formset.model is not CoordinatorAssignment:
            return super().save_formset(request, form, formset, change)

        user = form.instance
        now = timezone.now()
        instances = formset.save(commit=False)
        with transaction.atomic():
            for obj in formset.deleted_objects:
                revoke_coordinator(user, now)
                obj.delete()
            for instance in instances:
                save_assignment(user, instance, assigned_by=request.user, now=now)
            formset.save_m2m()

    # Admin actions
    def refresh_coordinator_status(self, request, queryset):
        """Re-resolve coordinator grants for the selected users."""
        now = timezone.now()
        revoked = updated = 0
        for user in queryset.filter(role=User.Role.COORDINATOR):
            outcome = apply_coordinator_status(user, now)
            if outcome == REVOKED:
                revoked += 1
            elif outcome == UPDATED:
                updated += 1
        self.message_user(request, f'{revoked} coordinator(s) revoked, {updated} status(es) updated.')
    refresh_coordinator_status.short_description = 'Refresh coordinator status'

    def revoke_coordinator_role(self, request, queryset):
        """Demote the selected coordinators immediately."""
        now = timezone.now()
        count = sum(1 for user in queryset if revoke_coordinator(user, now))
        self.message_user(request, f'{count} coordinator role(s) revoked.')
    revoke_coordinator_role.short_description = 'Revoke coordinator role'

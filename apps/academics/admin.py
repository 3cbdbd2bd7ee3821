"""
Admin configuration for academics app.
"""

from django.contrib import admin
from .models import Branch, Semester, Subject


@admin.register(Branch)
class BranchAdmin(admin.ModelAdmin):
    """Admin for Branch model."""

    list_display = ('name', 'code', 'is_active', 'student_count', 'created_at')
    list_filter = ('is_active',)
    search_fields = ('name', 'code')
    ordering = ('name',)

    readonly_fields = ('created_at', 'updated_at')

    fieldsets = (
        (None, {
            'fields': ('name', 'code', 'is_active')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )


@admin.register(Semester)
class SemesterAdmin(admin.ModelAdmin):
    list_display = ('number', 'name', 'is_active')
    list_filter = ('is_active',)
    ordering = ('number',)


@admin.register(Subject)
class SubjectAdmin(admin.ModelAdmin):
    """Admin for Subject model."""

    list_display = ('code', 'name', 'branch', 'semester', 'is_active')
    list_filter = ('branch', 'semester', 'is_active')
    search_fields = ('code', 'name')

    def get_queryset(self, request):
        """Optimize with select_related."""
        return super().get_queryset(request).select_related('branch', 'semester')

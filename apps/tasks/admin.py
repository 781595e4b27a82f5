"""
Admin configuration for tasks app.
"""

from django.contrib import admin
from django.utils.html import format_html
from .models import Task


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    """Admin for Task model."""

    list_display = (
        'id', 'title', 'assignee', 'reporter',
        'status_display', 'priority_display', 'start_date', 'end_date', 'created_at'
    )
    list_filter = ('status', 'priority', 'created_at', 'end_date')
    search_fields = ('title', 'description', 'assignee__email', 'reporter__email')
    ordering = ('-created_at',)
    date_hierarchy = 'created_at'
    list_select_related = ('assignee', 'reporter')
    raw_id_fields = ('assignee', 'reporter')

    readonly_fields = ('created_at', 'updated_at')

    fieldsets = (
        (None, {
            'fields': ('title', 'description')
        }),
        ('Assignment', {
            'fields': ('assignee', 'reporter')
        }),
        ('Status & Priority', {
            'fields': ('status', 'priority', 'start_date', 'end_date')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    STATUS_COLORS = {
        Task.Status.UPCOMING: '#6B7280',
        Task.Status.IN_PROGRESS: '#2563EB',
        Task.Status.COMPLETED: '#059669',
        Task.Status.OVERDUE: '#DC2626',
    }

    PRIORITY_COLORS = {
        Task.Priority.LOW: '#6B7280',
        Task.Priority.MEDIUM: '#D97706',
        Task.Priority.HIGH: '#DC2626',
    }

    @admin.display(description='Status', ordering='status')
    def status_display(self, obj):
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            self.STATUS_COLORS.get(obj.status, '#000'),
            obj.get_status_display()
        )

    @admin.display(description='Priority', ordering='priority')
    def priority_display(self, obj):
        return format_html(
            '<span style="color: {};">{}</span>',
            self.PRIORITY_COLORS.get(obj.priority, '#000'),
            obj.get_priority_display()
        )

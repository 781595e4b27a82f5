"""
Admin configuration for notifications app.

Notifications are written by the fan-out engine only, so the admin is
read-only apart from the read flag. Outbox intents can be redelivered
by hand.
"""

from django.contrib import admin, messages
from .models import FanoutIntent, Notification
from .services import FanoutError, deliver_intent


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'recipient', 'type', 'title', 'task', 'is_read', 'created_at')
    list_filter = ('type', 'is_read', 'created_at')
    search_fields = ('title', 'message', 'recipient__email')
    ordering = ('-created_at',)
    list_select_related = ('recipient', 'task')
    readonly_fields = (
        'recipient', 'type', 'title', 'message', 'payload', 'task', 'read_at', 'created_at'
    )
    actions = ['mark_read']

    def has_add_permission(self, request):
        return False

    @admin.action(description='Mark selected notifications as read')
    def mark_read(self, request, queryset):
        for notification in queryset.filter(is_read=False):
            notification.mark_as_read()


@admin.register(FanoutIntent)
class FanoutIntentAdmin(admin.ModelAdmin):
    list_display = ('id', 'kind', 'task', 'actor', 'attempts', 'created_at')
    list_filter = ('kind',)
    ordering = ('created_at',)
    list_select_related = ('task', 'actor')
    readonly_fields = ('kind', 'task', 'actor', 'extra', 'attempts', 'last_error', 'created_at')
    actions = ['redeliver']

    def has_add_permission(self, request):
        return False

    @admin.action(description='Redeliver selected intents now')
    def redeliver(self, request, queryset):
        intents = list(queryset.select_related('task__assignee', 'actor'))
        delivered = 0
        for intent in intents:
            try:
                deliver_intent(intent)
            except FanoutError as exc:
                self.message_user(request, f'Intent {intent.pk}: {exc}', level=messages.WARNING)
                continue
            delivered += 1
        self.message_user(request, f'{delivered} of {len(intents)} intent(s) delivered.')

"""
URL configuration for task_tracker project.
"""

from django.contrib import admin
from django.urls import path, include
from django.conf import settings

urlpatterns = [
    path('admin/', admin.site.urls),

    # API
    path('api/', include('apps.accounts.urls', namespace='accounts')),
    path('api/', include('apps.tasks.urls', namespace='tasks')),
    path('api/notifications/', include('apps.notifications.urls', namespace='notifications')),
    path('api/settings/', include('apps.app_settings.urls', namespace='app_settings')),
]

if settings.DEBUG and 'debug_toolbar' in settings.INSTALLED_APPS:
    import debug_toolbar
    urlpatterns = [
        path('__debug__/', include(debug_toolbar.urls)),
    ] + urlpatterns

# Admin site customization
admin.site.site_header = 'Task Tracker Administration'
admin.site.site_title = 'Task Tracker Admin'
admin.site.index_title = 'Welcome to Task Tracker Admin'

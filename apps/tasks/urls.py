"""
URL configuration for tasks app.

Mounted under /api/ by config.urls.
"""

from django.urls import path
from . import views

app_name = 'tasks'

urlpatterns = [
    path('dashboard/', views.dashboard_view, name='dashboard'),

    # Task CRUD
    path('tasks/', views.task_collection_view, name='task_list'),
    path('tasks/export/', views.task_export_view, name='task_export'),
    path('tasks/<int:pk>/', views.task_detail_view, name='task_detail'),

    # Status changes
    path('tasks/<int:pk>/status/', views.task_status_view, name='task_status'),
]

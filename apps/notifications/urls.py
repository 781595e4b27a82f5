"""
URL configuration for notifications app.
"""

from django.urls import path
from . import views

app_name = 'notifications'

urlpatterns = [
    path('', views.notification_list_view, name='notification_list'),
    path('read-all/', views.notification_read_all_view, name='notification_read_all'),
    path('<int:pk>/read/', views.notification_read_view, name='notification_read'),
    path('<int:pk>/', views.notification_delete_view, name='notification_delete'),
]

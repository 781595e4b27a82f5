"""
URL configuration for app_settings.
"""

from django.urls import path
from . import views

app_name = 'app_settings'

urlpatterns = [
    path('', views.setting_collection_view, name='setting_list'),
    path('<str:key>/', views.setting_detail_view, name='setting_detail'),
]

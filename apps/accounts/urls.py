"""
URL configuration for accounts app.

Includes:
- User listing (admins and managers)
- Profile URL
"""

from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    path('users/', views.user_list_view, name='user_list'),
    path('users/me/', views.profile_view, name='profile'),
]

"""
URL routing for authentication endpoints.
"""
from django.urls import path
from apps.rbac.views_auth import (
    RegistrationView, LoginView, RefreshTokenView, UserProfileView
)

app_name = 'auth'

urlpatterns = [
    # Registration and login
    path('register', RegistrationView.as_view(), name='register'),
    path('login', LoginView.as_view(), name='login'),

    # Token refresh
    path('refresh', RefreshTokenView.as_view(), name='refresh'),

    # User profile (GET and PUT on same endpoint)
    path('me', UserProfileView.as_view(), name='profile'),
]

"""
URL configuration for the Notes Hub API.
"""
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # API v1
    path('v1/', include('apps.core.urls')),

    # Authentication endpoints
    path('v1/auth/', include('apps.rbac.urls_auth')),  # Register, login, refresh, me

    # RBAC endpoints
    path('v1/admin/', include('apps.rbac.urls')),  # Users, roles, permissions

    # Content endpoints
    path('v1/notes/', include('apps.notes.urls')),
    path('v1/files/', include('apps.files.urls')),
]

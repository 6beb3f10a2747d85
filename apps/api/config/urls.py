"""
URL configuration for the DocuFlow project.
"""
from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)

urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # API (health check and token endpoints are public)
    path('api/v1/', include('apps.core.urls')),  # healthz, auth
    path('api/v1/', include('apps.documents.urls')),  # documents, patient views
    path('api/v1/', include('apps.contractors.urls')),  # contractor registry
    path('api/v1/', include('apps.files.urls')),  # clinic file library

    # API Schema
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/schema/swagger-ui/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/schema/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]

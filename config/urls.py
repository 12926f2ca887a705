"""
URL configuration for the clinic platform API.
"""
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # Authentication endpoints (no tenant context)
    path('v1/auth/', include('apps.rbac.urls_auth')),  # login, me

    # Platform operator endpoints (principals without a tenant)
    path('v1/platform/', include('apps.tenants.urls_platform')),

    # Tenant-scoped endpoints
    path('v1/', include('apps.tenants.urls')),  # current tenant
    path('v1/', include('apps.rbac.urls')),  # users, permissions, role defaults
    path('v1/', include('apps.patients.urls')),  # patients
]

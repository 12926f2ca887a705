"""
URL configuration for platform operator endpoints.
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from apps.tenants.views import PlatformTenantViewSet

app_name = 'platform'

router = DefaultRouter()
router.register(r'tenants', PlatformTenantViewSet, basename='tenant')

urlpatterns = [
    path('', include(router.urls)),
]

"""
RBAC API URLs.

Provides endpoints for:
- Users of the current tenant and their direct permission grants
- The permission catalog and role defaults
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from apps.rbac.views import PermissionListView, RolePermissionsView, UserViewSet

app_name = 'rbac'

router = DefaultRouter()
router.register(r'users', UserViewSet, basename='user')

urlpatterns = [
    path('', include(router.urls)),
    path('permissions', PermissionListView.as_view(), name='permission-list'),
    path('roles/<str:role>/permissions', RolePermissionsView.as_view(), name='role-permissions'),
]

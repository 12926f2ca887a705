"""
URL configuration for tenant endpoints.
"""
from django.urls import path
from apps.tenants.views import CurrentTenantView

app_name = 'tenants'

urlpatterns = [
    path('tenant', CurrentTenantView.as_view(), name='current-tenant'),
]

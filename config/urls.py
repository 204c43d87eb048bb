"""
URL configuration for ClientDesk.
"""
from django.http import JsonResponse
from django.urls import path, include


def health(request):
    return JsonResponse({'status': 'ok'})


urlpatterns = [
    path('health', health, name='health'),

    # API v1
    path('api/v1/rbac/', include('apps.rbac.urls')),  # Roles, permissions, overrides, audit
    path('api/v1/companies/', include('apps.companies.urls')),  # Owner-only company freeze
]

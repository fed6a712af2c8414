"""
URL configuration for the stock request and loan service.
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def health_check(request):
    """Health check endpoint for container orchestration."""
    return JsonResponse({'status': 'healthy', 'service': 'gudang-api'})


urlpatterns = [
    path('admin/', admin.site.urls),
    path('health', health_check, name='health-check'),
    path('api/', include('accounts.urls')),
    path('api/', include('inventory.urls')),
    path('api/', include('requisitions.urls')),
    path('api/', include('loans.urls')),
    path('api/', include('notifications.urls')),
]

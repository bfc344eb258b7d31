"""
URL configuration for the clinic operations API.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)
from apps.core.observability.health import HealthzView, ReadyzView

urlpatterns = [
    # Health checks (no auth required)
    path('healthz', HealthzView.as_view(), name='healthz'),
    path('readyz', ReadyzView.as_view(), name='readyz'),

    # Admin
    path('admin/', admin.site.urls),

    # Private API (authentication required)
    path('api/', include('apps.core.urls')),  # Core API (metrics, current user)
    path('api/v1/', include('apps.authz.urls')),  # Authz API (users, doctors)
    path('api/v1/clinical/', include('apps.clinical.urls')),  # Patients, services, appointments
    path('api/v1/payments/', include('apps.payments.urls')),  # Clinic invoices
    path('api/v1/inventory/', include('apps.inventory.urls')),  # Garment stock, purchases, sales, returns
    path('api/v1/cash/', include('apps.cash.urls')),  # Daily cash closings

    # API Schema
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/schema/swagger-ui/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/schema/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]

# Serve static files in development
if settings.DEBUG:
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)

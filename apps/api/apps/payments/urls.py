"""
Payments URLs

The viewset sits at the include root, so SimpleRouter is used: the
DefaultRouter API root view would shadow the list route.
"""
from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import PaymentViewSet

router = SimpleRouter()
router.register(r'', PaymentViewSet, basename='payment')

urlpatterns = [
    path('', include(router.urls)),
]

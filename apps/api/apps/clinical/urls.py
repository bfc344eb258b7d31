"""
Clinical URLs - Appointments, Patients, Services
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import AppointmentViewSet, PatientViewSet, ServiceViewSet

router = DefaultRouter()
router.register(r'appointments', AppointmentViewSet, basename='appointment')
router.register(r'patients', PatientViewSet, basename='patient')
router.register(r'services', ServiceViewSet, basename='service')

urlpatterns = [
    path('', include(router.urls)),
]

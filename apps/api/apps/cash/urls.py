"""
Cash URLs - Closings and income report
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import CashClosingViewSet, IncomeReportView

router = DefaultRouter()
router.register(r'closings', CashClosingViewSet, basename='cash-closing')

urlpatterns = [
    path('reports/income/', IncomeReportView.as_view(), name='cash-income-report'),
    path('', include(router.urls)),
]

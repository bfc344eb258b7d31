"""
Inventory URLs - Products, Movements, Purchases, Sales, Returns, Adjustments
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    AdjustmentView,
    InventorySaleViewSet,
    ProductReturnViewSet,
    ProductViewSet,
    PurchaseViewSet,
    StockMovementViewSet,
)

router = DefaultRouter()
router.register(r'products', ProductViewSet, basename='product')
router.register(r'movements', StockMovementViewSet, basename='stock-movement')
router.register(r'purchases', PurchaseViewSet, basename='purchase')
router.register(r'sales', InventorySaleViewSet, basename='inventory-sale')
router.register(r'returns', ProductReturnViewSet, basename='product-return')

urlpatterns = [
    path('adjustments/', AdjustmentView.as_view(), name='inventory-adjustment'),
    path('', include(router.urls)),
]

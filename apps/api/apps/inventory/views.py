"""
Inventory views.

- GET  /api/v1/inventory/products/
- GET  /api/v1/inventory/movements/?product=
- POST /api/v1/inventory/adjustments/                  (Admin, Médico)
- GET/POST /api/v1/inventory/purchases/
- POST /api/v1/inventory/purchases/{id}/confirm/
- POST /api/v1/inventory/purchases/{id}/cancel/        (Admin, Médico)
- GET/POST /api/v1/inventory/sales/
- POST /api/v1/inventory/sales/{id}/cancel/            (Admin)
- GET/POST /api/v1/inventory/returns/?estado=pendiente
- POST /api/v1/inventory/returns/{id}/approve/         (Admin, Médico)
- POST /api/v1/inventory/returns/{id}/reject/          (Admin, Médico)
"""
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.views import APIView

from apps.authz.context import AuthContext
from apps.authz.permissions import IsStaffMember
from apps.core.views import action_response

from . import actions
from .models import InventorySale, Product, ProductReturn, Purchase, StockMovement
from .serializers import (
    InventorySaleSerializer,
    ProductReturnSerializer,
    ProductSerializer,
    PurchaseSerializer,
    StockMovementSerializer,
)


def _ctx(request):
    return AuthContext.from_user(request.user)


class ProductViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ProductSerializer
    permission_classes = [IsStaffMember]

    def get_queryset(self):
        queryset = Product.objects.all()
        if self.request.query_params.get('activo') is not None:
            queryset = queryset.filter(activo=self.request.query_params['activo'].lower() == 'true')
        return queryset.order_by('tipo', 'talla')


class StockMovementViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = StockMovementSerializer
    permission_classes = [IsStaffMember]

    def get_queryset(self):
        queryset = StockMovement.objects.select_related('product')
        if self.request.query_params.get('product'):
            queryset = queryset.filter(product_id=self.request.query_params['product'])
        return queryset.order_by('-created_at')


class AdjustmentView(APIView):
    permission_classes = [IsStaffMember]

    def post(self, request):
        result = actions.create_inventory_adjustment(_ctx(request), request.data)
        return action_response(result, success_status=status.HTTP_201_CREATED)


class PurchaseViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = PurchaseSerializer
    permission_classes = [IsStaffMember]

    def get_queryset(self):
        queryset = Purchase.objects.prefetch_related('items')
        if self.request.query_params.get('estado'):
            queryset = queryset.filter(estado=self.request.query_params['estado'])
        return queryset.order_by('-secuencia')

    def create(self, request):
        result = actions.create_purchase(_ctx(request), request.data)
        return action_response(result, success_status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def confirm(self, request, pk=None):
        return action_response(actions.confirm_purchase_reception(_ctx(request), pk))

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        return action_response(actions.cancel_purchase(_ctx(request), pk, request.data))


class InventorySaleViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = InventorySaleSerializer
    permission_classes = [IsStaffMember]

    def get_queryset(self):
        queryset = InventorySale.objects.prefetch_related('items', 'methods')
        if self.request.query_params.get('fecha'):
            queryset = queryset.filter(created_at__date=self.request.query_params['fecha'])
        return queryset.order_by('-secuencia')

    def create(self, request):
        result = actions.create_inventory_sale(_ctx(request), request.data)
        return action_response(result, success_status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        return action_response(actions.cancel_inventory_sale(_ctx(request), pk, request.data))


class ProductReturnViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = ProductReturnSerializer
    permission_classes = [IsStaffMember]

    def get_queryset(self):
        queryset = ProductReturn.objects.all()
        if self.request.query_params.get('estado'):
            queryset = queryset.filter(estado=self.request.query_params['estado'])
        return queryset.order_by('-secuencia')

    def create(self, request):
        result = actions.create_return(_ctx(request), request.data)
        return action_response(result, success_status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        return action_response(actions.approve_return(_ctx(request), pk, request.data))

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        return action_response(actions.reject_return(_ctx(request), pk, request.data))

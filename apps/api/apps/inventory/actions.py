"""
Inventory actions: purchases, sales, returns and adjustments.

Same contract as every other actions module: identity first, payload
shape second, then the service; the outcome is an ActionResult.
"""
from apps.authz.context import require_authenticated
from apps.core import revalidation
from apps.core.results import run_action
from apps.core.validation import validated_data

from . import services
from .serializers import (
    AdjustmentCreateSerializer,
    InventorySaleCreateSerializer,
    JustificationSerializer,
    PurchaseCreateSerializer,
    ReturnCreateSerializer,
    ReturnReviewSerializer,
)


def create_purchase(ctx, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(PurchaseCreateSerializer, payload)
        purchase = services.create_purchase(
            ctx,
            proveedor=data['proveedor'],
            fecha_factura=data['fecha_factura'],
            numero_factura=data['numero_factura'],
            factura_path=data['factura_path'],
            items=[dict(item) for item in data['items']],
            notas=data['notas'],
        )
        revalidation.revalidate(revalidation.PURCHASES)
        return {'id': str(purchase.id), 'numero_compra': purchase.numero_compra, 'total': str(purchase.total)}
    return run_action('create_purchase', operation)


def confirm_purchase_reception(ctx, purchase_id):
    def operation():
        purchase = services.confirm_purchase_reception(ctx, purchase_id)
        revalidation.revalidate(revalidation.PURCHASES, revalidation.PRODUCTS)
        return {'id': str(purchase.id), 'estado': purchase.estado}
    return run_action('confirm_purchase_reception', operation)


def cancel_purchase(ctx, purchase_id, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(JustificationSerializer, payload)
        purchase = services.cancel_purchase(ctx, purchase_id, data['justificacion'])
        revalidation.revalidate(revalidation.PURCHASES, revalidation.PRODUCTS)
        return {'id': str(purchase.id), 'estado': purchase.estado}
    return run_action('cancel_purchase', operation)


def create_inventory_sale(ctx, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(InventorySaleCreateSerializer, payload)
        sale = services.create_inventory_sale(
            ctx,
            items=[dict(item) for item in data['items']],
            methods=[dict(method) for method in data['methods']],
            patient_id=data['patient_id'],
            receptor_efectivo_id=data['receptor_efectivo_id'],
            notas=data['notas'],
        )
        revalidation.revalidate(revalidation.SALES, revalidation.PRODUCTS)
        return {'id': str(sale.id), 'numero_venta': sale.numero_venta, 'total': str(sale.total)}
    return run_action('create_inventory_sale', operation)


def cancel_inventory_sale(ctx, sale_id, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(JustificationSerializer, payload)
        sale = services.cancel_inventory_sale(ctx, sale_id, data['justificacion'])
        revalidation.revalidate(revalidation.SALES, revalidation.PRODUCTS)
        return {'id': str(sale.id), 'estado': sale.estado}
    return run_action('cancel_inventory_sale', operation)


def create_return(ctx, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(ReturnCreateSerializer, payload)
        product_return = services.create_return(ctx, **data)
        revalidation.revalidate(revalidation.RETURNS)
        return {'id': str(product_return.id), 'numero_devolucion': product_return.numero_devolucion}
    return run_action('create_return', operation)


def approve_return(ctx, return_id, payload=None):
    def operation():
        require_authenticated(ctx)
        data = validated_data(ReturnReviewSerializer, payload)
        product_return = services.approve_return(ctx, return_id, data['notas'])
        revalidation.revalidate(revalidation.RETURNS, revalidation.PRODUCTS)
        return {'id': str(product_return.id), 'estado': product_return.estado}
    return run_action('approve_return', operation)


def reject_return(ctx, return_id, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(ReturnReviewSerializer, payload)
        product_return = services.reject_return(ctx, return_id, data['notas'])
        revalidation.revalidate(revalidation.RETURNS)
        return {'id': str(product_return.id), 'estado': product_return.estado}
    return run_action('reject_return', operation)


def create_inventory_adjustment(ctx, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(AdjustmentCreateSerializer, payload)
        movement = services.create_inventory_adjustment(ctx, **data)
        revalidation.revalidate(revalidation.PRODUCTS)
        return {
            'id': str(movement.id),
            'stock_antes': movement.stock_antes,
            'stock_despues': movement.stock_despues,
        }
    return run_action('create_inventory_adjustment', operation)

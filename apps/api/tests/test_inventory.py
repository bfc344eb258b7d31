"""
Tests for inventory: purchases, sales, returns and adjustments.

Every stock change goes through apply_stock_change and leaves a
StockMovement; a failure on any line of an operation rolls back all of it.
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import InsufficientStock, InvalidState, NotFound, Unauthorized, ValidationFailed
from apps.inventory.models import (
    InventorySale,
    InventorySaleStatusChoices,
    ProductReturn,
    Purchase,
    PurchaseStatusChoices,
    ReturnStatusChoices,
    StockBucketChoices,
    StockMovement,
    StockMovementTypeChoices,
)
from apps.inventory.services import (
    apply_stock_change,
    approve_return,
    cancel_inventory_sale,
    cancel_purchase,
    confirm_purchase_reception,
    create_inventory_adjustment,
    create_inventory_sale,
    create_purchase,
    create_return,
    lock_products,
    reject_return,
)

from helpers import cash

JUSTIFICATION = 'Factura registrada con datos incorrectos'


def purchase_for(ctx, lines, **kwargs):
    kwargs.setdefault('proveedor', 'Medias Andinas S.A.S.')
    kwargs.setdefault('fecha_factura', timezone.localdate())
    kwargs.setdefault('numero_factura', 'F-7781')
    kwargs.setdefault('factura_path', 'compras/f-7781.jpg')
    items = [
        {'product_id': product.id, 'cantidad': cantidad, 'costo_unitario': Decimal('60000.00')}
        for product, cantidad in lines
    ]
    return create_purchase(ctx, items=items, **kwargs)


def sell(ctx, lines, methods=None):
    items = [{'product_id': product.id, 'cantidad': cantidad} for product, cantidad in lines]
    total = sum((product.precio * cantidad for product, cantidad in lines), Decimal('0.00'))
    return create_inventory_sale(ctx, items=items, methods=methods or cash(total))


def stock_of(product):
    product.refresh_from_db()
    return product.stock_normal


@pytest.mark.django_db
class TestStockPrimitive:

    def test_refuses_negative_stock(self, admin_user, product):
        with pytest.raises(InsufficientStock):
            with transaction.atomic():
                apply_stock_change(product.id, StockBucketChoices.NORMAL, -11,
                                   StockMovementTypeChoices.AJUSTE_SALIDA, admin_user.id)
        assert stock_of(product) == 10
        assert StockMovement.objects.count() == 0

    def test_movement_records_before_and_after(self, admin_user, product):
        with transaction.atomic():
            movement = apply_stock_change(product.id, StockBucketChoices.NORMAL, -3,
                                          StockMovementTypeChoices.AJUSTE_SALIDA, admin_user.id)
        assert (movement.stock_antes, movement.stock_despues, movement.cantidad) == (10, 7, -3)

    def test_lock_products_reports_missing_ids(self, product):
        with transaction.atomic():
            with pytest.raises(NotFound):
                lock_products([product.id, 'c2f0e1a4-0000-4000-8000-000000000000'])

    def test_lock_products_returns_map_by_id(self, product, other_product):
        with transaction.atomic():
            locked = lock_products([other_product.id, product.id, product.id])
        assert set(locked) == {str(product.id), str(other_product.id)}

    @pytest.mark.parametrize('stock_normal, bajo', [(2, True), (3, False), (4, False)])
    def test_low_stock_is_strictly_below_threshold(self, product, stock_normal, bajo):
        product.stock_normal = stock_normal
        assert product.stock_bajo is bajo


@pytest.mark.django_db
class TestPurchases:

    def test_purchase_has_no_stock_effect_until_received(self, secretaria_ctx, product):
        purchase = purchase_for(secretaria_ctx, [(product, 5)])

        assert purchase.numero_compra == 'COM-000001'
        assert purchase.estado == PurchaseStatusChoices.PENDIENTE_RECEPCION
        assert purchase.total == Decimal('300000.00')
        assert stock_of(product) == 10

    @pytest.mark.parametrize('quantities', [(1, 1), (7, 2), (20, 9)])
    def test_receive_then_cancel_restores_stock(self, admin_ctx, product, other_product, quantities):
        """
        Scenario: purchase received, then voided.

        Expected: every product ends exactly where it started.
        """
        purchase = purchase_for(admin_ctx, list(zip([product, other_product], quantities)))

        confirm_purchase_reception(admin_ctx, purchase.id)
        assert stock_of(product) == 10 + quantities[0]
        assert stock_of(other_product) == 4 + quantities[1]

        cancel_purchase(admin_ctx, purchase.id, JUSTIFICATION)
        assert stock_of(product) == 10
        assert stock_of(other_product) == 4
        assert StockMovement.objects.filter(tipo=StockMovementTypeChoices.ANULACION_COMPRA).count() == 2

    def test_cancel_pending_purchase_leaves_stock(self, admin_ctx, product):
        purchase = purchase_for(admin_ctx, [(product, 5)])

        cancelled = cancel_purchase(admin_ctx, purchase.id, JUSTIFICATION)

        assert cancelled.estado == PurchaseStatusChoices.ANULADO
        assert stock_of(product) == 10
        assert StockMovement.objects.count() == 0

    def test_cancel_fails_when_units_were_sold(self, admin_ctx, secretaria_ctx, product):
        purchase = purchase_for(admin_ctx, [(product, 5)])
        confirm_purchase_reception(admin_ctx, purchase.id)
        sell(secretaria_ctx, [(product, 12)])
        assert stock_of(product) == 3

        with pytest.raises(InsufficientStock):
            cancel_purchase(admin_ctx, purchase.id, JUSTIFICATION)

        purchase.refresh_from_db()
        assert purchase.estado == PurchaseStatusChoices.RECIBIDO
        assert stock_of(product) == 3

    def test_receive_twice_is_rejected(self, admin_ctx, product):
        purchase = purchase_for(admin_ctx, [(product, 2)])
        confirm_purchase_reception(admin_ctx, purchase.id)
        with pytest.raises(InvalidState):
            confirm_purchase_reception(admin_ctx, purchase.id)
        assert stock_of(product) == 12

    def test_invoice_photo_is_required(self, admin_ctx, product):
        with pytest.raises(ValidationFailed) as exc_info:
            purchase_for(admin_ctx, [(product, 1)], factura_path='  ')
        assert 'factura_path' in exc_info.value.field_errors

    def test_future_invoice_date(self, admin_ctx, product):
        with pytest.raises(ValidationFailed) as exc_info:
            purchase_for(admin_ctx, [(product, 1)], fecha_factura=timezone.localdate() + timedelta(days=1))
        assert 'fecha_factura' in exc_info.value.field_errors

    def test_secretaria_cannot_cancel(self, admin_ctx, secretaria_ctx, product):
        purchase = purchase_for(admin_ctx, [(product, 1)])
        with pytest.raises(Unauthorized):
            cancel_purchase(secretaria_ctx, purchase.id, JUSTIFICATION)

    def test_cancel_requires_justification(self, admin_ctx, product):
        purchase = purchase_for(admin_ctx, [(product, 1)])
        with pytest.raises(ValidationFailed):
            cancel_purchase(admin_ctx, purchase.id, 'corto')
        assert Purchase.objects.get(pk=purchase.id).estado == PurchaseStatusChoices.PENDIENTE_RECEPCION


@pytest.mark.django_db
class TestInventorySales:

    def test_sale_snapshots_price_and_moves_stock(self, secretaria_ctx, product):
        sale = sell(secretaria_ctx, [(product, 2)])

        assert sale.numero_venta == 'VM-000001'
        assert sale.total == Decimal('240000.00')
        item = sale.items.get()
        assert (item.codigo, item.precio_unitario, item.cantidad) == ('MED-MUS-M', Decimal('120000.00'), 2)
        assert stock_of(product) == 8
        movement = StockMovement.objects.get(tipo=StockMovementTypeChoices.VENTA)
        assert movement.referencia_id == str(sale.id)

    def test_insufficient_stock_rolls_back_every_line(self, secretaria_ctx, product, other_product):
        """
        Scenario: two lines, the second asks for more than available.

        Expected: InsufficientStock; the first line's stock is untouched,
        no sale stored and the next sale still gets VM-000001.
        """
        with pytest.raises(InsufficientStock):
            sell(secretaria_ctx, [(product, 2), (other_product, 5)])

        assert stock_of(product) == 10
        assert stock_of(other_product) == 4
        assert InventorySale.objects.count() == 0
        assert sell(secretaria_ctx, [(product, 1)]).numero_venta == 'VM-000001'

    def test_tender_must_match_product_prices(self, secretaria_ctx, product):
        with pytest.raises(ValidationFailed) as exc_info:
            sell(secretaria_ctx, [(product, 1)], methods=cash(Decimal('100000.00')))
        assert 'methods' in exc_info.value.field_errors
        assert stock_of(product) == 10

    def test_inactive_product_cannot_be_sold(self, secretaria_ctx, product):
        product.activo = False
        product.save()
        with pytest.raises(ValidationFailed):
            sell(secretaria_ctx, [(product, 1)])

    def test_cancel_sale_restores_stock(self, admin_ctx, secretaria_ctx, product):
        sale = sell(secretaria_ctx, [(product, 3)])

        with pytest.raises(Unauthorized):
            cancel_inventory_sale(secretaria_ctx, sale.id, JUSTIFICATION)

        cancelled = cancel_inventory_sale(admin_ctx, sale.id, JUSTIFICATION)
        assert cancelled.estado == InventorySaleStatusChoices.ANULADO
        assert stock_of(product) == 10

        with pytest.raises(InvalidState):
            cancel_inventory_sale(admin_ctx, sale.id, JUSTIFICATION)


@pytest.mark.django_db
class TestReturns:

    MOTIVO = 'Talla equivocada, la paciente pidió talla L'

    @pytest.fixture
    def sale(self, secretaria_ctx, product):
        return sell(secretaria_ctx, [(product, 3)])

    def request_return(self, ctx, sale, cantidad=2):
        return create_return(
            ctx,
            sale_id=sale.id,
            sale_item_id=sale.items.get().id,
            cantidad=cantidad,
            motivo=self.MOTIVO,
            metodo_reembolso='efectivo',
        )

    def test_request_has_no_stock_effect(self, secretaria_ctx, sale, product):
        product_return = self.request_return(secretaria_ctx, sale)

        assert product_return.numero_devolucion == 'DEV-000001'
        assert product_return.estado == ReturnStatusChoices.PENDIENTE
        product.refresh_from_db()
        assert (product.stock_normal, product.stock_devoluciones) == (7, 0)

    def test_cannot_return_more_than_sold(self, secretaria_ctx, sale):
        self.request_return(secretaria_ctx, sale, cantidad=2)
        with pytest.raises(ValidationFailed) as exc_info:
            self.request_return(secretaria_ctx, sale, cantidad=2)
        assert 'cantidad' in exc_info.value.field_errors

    def test_short_reason_is_rejected(self, secretaria_ctx, sale):
        with pytest.raises(ValidationFailed) as exc_info:
            create_return(secretaria_ctx, sale.id, sale.items.get().id, 1, 'talla', 'efectivo')
        assert 'motivo' in exc_info.value.field_errors

    def test_approval_moves_units_to_returns_bucket(self, secretaria_ctx, medico_ctx, sale, product):
        product_return = self.request_return(secretaria_ctx, sale)

        approved = approve_return(medico_ctx, product_return.id)

        assert approved.estado == ReturnStatusChoices.APROBADA
        product.refresh_from_db()
        assert (product.stock_normal, product.stock_devoluciones) == (7, 2)

    def test_creator_cannot_review_own_return(self, admin_ctx, second_admin_ctx, sale, product):
        """
        Scenario: an admin registers a return and tries to approve it.

        Expected: InvalidState; a different admin can approve it.
        """
        product_return = self.request_return(admin_ctx, sale)

        with pytest.raises(InvalidState):
            approve_return(admin_ctx, product_return.id)

        approve_return(second_admin_ctx, product_return.id)
        product.refresh_from_db()
        assert product.stock_devoluciones == 2

    def test_secretaria_cannot_approve(self, secretaria_ctx, sale):
        product_return = self.request_return(secretaria_ctx, sale)
        with pytest.raises(Unauthorized):
            approve_return(secretaria_ctx, product_return.id)

    def test_rejection_needs_notes_and_frees_quantity(self, secretaria_ctx, admin_ctx, sale, product):
        product_return = self.request_return(secretaria_ctx, sale)

        with pytest.raises(ValidationFailed) as exc_info:
            reject_return(admin_ctx, product_return.id, '')
        assert 'notas' in exc_info.value.field_errors

        rejected = reject_return(admin_ctx, product_return.id, 'La prenda fue usada y no es revendible')
        assert rejected.estado == ReturnStatusChoices.RECHAZADA
        product.refresh_from_db()
        assert product.stock_devoluciones == 0

        # rejected quantity can be requested again
        self.request_return(secretaria_ctx, sale, cantidad=3)
        assert ProductReturn.objects.count() == 2

    def test_reviewed_return_cannot_be_reviewed_again(self, secretaria_ctx, admin_ctx, sale):
        product_return = self.request_return(secretaria_ctx, sale)
        approve_return(admin_ctx, product_return.id)
        with pytest.raises(InvalidState):
            reject_return(admin_ctx, product_return.id, 'La prenda fue usada y no es revendible')


    def test_refund_value_is_snapshotted(self, secretaria_ctx, sale, product):
        product_return = self.request_return(secretaria_ctx, sale)

        product.precio = Decimal('99000.00')
        product.save()

        product_return.refresh_from_db()
        assert product_return.monto_devolucion == Decimal('240000.00')

    def test_sale_with_approved_return_cannot_be_cancelled(self, secretaria_ctx, medico_ctx, admin_ctx, sale, product):
        """
        Scenario: 3 units sold, 2 returned and approved, then the sale is
        cancelled.

        Expected: InvalidState; total stock stays at the starting 10 units
        (7 normal + 2 returns + 1 still with the customer).
        """
        product_return = self.request_return(secretaria_ctx, sale)
        approve_return(medico_ctx, product_return.id)

        with pytest.raises(InvalidState):
            cancel_inventory_sale(admin_ctx, sale.id, JUSTIFICATION)

        sale.refresh_from_db()
        assert sale.estado == InventorySaleStatusChoices.ACTIVO
        product.refresh_from_db()
        assert (product.stock_normal, product.stock_devoluciones) == (7, 2)

    def test_pending_return_blocks_cancellation_until_rejected(self, secretaria_ctx, admin_ctx, sale, product):
        product_return = self.request_return(secretaria_ctx, sale)

        with pytest.raises(InvalidState) as exc_info:
            cancel_inventory_sale(admin_ctx, sale.id, JUSTIFICATION)
        assert exc_info.value.context['returns'] == 1

        reject_return(admin_ctx, product_return.id, 'La venta completa será anulada')
        cancel_inventory_sale(admin_ctx, sale.id, JUSTIFICATION)

        product.refresh_from_db()
        assert (product.stock_normal, product.stock_devoluciones) == (10, 0)

    def test_return_of_cancelled_sale_cannot_be_approved(self, secretaria_ctx, admin_ctx, sale, product):
        product_return = self.request_return(secretaria_ctx, sale)
        InventorySale.objects.filter(pk=sale.pk).update(estado=InventorySaleStatusChoices.ANULADO)

        with pytest.raises(InvalidState):
            approve_return(admin_ctx, product_return.id)

        product_return.refresh_from_db()
        assert product_return.estado == ReturnStatusChoices.PENDIENTE
        product.refresh_from_db()
        assert product.stock_devoluciones == 0


@pytest.mark.django_db
class TestAdjustments:


    def test_outgoing_adjustment(self, medico_ctx, product):
        movement = create_inventory_adjustment(
            medico_ctx, product.id, 2, 'salida', 'Dos unidades con defecto de costura'
        )
        assert movement.tipo == StockMovementTypeChoices.AJUSTE_SALIDA
        assert (movement.stock_antes, movement.stock_despues) == (10, 8)

    def test_incoming_adjustment_on_returns_bucket(self, admin_ctx, product):
        create_inventory_adjustment(
            admin_ctx, product.id, 4, 'entrada', 'Conteo físico encontró unidades devueltas',
            bucket=StockBucketChoices.DEVOLUCIONES,
        )
        product.refresh_from_db()
        assert (product.stock_normal, product.stock_devoluciones) == (10, 4)

    def test_adjustment_cannot_go_negative(self, admin_ctx, product):
        with pytest.raises(InsufficientStock):
            create_inventory_adjustment(admin_ctx, product.id, 11, 'salida', 'Conteo físico menor al registrado')
        assert stock_of(product) == 10

    def test_reason_is_required(self, admin_ctx, product):
        with pytest.raises(ValidationFailed) as exc_info:
            create_inventory_adjustment(admin_ctx, product.id, 1, 'salida', 'daño')
        assert 'razon' in exc_info.value.field_errors

    def test_secretaria_cannot_adjust(self, secretaria_ctx, product):
        with pytest.raises(Unauthorized):
            create_inventory_adjustment(secretaria_ctx, product.id, 1, 'salida', 'Conteo físico menor al registrado')

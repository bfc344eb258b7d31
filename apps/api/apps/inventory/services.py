"""
Inventory services: stock primitive, purchases, sales, returns and
adjustments.

TRANSACTION SAFETY:
- Every operation that moves stock runs in one transaction.atomic()
  block; a failure on any line rolls back all lines, the status change
  and the document number
- Product rows are locked in primary key order before any stock change,
  so two operations touching the same products cannot deadlock each other
- Stock never goes negative: apply_stock_change refuses the move
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone

from apps.authz.context import ELEVATED_ROLES, require_role, require_staff
from apps.authz.models import RoleChoices
from apps.clinical.models import Patient
from apps.core.db_errors import translate_integrity_error
from apps.core.exceptions import InsufficientStock, InvalidState, NotFound, ValidationFailed
from apps.core.models import SequenceNameChoices
from apps.core.numbering import format_document_number, next_sequence_value, retry_on_contention
from apps.core.observability import get_sanitized_logger, log_domain_event, metrics
from apps.core.observability.events import (
    log_consistency_checkpoint,
    log_status_transition,
    log_stock_movement,
)
from apps.core.observability.tracing import trace_span
from apps.core.validation import require_justification
from apps.payments.rules import compute_subtotal, money, validate_tender

from .models import (
    INVENTORY_SALE_TRANSITIONS,
    PURCHASE_TRANSITIONS,
    RETURN_TRANSITIONS,
    InventorySale,
    InventorySaleItem,
    InventorySaleMethod,
    InventorySaleStatusChoices,
    Product,
    ProductReturn,
    Purchase,
    PurchaseItem,
    PurchaseStatusChoices,
    RefundMethodChoices,
    ReturnStatusChoices,
    StockBucketChoices,
    StockMovement,
    StockMovementTypeChoices,
)

logger = get_sanitized_logger(__name__)

PURCHASE_PREFIX = 'COM'
SALE_PREFIX = 'VM'
RETURN_PREFIX = 'DEV'

PURCHASE_ROLES = frozenset({RoleChoices.ADMIN, RoleChoices.MEDICO, RoleChoices.SECRETARIA})


def _field_error(field, message):
    return ValidationFailed(message, field_errors={field: [message]})


def _lookup_for_update(model, pk, message):
    try:
        return model.objects.select_for_update().get(pk=pk)
    except (model.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFound(message)


# ============================================================================
# Stock primitive
# ============================================================================

def lock_products(product_ids):
    """
    Lock the given products in primary key order.

    Returns:
        {str(product_id): Product}

    Raises:
        NotFound: any id does not exist
    """
    wanted = sorted({str(pk) for pk in product_ids})
    try:
        products = list(
            Product.objects.select_for_update().filter(pk__in=wanted).order_by('pk')
        )
    except (ValueError, DjangoValidationError):
        raise NotFound('Producto no encontrado')
    found = {str(product.pk): product for product in products}
    missing = [pk for pk in wanted if pk not in found]
    if missing:
        raise NotFound('Producto no encontrado')
    return found


def apply_stock_change(
    product_id,
    bucket,
    delta,
    tipo,
    user_id,
    referencia_tipo='',
    referencia_id='',
    notas='',
):
    """
    Change one stock bucket of a product by `delta` and log the movement.

    Must run inside transaction.atomic(). The product row is locked (again,
    if the caller already locked it) for the rest of the transaction.

    Returns:
        StockMovement

    Raises:
        NotFound: unknown product
        InsufficientStock: the bucket would go negative
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError('apply_stock_change() requires an atomic block')
    if delta == 0:
        raise ValueError('delta must be non-zero')

    product = _lookup_for_update(Product, product_id, 'Producto no encontrado')
    field = product.stock_field(bucket)
    before = getattr(product, field)
    after = before + delta

    if after < 0:
        metrics.stock_moves_total.labels(move_type=tipo, result='insufficient_stock').inc()
        raise InsufficientStock(
            f'Stock insuficiente para {product.codigo}: disponible {before}, requerido {-delta}',
            product_id=product.id,
        )

    setattr(product, field, after)
    product.save(update_fields=[field, 'updated_at'])

    movement = StockMovement.objects.create(
        product=product,
        tipo=tipo,
        bucket=bucket,
        cantidad=delta,
        stock_antes=before,
        stock_despues=after,
        referencia_tipo=referencia_tipo,
        referencia_id=str(referencia_id) if referencia_id else '',
        notas=notas,
        created_by_id=user_id,
    )

    metrics.stock_moves_total.labels(move_type=tipo, result='success').inc()
    log_stock_movement(movement)
    return movement


# ============================================================================
# Purchases
# ============================================================================

@retry_on_contention('create_purchase')
def create_purchase(ctx, proveedor, fecha_factura, numero_factura, factura_path, items, notas=''):
    """
    Register a supplier purchase in `pendiente_recepcion`. No stock effect.

    Args:
        items: [{product_id, cantidad, costo_unitario}]
    """
    ctx = require_role(ctx, PURCHASE_ROLES, 'No tiene permisos para registrar compras')

    if not (proveedor or '').strip():
        raise _field_error('proveedor', 'El proveedor es requerido')
    if not (factura_path or '').strip():
        raise _field_error('factura_path', 'Debe adjuntar la foto de la factura')
    if fecha_factura > timezone.localdate():
        raise _field_error('fecha_factura', 'La fecha de la factura no puede ser futura')
    if not items:
        raise _field_error('items', 'Debe agregar al menos un producto')

    total = compute_subtotal(items, price_key='costo_unitario')
    if total <= 0:
        raise _field_error('items', 'El total de la compra debe ser mayor a 0')

    with trace_span('create_purchase', attributes={'items': len(items)}):
        try:
            with transaction.atomic():
                products = lock_products(item['product_id'] for item in items)

                secuencia = next_sequence_value(SequenceNameChoices.PURCHASE)
                purchase = Purchase.objects.create(
                    secuencia=secuencia,
                    numero_compra=format_document_number(PURCHASE_PREFIX, secuencia),
                    proveedor=proveedor.strip(),
                    fecha_factura=fecha_factura,
                    numero_factura=(numero_factura or '').strip(),
                    factura_path=factura_path.strip(),
                    total=total,
                    notas=notas or '',
                    created_by_id=ctx.user_id,
                )
                PurchaseItem.objects.bulk_create([
                    PurchaseItem(
                        purchase=purchase,
                        product=products[str(item['product_id'])],
                        cantidad=int(item['cantidad']),
                        costo_unitario=money(item['costo_unitario']),
                        subtotal=money(item['costo_unitario']) * int(item['cantidad']),
                    )
                    for item in items
                ])
        except IntegrityError as e:
            raise translate_integrity_error(e, unique_message='El número de compra ya fue asignado') from e

    metrics.inventory_operations_total.labels(entity='purchase', operation='create', result='success').inc()
    log_domain_event(
        'purchase.created',
        entity_type='Purchase',
        entity_id=str(purchase.id),
        numero_compra=purchase.numero_compra,
        total=str(purchase.total),
        items=len(items),
    )
    return purchase


def confirm_purchase_reception(ctx, purchase_id):
    """
    Mark a pending purchase as received and add its items to normal stock.

    Raises:
        NotFound, InvalidState
    """
    ctx = require_role(ctx, PURCHASE_ROLES, 'No tiene permisos para confirmar la recepción de compras')

    with trace_span('confirm_purchase_reception', attributes={'purchase_id': purchase_id}):
        with transaction.atomic():
            purchase = _lookup_for_update(Purchase, purchase_id, 'Compra no encontrada')
            if purchase.estado != PurchaseStatusChoices.PENDIENTE_RECEPCION:
                metrics.inventory_operations_total.labels(
                    entity='purchase', operation='receive', result='invalid_state'
                ).inc()
                raise InvalidState('Solo compras pendientes de recepción pueden ser confirmadas')
            PURCHASE_TRANSITIONS.ensure_transition(purchase.estado, PurchaseStatusChoices.RECIBIDO)

            items = list(purchase.items.all())
            lock_products(item.product_id for item in items)
            for item in sorted(items, key=lambda i: str(i.product_id)):
                apply_stock_change(
                    item.product_id,
                    StockBucketChoices.NORMAL,
                    item.cantidad,
                    StockMovementTypeChoices.COMPRA,
                    ctx.user_id,
                    referencia_tipo='compra',
                    referencia_id=purchase.id,
                    notas=f'Recepción {purchase.numero_compra}',
                )

            purchase.estado = PurchaseStatusChoices.RECIBIDO
            purchase.recibido_por_id = ctx.user_id
            purchase.recibido_at = timezone.now()
            purchase.save(update_fields=['estado', 'recibido_por', 'recibido_at', 'updated_at'])

    metrics.inventory_operations_total.labels(entity='purchase', operation='receive', result='success').inc()
    log_status_transition(
        'Purchase', purchase.id,
        PurchaseStatusChoices.PENDIENTE_RECEPCION, PurchaseStatusChoices.RECIBIDO,
        numero_compra=purchase.numero_compra,
    )
    return purchase


def cancel_purchase(ctx, purchase_id, justificacion):
    """
    Void a purchase. If it was already received, its stock is taken back;
    the whole cancellation fails if any product no longer has the units.

    Raises:
        Unauthorized, ValidationFailed, NotFound, InvalidState, InsufficientStock
    """
    ctx = require_role(ctx, ELEVATED_ROLES, 'Solo Admin o Médico pueden anular compras')
    justificacion = require_justification(justificacion)

    with trace_span('cancel_purchase', attributes={'purchase_id': purchase_id}):
        with transaction.atomic():
            purchase = _lookup_for_update(Purchase, purchase_id, 'Compra no encontrada')
            if purchase.estado == PurchaseStatusChoices.ANULADO:
                raise InvalidState('La compra ya está anulada')
            previous = purchase.estado
            PURCHASE_TRANSITIONS.ensure_transition(previous, PurchaseStatusChoices.ANULADO)

            reversed_items = 0
            if previous == PurchaseStatusChoices.RECIBIDO:
                items = list(purchase.items.all())
                lock_products(item.product_id for item in items)
                for item in sorted(items, key=lambda i: str(i.product_id)):
                    apply_stock_change(
                        item.product_id,
                        StockBucketChoices.NORMAL,
                        -item.cantidad,
                        StockMovementTypeChoices.ANULACION_COMPRA,
                        ctx.user_id,
                        referencia_tipo='compra',
                        referencia_id=purchase.id,
                        notas=justificacion,
                    )
                    reversed_items += 1

            purchase.estado = PurchaseStatusChoices.ANULADO
            purchase.anulado_por_id = ctx.user_id
            purchase.anulado_at = timezone.now()
            purchase.anulacion_justificacion = justificacion
            purchase.save(update_fields=[
                'estado', 'anulado_por', 'anulado_at', 'anulacion_justificacion', 'updated_at'
            ])

    metrics.inventory_operations_total.labels(entity='purchase', operation='cancel', result='success').inc()
    log_status_transition(
        'Purchase', purchase.id, previous, PurchaseStatusChoices.ANULADO,
        numero_compra=purchase.numero_compra,
        reversed_items=reversed_items,
    )
    return purchase


# ============================================================================
# Inventory sales
# ============================================================================

@retry_on_contention('create_inventory_sale')
def create_inventory_sale(ctx, items, methods, patient_id=None, receptor_efectivo_id=None, notas=''):
    """
    Sell products at their current price and take them out of normal stock.

    Args:
        items: [{product_id, cantidad}]
        methods: [{metodo, monto, comprobante_path?}], must add up to the total

    Returns:
        InventorySale

    Raises:
        ValidationFailed, NotFound, InsufficientStock, ConflictError
    """
    ctx = require_staff(ctx)
    if not items:
        raise _field_error('items', 'Debe seleccionar al menos un producto')
    for index, item in enumerate(items):
        if item.get('cantidad') is None or int(item['cantidad']) < 1:
            raise _field_error(f'items.{index}.cantidad', 'La cantidad debe ser al menos 1')

    with trace_span('create_inventory_sale', attributes={'items': len(items)}):
        with transaction.atomic():
            if patient_id is not None and not Patient.objects.filter(pk=patient_id).exists():
                raise _field_error('patient_id', 'El paciente seleccionado no existe')

            products = lock_products(item['product_id'] for item in items)
            for index, item in enumerate(items):
                if not products[str(item['product_id'])].activo:
                    raise _field_error(f'items.{index}.product_id', 'Producto no disponible')

            priced = [
                {**item, 'precio_unitario': products[str(item['product_id'])].precio}
                for item in items
            ]
            total = compute_subtotal(priced)
            validate_tender(methods, total)

            secuencia = next_sequence_value(SequenceNameChoices.INVENTORY_SALE)
            sale = InventorySale.objects.create(
                secuencia=secuencia,
                numero_venta=format_document_number(SALE_PREFIX, secuencia),
                patient_id=patient_id,
                receptor_efectivo_id=receptor_efectivo_id,
                total=total,
                notas=notas or '',
                created_by_id=ctx.user_id,
            )

            for index, item in enumerate(priced):
                product = products[str(item['product_id'])]
                cantidad = int(item['cantidad'])
                InventorySaleItem.objects.create(
                    sale=sale,
                    position=index,
                    product=product,
                    codigo=product.codigo,
                    tipo=product.tipo,
                    talla=product.talla,
                    precio_unitario=product.precio,
                    cantidad=cantidad,
                    subtotal=product.precio * cantidad,
                )

            for product_id, cantidad in sorted(_quantities_by_product(items).items()):
                apply_stock_change(
                    product_id,
                    StockBucketChoices.NORMAL,
                    -cantidad,
                    StockMovementTypeChoices.VENTA,
                    ctx.user_id,
                    referencia_tipo='venta',
                    referencia_id=sale.id,
                    notas=sale.numero_venta,
                )

            InventorySaleMethod.objects.bulk_create([
                InventorySaleMethod(
                    sale=sale,
                    position=index,
                    metodo=method['metodo'],
                    monto=money(method['monto']),
                    comprobante_path=(method.get('comprobante_path') or '').strip(),
                )
                for index, method in enumerate(methods)
            ])

    metrics.inventory_operations_total.labels(entity='sale', operation='create', result='success').inc()
    log_consistency_checkpoint(
        'inventory_sale_balance',
        entity_ids={'sale_id': str(sale.id)},
        checks_passed={'methods_match_total': sum(money(m['monto']) for m in methods) == sale.total},
        total=str(sale.total),
    )
    log_domain_event(
        'inventory_sale.created',
        entity_type='InventorySale',
        entity_id=str(sale.id),
        numero_venta=sale.numero_venta,
        total=str(sale.total),
    )
    return sale


def _quantities_by_product(items):
    quantities = {}
    for item in items:
        key = str(item['product_id'])
        quantities[key] = quantities.get(key, 0) + int(item['cantidad'])
    return quantities


def cancel_inventory_sale(ctx, sale_id, justificacion):
    """
    Admin only. Puts the sold units back into normal stock.

    Refused while the sale has pending or approved returns: approved units
    already sit in `stock_devoluciones`.
    """
    ctx = require_role(ctx, [RoleChoices.ADMIN], 'Solo Admin puede eliminar ventas')
    justificacion = require_justification(justificacion)

    with trace_span('cancel_inventory_sale', attributes={'sale_id': sale_id}):
        with transaction.atomic():
            sale = _lookup_for_update(InventorySale, sale_id, 'Venta no encontrada')
            if sale.estado == InventorySaleStatusChoices.ANULADO:
                raise InvalidState('La venta ya está anulada')
            INVENTORY_SALE_TRANSITIONS.ensure_transition(sale.estado, InventorySaleStatusChoices.ANULADO)
            open_returns = sale.returns.filter(
                estado__in=[ReturnStatusChoices.PENDIENTE, ReturnStatusChoices.APROBADA]
            )
            if open_returns.exists():
                metrics.inventory_operations_total.labels(entity='sale', operation='cancel', result='has_returns').inc()
                raise InvalidState(
                    'La venta tiene devoluciones pendientes o aprobadas. '
                    'Rechace las pendientes antes de anular la venta.',
                    returns=open_returns.count(),
                )

            items = list(sale.items.all())
            lock_products(item.product_id for item in items)
            quantities = {}
            for item in items:
                quantities[str(item.product_id)] = quantities.get(str(item.product_id), 0) + item.cantidad
            for product_id, cantidad in sorted(quantities.items()):
                apply_stock_change(
                    product_id,
                    StockBucketChoices.NORMAL,
                    cantidad,
                    StockMovementTypeChoices.ANULACION_VENTA,
                    ctx.user_id,
                    referencia_tipo='venta',
                    referencia_id=sale.id,
                    notas=justificacion,
                )

            sale.estado = InventorySaleStatusChoices.ANULADO
            sale.anulado_por_id = ctx.user_id
            sale.anulado_at = timezone.now()
            sale.anulacion_justificacion = justificacion
            sale.save(update_fields=['estado', 'anulado_por', 'anulado_at', 'anulacion_justificacion'])

    metrics.inventory_operations_total.labels(entity='sale', operation='cancel', result='success').inc()
    log_status_transition(
        'InventorySale', sale.id,
        InventorySaleStatusChoices.ACTIVO, InventorySaleStatusChoices.ANULADO,
        numero_venta=sale.numero_venta,
    )
    return sale


# ============================================================================
# Returns
# ============================================================================

def _returnable_quantity(sale_item):
    """Units of a sale line not yet covered by a pending or approved return."""
    claimed = (
        sale_item.returns
        .filter(estado__in=[ReturnStatusChoices.PENDIENTE, ReturnStatusChoices.APROBADA])
        .aggregate(total=Sum('cantidad'))['total']
    ) or 0
    return sale_item.cantidad - claimed


@retry_on_contention('create_return')
def create_return(ctx, sale_id, sale_item_id, cantidad, motivo, metodo_reembolso, foto_path=''):
    """
    Request a return for part of a sale line. Stock is untouched until
    the request is approved.
    """
    ctx = require_staff(ctx)
    motivo = require_justification(motivo, field='motivo', label='El motivo')
    if cantidad is None or int(cantidad) < 1:
        raise _field_error('cantidad', 'La cantidad debe ser mayor a 0')
    if metodo_reembolso not in RefundMethodChoices.values:
        raise _field_error('metodo_reembolso', 'El método de reembolso es inválido')

    with transaction.atomic():
        sale = _lookup_for_update(InventorySale, sale_id, 'Venta no encontrada')
        if sale.estado != InventorySaleStatusChoices.ACTIVO:
            raise InvalidState('Solo se pueden devolver productos de ventas activas')
        try:
            sale_item = sale.items.select_for_update().get(pk=sale_item_id)
        except (InventorySaleItem.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFound('Item de venta no encontrado')

        available = _returnable_quantity(sale_item)
        if int(cantidad) > available:
            raise _field_error(
                'cantidad',
                f'Cantidad excede lo disponible para devolver ({available})'
            )

        secuencia = next_sequence_value(SequenceNameChoices.PRODUCT_RETURN)
        product_return = ProductReturn.objects.create(
            secuencia=secuencia,
            numero_devolucion=format_document_number(RETURN_PREFIX, secuencia),
            sale=sale,
            sale_item=sale_item,
            product_id=sale_item.product_id,
            cantidad=int(cantidad),
            monto_devolucion=money(sale_item.precio_unitario * int(cantidad)),
            motivo=motivo,
            metodo_reembolso=metodo_reembolso,
            foto_path=(foto_path or '').strip(),
            created_by_id=ctx.user_id,
        )

    metrics.inventory_operations_total.labels(entity='return', operation='create', result='success').inc()
    log_domain_event(
        'return.created',
        entity_type='ProductReturn',
        entity_id=str(product_return.id),
        entity_ids={'sale_id': str(sale.id)},
        numero_devolucion=product_return.numero_devolucion,
        cantidad=product_return.cantidad,
        monto_devolucion=str(product_return.monto_devolucion),
    )
    return product_return


def _review_return(ctx, return_id, new_status, verb):
    """Lock a pending return and check segregation of duties."""
    product_return = _lookup_for_update(ProductReturn, return_id, 'Devolución no encontrada')
    if product_return.estado != ReturnStatusChoices.PENDIENTE:
        raise InvalidState(f'Solo se pueden {verb} devoluciones pendientes')
    if (
        new_status == ReturnStatusChoices.APROBADA
        and InventorySale.objects.select_for_update().get(pk=product_return.sale_id).estado
        != InventorySaleStatusChoices.ACTIVO
    ):
        raise InvalidState('No se puede aprobar una devolución de una venta anulada')
    if str(product_return.created_by_id) == str(ctx.user_id):
        metrics.inventory_operations_total.labels(
            entity='return', operation=new_status, result='same_user'
        ).inc()
        raise InvalidState(f'No puede {verb} una devolución registrada por usted mismo')
    RETURN_TRANSITIONS.ensure_transition(product_return.estado, new_status)
    return product_return


def approve_return(ctx, return_id, notas=''):
    """Approve a pending return; the units go to `stock_devoluciones`."""
    ctx = require_role(ctx, ELEVATED_ROLES, 'Solo Admin o Médico pueden aprobar devoluciones')

    with trace_span('approve_return', attributes={'return_id': return_id}):
        with transaction.atomic():
            product_return = _review_return(ctx, return_id, ReturnStatusChoices.APROBADA, 'aprobar')
            apply_stock_change(
                product_return.product_id,
                StockBucketChoices.DEVOLUCIONES,
                product_return.cantidad,
                StockMovementTypeChoices.DEVOLUCION,
                ctx.user_id,
                referencia_tipo='devolucion',
                referencia_id=product_return.id,
                notas=product_return.numero_devolucion,
            )
            product_return.estado = ReturnStatusChoices.APROBADA
            product_return.revisado_por_id = ctx.user_id
            product_return.revisado_at = timezone.now()
            product_return.notas_revision = (notas or '').strip()
            product_return.save(update_fields=['estado', 'revisado_por', 'revisado_at', 'notas_revision'])

    metrics.inventory_operations_total.labels(entity='return', operation='approve', result='success').inc()
    log_status_transition(
        'ProductReturn', product_return.id,
        ReturnStatusChoices.PENDIENTE, ReturnStatusChoices.APROBADA,
    )
    return product_return


def reject_return(ctx, return_id, notas):
    """Reject a pending return with a justification. No stock effect."""
    ctx = require_role(ctx, ELEVATED_ROLES, 'Solo Admin o Médico pueden rechazar devoluciones')
    notas = require_justification(notas, field='notas')

    with transaction.atomic():
        product_return = _review_return(ctx, return_id, ReturnStatusChoices.RECHAZADA, 'rechazar')
        product_return.estado = ReturnStatusChoices.RECHAZADA
        product_return.revisado_por_id = ctx.user_id
        product_return.revisado_at = timezone.now()
        product_return.notas_revision = notas
        product_return.save(update_fields=['estado', 'revisado_por', 'revisado_at', 'notas_revision'])

    metrics.inventory_operations_total.labels(entity='return', operation='reject', result='success').inc()
    log_status_transition(
        'ProductReturn', product_return.id,
        ReturnStatusChoices.PENDIENTE, ReturnStatusChoices.RECHAZADA,
    )
    return product_return


# ============================================================================
# Adjustments
# ============================================================================

ADJUSTMENT_TYPES = {
    'entrada': StockMovementTypeChoices.AJUSTE_ENTRADA,
    'salida': StockMovementTypeChoices.AJUSTE_SALIDA,
}


def create_inventory_adjustment(ctx, product_id, cantidad, tipo, razon, bucket=StockBucketChoices.NORMAL):
    """
    Manual correction after a physical count (damaged goods, recount).

    Args:
        cantidad: Positive number of units
        tipo: 'entrada' adds, 'salida' removes
        bucket: 'normal' or 'devoluciones'
        razon: At least 10 characters
    """
    ctx = require_role(ctx, ELEVATED_ROLES, 'Solo Admin o Médico pueden realizar ajustes de inventario')
    razon = require_justification(razon, field='razon', label='La razón')
    if cantidad is None or int(cantidad) < 1:
        raise _field_error('cantidad', 'La cantidad debe ser mayor a 0')
    if tipo not in ADJUSTMENT_TYPES:
        raise _field_error('tipo', 'Tipo de ajuste inválido')
    if bucket not in StockBucketChoices.values:
        raise _field_error('bucket', 'Tipo de stock inválido')

    delta = int(cantidad) if tipo == 'entrada' else -int(cantidad)
    with transaction.atomic():
        movement = apply_stock_change(
            product_id,
            bucket,
            delta,
            ADJUSTMENT_TYPES[tipo],
            ctx.user_id,
            referencia_tipo='ajuste',
            notas=razon,
        )

    metrics.inventory_operations_total.labels(entity='adjustment', operation=tipo, result='success').inc()
    return movement

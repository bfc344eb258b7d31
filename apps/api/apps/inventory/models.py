"""
Inventory models (compression garments, "medias"):
product, stock_movement, purchase, purchase_item, inventory_sale,
inventory_sale_item, inventory_sale_method, product_return

Stock lives in two buckets per product: `stock_normal` (sellable) and
`stock_devoluciones` (returned goods, never sold again without an
explicit adjustment). Every change of either bucket writes one
StockMovement row with the before/after values.
"""
import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q

from apps.core.state_machine import TransitionTable
from apps.payments.models import PaymentMethodChoices


# ============================================================================
# Enums
# ============================================================================

class ProductTypeChoices(models.TextChoices):
    MUSLO = 'muslo', 'Muslo'
    PANTY = 'panty', 'Panty'
    RODILLA = 'rodilla', 'Rodilla'


class ProductSizeChoices(models.TextChoices):
    M = 'M', 'M'
    L = 'L', 'L'
    XL = 'XL', 'XL'
    XXL = 'XXL', 'XXL'


class StockBucketChoices(models.TextChoices):
    NORMAL = 'normal', 'Stock normal'
    DEVOLUCIONES = 'devoluciones', 'Stock de devoluciones'


class StockMovementTypeChoices(models.TextChoices):
    COMPRA = 'compra', 'Compra'
    VENTA = 'venta', 'Venta'
    DEVOLUCION = 'devolucion', 'Devolución'
    AJUSTE_ENTRADA = 'ajuste_entrada', 'Ajuste de entrada'
    AJUSTE_SALIDA = 'ajuste_salida', 'Ajuste de salida'
    ANULACION_COMPRA = 'anulacion_compra', 'Anulación de compra'
    ANULACION_VENTA = 'anulacion_venta', 'Anulación de venta'


class PurchaseStatusChoices(models.TextChoices):
    """
    - pendiente_recepcion -> recibido | anulado
    - recibido -> anulado (reverses the stock increment)
    - anulado is terminal
    """
    PENDIENTE_RECEPCION = 'pendiente_recepcion', 'Pendiente de recepción'
    RECIBIDO = 'recibido', 'Recibido'
    ANULADO = 'anulado', 'Anulado'


PURCHASE_TRANSITIONS = TransitionTable.from_choices(PurchaseStatusChoices, {
    PurchaseStatusChoices.PENDIENTE_RECEPCION: [
        PurchaseStatusChoices.RECIBIDO,
        PurchaseStatusChoices.ANULADO,
    ],
    PurchaseStatusChoices.RECIBIDO: [PurchaseStatusChoices.ANULADO],
    PurchaseStatusChoices.ANULADO: [],
})


class InventorySaleStatusChoices(models.TextChoices):
    ACTIVO = 'activo', 'Activo'
    ANULADO = 'anulado', 'Anulado'


INVENTORY_SALE_TRANSITIONS = TransitionTable.from_choices(InventorySaleStatusChoices, {
    InventorySaleStatusChoices.ACTIVO: [InventorySaleStatusChoices.ANULADO],
    InventorySaleStatusChoices.ANULADO: [],
})


class ReturnStatusChoices(models.TextChoices):
    """
    - pendiente -> aprobada (increments stock_devoluciones) | rechazada
    - aprobada, rechazada are terminal
    """
    PENDIENTE = 'pendiente', 'Pendiente'
    APROBADA = 'aprobada', 'Aprobada'
    RECHAZADA = 'rechazada', 'Rechazada'


RETURN_TRANSITIONS = TransitionTable.from_choices(ReturnStatusChoices, {
    ReturnStatusChoices.PENDIENTE: [ReturnStatusChoices.APROBADA, ReturnStatusChoices.RECHAZADA],
    ReturnStatusChoices.APROBADA: [],
    ReturnStatusChoices.RECHAZADA: [],
})


class RefundMethodChoices(models.TextChoices):
    EFECTIVO = 'efectivo', 'Efectivo'
    CAMBIO_PRODUCTO = 'cambio_producto', 'Cambio de producto'


# ============================================================================
# Products and stock
# ============================================================================

class Product(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    codigo = models.CharField(max_length=50, unique=True)
    tipo = models.CharField(max_length=20, choices=ProductTypeChoices.choices)
    talla = models.CharField(max_length=5, choices=ProductSizeChoices.choices)
    precio = models.DecimalField(max_digits=12, decimal_places=2)
    stock_normal = models.IntegerField(default=0)
    stock_devoluciones = models.IntegerField(default=0)
    umbral_alerta = models.PositiveIntegerField(default=5)
    activo = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'producto'
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        ordering = ['tipo', 'talla']
        constraints = [
            models.CheckConstraint(condition=Q(stock_normal__gte=0), name='producto_stock_normal_non_negative'),
            models.CheckConstraint(
                condition=Q(stock_devoluciones__gte=0),
                name='producto_stock_devoluciones_non_negative'
            ),
            models.CheckConstraint(condition=Q(precio__gte=0), name='producto_precio_non_negative'),
        ]

    def __str__(self):
        return f"{self.codigo} ({self.get_tipo_display()} {self.talla})"

    @property
    def stock_bajo(self):
        return self.stock_normal < self.umbral_alerta

    def stock_field(self, bucket):
        return 'stock_devoluciones' if bucket == StockBucketChoices.DEVOLUCIONES else 'stock_normal'


class StockMovement(models.Model):
    """
    Append-only stock ledger.

    INVARIANT: stock_despues = stock_antes + cantidad (cantidad is signed)
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='movements')
    tipo = models.CharField(max_length=30, choices=StockMovementTypeChoices.choices)
    bucket = models.CharField(
        max_length=20,
        choices=StockBucketChoices.choices,
        default=StockBucketChoices.NORMAL
    )
    cantidad = models.IntegerField()
    stock_antes = models.IntegerField()
    stock_despues = models.IntegerField()
    referencia_tipo = models.CharField(max_length=30, blank=True)
    referencia_id = models.CharField(max_length=64, blank=True)
    notas = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='stock_movements'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'movimiento_stock'
        verbose_name = 'Stock Movement'
        verbose_name_plural = 'Stock Movements'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['product', 'created_at'], name='idx_mov_producto_fecha'),
            models.Index(fields=['referencia_tipo', 'referencia_id'], name='idx_mov_referencia'),
        ]
        constraints = [
            models.CheckConstraint(condition=~Q(cantidad=0), name='movimiento_cantidad_non_zero'),
            models.CheckConstraint(condition=Q(stock_despues__gte=0), name='movimiento_stock_despues_non_negative'),
        ]

    def __str__(self):
        return f"{self.get_tipo_display()} {self.cantidad:+d} {self.product_id}"


# ============================================================================
# Purchases
# ============================================================================

class Purchase(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    secuencia = models.PositiveBigIntegerField(unique=True, editable=False)
    numero_compra = models.CharField(max_length=20, unique=True, editable=False)
    proveedor = models.CharField(max_length=200)
    fecha_factura = models.DateField()
    numero_factura = models.CharField(max_length=100, blank=True)
    factura_path = models.CharField(max_length=500)
    total = models.DecimalField(max_digits=12, decimal_places=2)
    estado = models.CharField(
        max_length=30,
        choices=PurchaseStatusChoices.choices,
        default=PurchaseStatusChoices.PENDIENTE_RECEPCION
    )
    notas = models.TextField(blank=True)

    recibido_por = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='purchases_received'
    )
    recibido_at = models.DateTimeField(blank=True, null=True)
    anulado_por = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='purchases_voided'
    )
    anulado_at = models.DateTimeField(blank=True, null=True)
    anulacion_justificacion = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='purchases_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'compra'
        verbose_name = 'Purchase'
        verbose_name_plural = 'Purchases'
        ordering = ['-secuencia']
        constraints = [
            models.CheckConstraint(condition=Q(total__gt=0), name='compra_total_positive'),
        ]

    def __str__(self):
        return f"{self.numero_compra} - {self.proveedor}"


class PurchaseItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    purchase = models.ForeignKey(Purchase, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='purchase_items')
    cantidad = models.PositiveIntegerField()
    costo_unitario = models.DecimalField(max_digits=12, decimal_places=2)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        db_table = 'compra_item'
        verbose_name = 'Purchase Item'
        verbose_name_plural = 'Purchase Items'
        constraints = [
            models.CheckConstraint(condition=Q(cantidad__gte=1), name='compra_item_cantidad_positive'),
            models.CheckConstraint(condition=Q(costo_unitario__gte=0), name='compra_item_costo_non_negative'),
        ]

    def __str__(self):
        return f"{self.product_id} x{self.cantidad}"


# ============================================================================
# Inventory sales
# ============================================================================

class InventorySale(models.Model):
    """Over-the-counter sale of garments; paid in full at the counter."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    secuencia = models.PositiveBigIntegerField(unique=True, editable=False)
    numero_venta = models.CharField(max_length=20, unique=True, editable=False)
    patient = models.ForeignKey(
        'clinical.Patient',
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='inventory_sales'
    )
    receptor_efectivo = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='inventory_sales_cash_received',
        help_text='Staff member who physically received the cash'
    )
    total = models.DecimalField(max_digits=12, decimal_places=2)
    estado = models.CharField(
        max_length=20,
        choices=InventorySaleStatusChoices.choices,
        default=InventorySaleStatusChoices.ACTIVO
    )
    notas = models.TextField(blank=True)

    anulado_por = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='inventory_sales_voided'
    )
    anulado_at = models.DateTimeField(blank=True, null=True)
    anulacion_justificacion = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='inventory_sales_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'venta_medias'
        verbose_name = 'Inventory Sale'
        verbose_name_plural = 'Inventory Sales'
        ordering = ['-secuencia']
        indexes = [
            models.Index(fields=['created_at'], name='idx_venta_medias_created'),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(total__gt=0), name='venta_medias_total_positive'),
        ]

    def __str__(self):
        return f"{self.numero_venta} - {self.total}"


class InventorySaleItem(models.Model):
    """Product snapshot at sale time."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    sale = models.ForeignKey(InventorySale, on_delete=models.CASCADE, related_name='items')
    position = models.PositiveSmallIntegerField()
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='sale_items')
    codigo = models.CharField(max_length=50)
    tipo = models.CharField(max_length=20, choices=ProductTypeChoices.choices)
    talla = models.CharField(max_length=5, choices=ProductSizeChoices.choices)
    precio_unitario = models.DecimalField(max_digits=12, decimal_places=2)
    cantidad = models.PositiveIntegerField()
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        db_table = 'venta_medias_item'
        verbose_name = 'Inventory Sale Item'
        verbose_name_plural = 'Inventory Sale Items'
        ordering = ['position']
        constraints = [
            models.UniqueConstraint(fields=['sale', 'position'], name='uniq_venta_medias_item_position'),
            models.CheckConstraint(condition=Q(cantidad__gte=1), name='venta_medias_item_cantidad_positive'),
        ]

    def __str__(self):
        return f"{self.codigo} x{self.cantidad}"


class InventorySaleMethod(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    sale = models.ForeignKey(InventorySale, on_delete=models.CASCADE, related_name='methods')
    position = models.PositiveSmallIntegerField()
    metodo = models.CharField(max_length=20, choices=PaymentMethodChoices.choices)
    monto = models.DecimalField(max_digits=12, decimal_places=2)
    comprobante_path = models.CharField(max_length=500, blank=True)

    class Meta:
        db_table = 'venta_medias_metodo'
        verbose_name = 'Inventory Sale Method'
        verbose_name_plural = 'Inventory Sale Methods'
        ordering = ['position']
        constraints = [
            models.CheckConstraint(condition=Q(monto__gt=0), name='venta_medias_metodo_monto_positive'),
        ]


# ============================================================================
# Returns
# ============================================================================

class ProductReturn(models.Model):
    """
    Customer return of a sold item.

    Approved returns go to `stock_devoluciones`, never back to sellable
    stock. The reviewer must be a different user than the requester.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    secuencia = models.PositiveBigIntegerField(unique=True, editable=False)
    numero_devolucion = models.CharField(max_length=20, unique=True, editable=False)
    sale = models.ForeignKey(InventorySale, on_delete=models.PROTECT, related_name='returns')
    sale_item = models.ForeignKey(InventorySaleItem, on_delete=models.PROTECT, related_name='returns')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='returns')
    cantidad = models.PositiveIntegerField()
    monto_devolucion = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text='Refund value snapshot: sale line unit price times cantidad'
    )
    motivo = models.TextField()
    metodo_reembolso = models.CharField(max_length=20, choices=RefundMethodChoices.choices)
    foto_path = models.CharField(max_length=500, blank=True)
    estado = models.CharField(
        max_length=20,
        choices=ReturnStatusChoices.choices,
        default=ReturnStatusChoices.PENDIENTE
    )

    revisado_por = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='returns_reviewed'
    )
    revisado_at = models.DateTimeField(blank=True, null=True)
    notas_revision = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='returns_requested'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'devolucion'
        verbose_name = 'Product Return'
        verbose_name_plural = 'Product Returns'
        ordering = ['-secuencia']
        constraints = [
            models.CheckConstraint(condition=Q(cantidad__gte=1), name='devolucion_cantidad_positive'),
            models.CheckConstraint(condition=Q(monto_devolucion__gte=0), name='devolucion_monto_non_negative'),
        ]

    def __str__(self):
        return f"{self.numero_devolucion} - {self.get_estado_display()}"

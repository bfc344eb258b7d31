"""Inventory serializers: action payloads and read models."""
from rest_framework import serializers

from apps.payments.serializers import TenderLineSerializer

from .models import (
    InventorySale,
    InventorySaleItem,
    InventorySaleMethod,
    Product,
    ProductReturn,
    Purchase,
    PurchaseItem,
    RefundMethodChoices,
    StockBucketChoices,
    StockMovement,
)


# ============================================================================
# Action payloads
# ============================================================================

class PurchaseItemInputSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    cantidad = serializers.IntegerField(min_value=1)
    costo_unitario = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class PurchaseCreateSerializer(serializers.Serializer):
    proveedor = serializers.CharField(max_length=200)
    fecha_factura = serializers.DateField()
    numero_factura = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    factura_path = serializers.CharField(max_length=500)
    items = PurchaseItemInputSerializer(many=True, allow_empty=False)
    notas = serializers.CharField(required=False, allow_blank=True, default='')


class JustificationSerializer(serializers.Serializer):
    """Body of cancel/void endpoints; length rules are applied by the service."""
    justificacion = serializers.CharField(allow_blank=True)


class SaleItemInputSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    cantidad = serializers.IntegerField(min_value=1)


class InventorySaleCreateSerializer(serializers.Serializer):
    items = SaleItemInputSerializer(many=True, allow_empty=False)
    methods = TenderLineSerializer(many=True, allow_empty=False)
    patient_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    receptor_efectivo_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    notas = serializers.CharField(required=False, allow_blank=True, default='')


class ReturnCreateSerializer(serializers.Serializer):
    sale_id = serializers.UUIDField()
    sale_item_id = serializers.UUIDField()
    cantidad = serializers.IntegerField(min_value=1)
    motivo = serializers.CharField(allow_blank=True)
    metodo_reembolso = serializers.ChoiceField(choices=RefundMethodChoices.choices)
    foto_path = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class ReturnReviewSerializer(serializers.Serializer):
    notas = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class AdjustmentCreateSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    cantidad = serializers.IntegerField(min_value=1)
    tipo = serializers.ChoiceField(choices=[('entrada', 'Entrada'), ('salida', 'Salida')])
    bucket = serializers.ChoiceField(choices=StockBucketChoices.choices, default=StockBucketChoices.NORMAL)
    razon = serializers.CharField(allow_blank=True)


# ============================================================================
# Read models
# ============================================================================

class ProductSerializer(serializers.ModelSerializer):
    stock_bajo = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'codigo', 'tipo', 'talla', 'precio',
            'stock_normal', 'stock_devoluciones', 'umbral_alerta', 'stock_bajo', 'activo',
        ]
        read_only_fields = fields


class StockMovementSerializer(serializers.ModelSerializer):
    product_codigo = serializers.CharField(source='product.codigo', read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            'id', 'product', 'product_codigo', 'tipo', 'bucket', 'cantidad',
            'stock_antes', 'stock_despues', 'referencia_tipo', 'referencia_id',
            'notas', 'created_by', 'created_at',
        ]
        read_only_fields = fields


class PurchaseItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = PurchaseItem
        fields = ['id', 'product', 'cantidad', 'costo_unitario', 'subtotal']
        read_only_fields = fields


class PurchaseSerializer(serializers.ModelSerializer):
    items = PurchaseItemSerializer(many=True, read_only=True)
    estado_display = serializers.CharField(source='get_estado_display', read_only=True)

    class Meta:
        model = Purchase
        fields = [
            'id', 'numero_compra', 'proveedor', 'fecha_factura', 'numero_factura', 'factura_path',
            'total', 'estado', 'estado_display', 'notas', 'items',
            'recibido_por', 'recibido_at', 'anulado_por', 'anulado_at', 'anulacion_justificacion',
            'created_by', 'created_at',
        ]
        read_only_fields = fields


class InventorySaleItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InventorySaleItem
        fields = ['id', 'position', 'product', 'codigo', 'tipo', 'talla', 'precio_unitario', 'cantidad', 'subtotal']
        read_only_fields = fields


class InventorySaleMethodSerializer(serializers.ModelSerializer):
    class Meta:
        model = InventorySaleMethod
        fields = ['id', 'position', 'metodo', 'monto', 'comprobante_path']
        read_only_fields = fields


class InventorySaleSerializer(serializers.ModelSerializer):
    items = InventorySaleItemSerializer(many=True, read_only=True)
    methods = InventorySaleMethodSerializer(many=True, read_only=True)

    class Meta:
        model = InventorySale
        fields = [
            'id', 'numero_venta', 'patient', 'receptor_efectivo', 'total', 'estado', 'notas',
            'items', 'methods', 'anulado_por', 'anulado_at', 'anulacion_justificacion',
            'created_by', 'created_at',
        ]
        read_only_fields = fields


class ProductReturnSerializer(serializers.ModelSerializer):
    estado_display = serializers.CharField(source='get_estado_display', read_only=True)

    class Meta:
        model = ProductReturn
        fields = [
            'id', 'numero_devolucion', 'sale', 'sale_item', 'product', 'cantidad', 'monto_devolucion', 'motivo',
            'metodo_reembolso', 'foto_path', 'estado', 'estado_display',
            'revisado_por', 'revisado_at', 'notas_revision', 'created_by', 'created_at',
        ]
        read_only_fields = fields

"""Payment serializers: action payloads and read models."""
from rest_framework import serializers

from apps.core.exceptions import ValidationFailed

from .models import Payment, PaymentItem, PaymentMethod, PaymentMethodChoices
from .rules import validate_payment_request


class TenderLineSerializer(serializers.Serializer):
    metodo = serializers.ChoiceField(choices=PaymentMethodChoices.choices)
    monto = serializers.DecimalField(max_digits=12, decimal_places=2)
    comprobante_path = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class PaymentItemInputSerializer(serializers.Serializer):
    service_id = serializers.UUIDField()
    appointment_service_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    cantidad = serializers.IntegerField(min_value=1)
    precio_unitario = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class PaymentCreateSerializer(serializers.Serializer):
    """
    Payment request. Besides field shapes, validates the balance rules
    (discount justification, methods == total, receipts) so the form gets
    field-level messages before anything is written.
    """
    patient_id = serializers.UUIDField()
    appointment_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    items = PaymentItemInputSerializer(many=True, allow_empty=False)
    methods = TenderLineSerializer(many=True, allow_empty=False)
    descuento = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, default=0)
    descuento_justificacion = serializers.CharField(required=False, allow_blank=True, default='')
    notas = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        try:
            validate_payment_request(
                attrs['items'], attrs['methods'], attrs['descuento'], attrs['descuento_justificacion']
            )
        except ValidationFailed as e:
            raise serializers.ValidationError(e.field_errors or e.message)
        return attrs


class VoidPaymentSerializer(serializers.Serializer):
    justificacion = serializers.CharField(allow_blank=True, trim_whitespace=True)


class PaymentItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentItem
        fields = ['id', 'position', 'service', 'nombre_servicio', 'precio_unitario', 'cantidad', 'subtotal']
        read_only_fields = fields


class PaymentMethodSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentMethod
        fields = ['id', 'position', 'metodo', 'monto', 'comprobante_path']
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    items = PaymentItemSerializer(many=True, read_only=True)
    methods = PaymentMethodSerializer(many=True, read_only=True)
    estado_display = serializers.CharField(source='get_estado_display', read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id', 'numero_factura', 'patient', 'appointment',
            'subtotal', 'descuento', 'descuento_justificacion', 'total',
            'estado', 'estado_display', 'notas', 'items', 'methods',
            'anulado_por', 'anulado_at', 'anulacion_justificacion',
            'created_by', 'created_at',
        ]
        read_only_fields = fields

"""Cash serializers."""
from rest_framework import serializers

from .models import CashClosing, CashModuleChoices


class CloseCashSerializer(serializers.Serializer):
    fecha = serializers.DateField()
    conteo_fisico_efectivo = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    diferencia_justificacion = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    cierre_photo_path = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    notas = serializers.CharField(required=False, allow_blank=True, default='')
    modulo = serializers.ChoiceField(choices=CashModuleChoices.choices, default=CashModuleChoices.CLINICA)


class ReopenCashSerializer(serializers.Serializer):
    justificacion = serializers.CharField(allow_blank=True)


class SummaryQuerySerializer(serializers.Serializer):
    fecha = serializers.DateField()
    modulo = serializers.ChoiceField(choices=CashModuleChoices.choices, default=CashModuleChoices.CLINICA)


class CashClosingSerializer(serializers.ModelSerializer):
    estado_display = serializers.CharField(source='get_estado_display', read_only=True)
    superseded_by = serializers.PrimaryKeyRelatedField(read_only=True, allow_null=True)

    class Meta:
        model = CashClosing
        fields = [
            'id', 'modulo', 'cierre_numero', 'fecha_cierre',
            'total_efectivo', 'total_tarjeta', 'total_transferencia', 'total_nequi',
            'total_descuentos', 'total_anulaciones', 'grand_total', 'transaction_count',
            'conteo_fisico_efectivo', 'diferencia', 'diferencia_justificacion',
            'cierre_photo_path', 'notas', 'estado', 'estado_display',
            'supersedes', 'superseded_by',
            'closed_by', 'closed_at', 'reopened_by', 'reopened_at', 'reopen_justificacion',
        ]
        read_only_fields = fields


class IncomeReportQuerySerializer(serializers.Serializer):
    fecha_inicio = serializers.DateField()
    fecha_fin = serializers.DateField()

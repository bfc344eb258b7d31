"""Clinical serializers: action payloads and read models."""
from rest_framework import serializers

from .models import (
    Appointment,
    AppointmentService,
    AppointmentStatusChoices,
    Patient,
    Service,
)


# ============================================================================
# Action payloads
# ============================================================================

class AppointmentTimesMixin:
    """Shared end > start rule for payloads carrying both times."""

    def validate(self, attrs):
        start = attrs.get('fecha_hora_inicio')
        end = attrs.get('fecha_hora_fin')
        if start and end and end <= start:
            raise serializers.ValidationError({
                'fecha_hora_fin': 'La hora de fin debe ser posterior a la hora de inicio'
            })
        return attrs


class AppointmentCreateSerializer(AppointmentTimesMixin, serializers.Serializer):
    patient_id = serializers.UUIDField()
    doctor_id = serializers.UUIDField()
    fecha_hora_inicio = serializers.DateTimeField()
    fecha_hora_fin = serializers.DateTimeField()
    motivo = serializers.CharField(
        max_length=Appointment.MOTIVO_MAX_LENGTH, required=False, allow_blank=True, default=''
    )
    notas = serializers.CharField(
        max_length=Appointment.NOTAS_MAX_LENGTH, required=False, allow_blank=True, default=''
    )


class NewPatientSerializer(serializers.Serializer):
    nombre = serializers.CharField(max_length=100)
    apellido = serializers.CharField(max_length=100)
    cedula = serializers.CharField(max_length=20)
    telefono = serializers.CharField(max_length=30, required=False, allow_blank=True, default='')
    email = serializers.EmailField(required=False, allow_blank=True, default='')
    fecha_nacimiento = serializers.DateField(required=False, allow_null=True, default=None)


class AppointmentFieldsSerializer(AppointmentTimesMixin, serializers.Serializer):
    doctor_id = serializers.UUIDField()
    fecha_hora_inicio = serializers.DateTimeField()
    fecha_hora_fin = serializers.DateTimeField()
    motivo = serializers.CharField(
        max_length=Appointment.MOTIVO_MAX_LENGTH, required=False, allow_blank=True, default=''
    )
    notas = serializers.CharField(
        max_length=Appointment.NOTAS_MAX_LENGTH, required=False, allow_blank=True, default=''
    )


class AppointmentWithNewPatientSerializer(serializers.Serializer):
    patient = NewPatientSerializer()
    appointment = AppointmentFieldsSerializer()


class AppointmentUpdateSerializer(AppointmentTimesMixin, serializers.Serializer):
    """All fields optional; only the ones sent are changed."""
    patient_id = serializers.UUIDField(required=False)
    doctor_id = serializers.UUIDField(required=False)
    fecha_hora_inicio = serializers.DateTimeField(required=False)
    fecha_hora_fin = serializers.DateTimeField(required=False)
    motivo = serializers.CharField(max_length=Appointment.MOTIVO_MAX_LENGTH, required=False, allow_blank=True)
    notas = serializers.CharField(max_length=Appointment.NOTAS_MAX_LENGTH, required=False, allow_blank=True)


class RescheduleSerializer(AppointmentTimesMixin, serializers.Serializer):
    fecha_hora_inicio = serializers.DateTimeField()
    fecha_hora_fin = serializers.DateTimeField()


class StatusUpdateSerializer(serializers.Serializer):
    estado = serializers.ChoiceField(choices=AppointmentStatusChoices.choices)


class AddServiceSerializer(serializers.Serializer):
    service_id = serializers.UUIDField()
    cantidad = serializers.IntegerField(min_value=1, default=1)
    precio = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True, default=None
    )


# ============================================================================
# Read models
# ============================================================================

class PatientSerializer(serializers.ModelSerializer):
    class Meta:
        model = Patient
        fields = ['id', 'nombre', 'apellido', 'cedula', 'telefono', 'email', 'fecha_nacimiento', 'created_at']
        read_only_fields = fields


class ServiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Service
        fields = ['id', 'nombre', 'precio_base', 'precio_variable', 'precio_minimo', 'precio_maximo', 'activo']
        read_only_fields = fields


class AppointmentServiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = AppointmentService
        fields = [
            'id', 'appointment', 'service', 'nombre_servicio', 'precio_unitario',
            'cantidad', 'subtotal', 'estado_pago', 'payment_item', 'created_at',
        ]
        read_only_fields = fields


class AppointmentSerializer(serializers.ModelSerializer):
    estado_display = serializers.CharField(source='get_estado_display', read_only=True)
    doctor_nombre = serializers.CharField(source='doctor.nombre', read_only=True)
    duracion_minutos = serializers.IntegerField(read_only=True)
    available_transitions = serializers.SerializerMethodField()
    services = AppointmentServiceSerializer(many=True, read_only=True)

    class Meta:
        model = Appointment
        fields = [
            'id', 'patient', 'doctor', 'doctor_nombre',
            'fecha_hora_inicio', 'fecha_hora_fin', 'duracion_minutos',
            'estado', 'estado_display', 'available_transitions',
            'motivo', 'notas', 'services',
            'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_available_transitions(self, obj):
        return sorted(obj.available_transitions())

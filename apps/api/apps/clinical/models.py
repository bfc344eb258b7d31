"""
Clinical models: patient, service catalog, appointment, appointment_service
"""
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

from apps.core.state_machine import TransitionTable


# ============================================================================
# Enums
# ============================================================================

class AppointmentStatusChoices(models.TextChoices):
    """
    Appointment status with allowed transitions:
    - programada -> confirmada | cancelada | no_asistio
    - confirmada -> en_sala | cancelada | no_asistio
    - en_sala -> en_atencion | cancelada
    - en_atencion -> completada | cancelada
    - completada, cancelada, no_asistio are terminal states
    """
    PROGRAMADA = 'programada', 'Programada'
    CONFIRMADA = 'confirmada', 'Confirmada'
    EN_SALA = 'en_sala', 'En Sala de Espera'
    EN_ATENCION = 'en_atencion', 'En Atención'
    COMPLETADA = 'completada', 'Completada'
    CANCELADA = 'cancelada', 'Cancelada'
    NO_ASISTIO = 'no_asistio', 'No Asistió'


APPOINTMENT_TRANSITIONS = TransitionTable.from_choices(AppointmentStatusChoices, {
    AppointmentStatusChoices.PROGRAMADA: [
        AppointmentStatusChoices.CONFIRMADA,
        AppointmentStatusChoices.CANCELADA,
        AppointmentStatusChoices.NO_ASISTIO,
    ],
    AppointmentStatusChoices.CONFIRMADA: [
        AppointmentStatusChoices.EN_SALA,
        AppointmentStatusChoices.CANCELADA,
        AppointmentStatusChoices.NO_ASISTIO,
    ],
    AppointmentStatusChoices.EN_SALA: [
        AppointmentStatusChoices.EN_ATENCION,
        AppointmentStatusChoices.CANCELADA,
    ],
    AppointmentStatusChoices.EN_ATENCION: [
        AppointmentStatusChoices.COMPLETADA,
        AppointmentStatusChoices.CANCELADA,
    ],
    AppointmentStatusChoices.COMPLETADA: [],
    AppointmentStatusChoices.CANCELADA: [],
    AppointmentStatusChoices.NO_ASISTIO: [],
})

# Statuses that occupy the doctor's agenda
INACTIVE_APPOINTMENT_STATUSES = [
    AppointmentStatusChoices.CANCELADA,
    AppointmentStatusChoices.NO_ASISTIO,
]
ACTIVE_APPOINTMENT_STATUSES = [
    status for status in AppointmentStatusChoices.values
    if status not in INACTIVE_APPOINTMENT_STATUSES
]


class PaymentStatusChoices(models.TextChoices):
    PENDIENTE = 'pendiente', 'Pendiente'
    PAGADO = 'pagado', 'Pagado'


# ============================================================================
# Patients and catalog
# ============================================================================

class Patient(models.Model):
    """
    Patient record. Full CRUD screens live outside this service; only the
    fields appointments and payments need are modelled here.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    nombre = models.CharField(max_length=100)
    apellido = models.CharField(max_length=100)
    cedula = models.CharField(max_length=20, unique=True)
    telefono = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    fecha_nacimiento = models.DateField(blank=True, null=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='patients_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'paciente'
        verbose_name = 'Patient'
        verbose_name_plural = 'Patients'
        indexes = [
            models.Index(fields=['apellido', 'nombre'], name='idx_paciente_nombre'),
        ]

    def __str__(self):
        return f"{self.nombre} {self.apellido}"


class Service(models.Model):
    """
    Billable service catalog.

    Variable-price services accept a price chosen at attachment time within
    [precio_minimo, precio_maximo]; fixed ones always use precio_base.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    nombre = models.CharField(max_length=255)
    precio_base = models.DecimalField(max_digits=12, decimal_places=2)
    precio_variable = models.BooleanField(default=False)
    precio_minimo = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    precio_maximo = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    activo = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'servicio'
        verbose_name = 'Service'
        verbose_name_plural = 'Services'
        constraints = [
            models.CheckConstraint(
                condition=Q(precio_base__gte=0),
                name='servicio_precio_base_non_negative'
            ),
        ]

    def __str__(self):
        return self.nombre

    def resolve_price(self, requested=None):
        """
        Price to snapshot for this service.

        Raises:
            ValueError: requested price outside the allowed range
        """
        if not self.precio_variable or requested is None:
            return self.precio_base

        requested = Decimal(requested)
        low = self.precio_minimo if self.precio_minimo is not None else Decimal('0')
        high = self.precio_maximo
        if requested < low or (high is not None and requested > high):
            raise ValueError(f'El precio debe estar entre {low} y {high}')
        return requested


# ============================================================================
# Appointments
# ============================================================================

class AppointmentQuerySet(models.QuerySet):

    def active(self):
        return self.filter(estado__in=ACTIVE_APPOINTMENT_STATUSES)

    def overlapping(self, doctor_id, start, end, exclude_id=None):
        """
        Active appointments of `doctor_id` whose [start, end) intersects
        the given interval: (start1 < end2) AND (start2 < end1).
        Back-to-back intervals do not overlap.
        """
        qs = self.active().filter(
            doctor_id=doctor_id,
            fecha_hora_inicio__lt=end,
            fecha_hora_fin__gt=start,
        )
        if exclude_id is not None:
            qs = qs.exclude(pk=exclude_id)
        return qs


class Appointment(models.Model):
    """
    Scheduled doctor-patient encounter.

    INVARIANT: for a fixed doctor, no two active appointments overlap.
    Enforced by the booking protocol in clinical.services and, on
    Postgres, by the `cita_sin_solapamiento` exclusion constraint.
    """
    MOTIVO_MAX_LENGTH = 500
    NOTAS_MAX_LENGTH = 1000

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        Patient,
        on_delete=models.PROTECT,
        related_name='appointments'
    )
    doctor = models.ForeignKey(
        'authz.Doctor',
        on_delete=models.PROTECT,
        related_name='appointments'
    )
    fecha_hora_inicio = models.DateTimeField()
    fecha_hora_fin = models.DateTimeField()
    estado = models.CharField(
        max_length=20,
        choices=AppointmentStatusChoices.choices,
        default=AppointmentStatusChoices.PROGRAMADA
    )
    motivo = models.CharField(max_length=MOTIVO_MAX_LENGTH, blank=True)
    notas = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='appointments_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AppointmentQuerySet.as_manager()

    class Meta:
        db_table = 'cita'
        verbose_name = 'Appointment'
        verbose_name_plural = 'Appointments'
        indexes = [
            models.Index(fields=['doctor', 'fecha_hora_inicio'], name='idx_cita_doctor_inicio'),
            models.Index(fields=['patient'], name='idx_cita_paciente'),
            models.Index(fields=['estado'], name='idx_cita_estado'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(fecha_hora_fin__gt=F('fecha_hora_inicio')),
                name='cita_fin_despues_de_inicio'
            ),
        ]

    def __str__(self):
        return f"Cita {self.fecha_hora_inicio:%Y-%m-%d %H:%M} - {self.patient}"

    @property
    def duracion_minutos(self):
        return int((self.fecha_hora_fin - self.fecha_hora_inicio).total_seconds() // 60)

    @property
    def is_terminal(self):
        return APPOINTMENT_TRANSITIONS.is_terminal(self.estado)

    def available_transitions(self):
        return APPOINTMENT_TRANSITIONS.available_transitions(self.estado)

    def clean(self):
        """Field-level rules, also surfaced in the admin."""
        errors = {}

        if self.fecha_hora_inicio and self.fecha_hora_fin:
            if self.fecha_hora_fin <= self.fecha_hora_inicio:
                errors['fecha_hora_fin'] = 'La hora de fin debe ser posterior a la hora de inicio'

        if self.notas and len(self.notas) > self.NOTAS_MAX_LENGTH:
            errors['notas'] = f'Las notas no pueden exceder {self.NOTAS_MAX_LENGTH} caracteres'

        if errors:
            raise ValidationError(errors)


class AppointmentService(models.Model):
    """
    Billable line attached to an appointment.

    Name and unit price are snapshots taken at attachment time; later
    catalog edits never change them. Once `pagado` the row is immutable
    (it can only return to `pendiente` when its payment is voided).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    appointment = models.ForeignKey(
        Appointment,
        on_delete=models.CASCADE,
        related_name='services'
    )
    service = models.ForeignKey(
        Service,
        on_delete=models.PROTECT,
        related_name='appointment_services'
    )
    nombre_servicio = models.CharField(max_length=255)
    precio_unitario = models.DecimalField(max_digits=12, decimal_places=2)
    cantidad = models.PositiveIntegerField(default=1)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    estado_pago = models.CharField(
        max_length=20,
        choices=PaymentStatusChoices.choices,
        default=PaymentStatusChoices.PENDIENTE
    )
    payment_item = models.OneToOneField(
        'payments.PaymentItem',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='appointment_service'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'cita_servicio'
        verbose_name = 'Appointment Service'
        verbose_name_plural = 'Appointment Services'
        indexes = [
            models.Index(fields=['estado_pago'], name='idx_cita_servicio_pago'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(cantidad__gte=1),
                name='cita_servicio_cantidad_positive'
            ),
            models.CheckConstraint(
                condition=Q(precio_unitario__gte=0),
                name='cita_servicio_precio_non_negative'
            ),
        ]

    def __str__(self):
        return f"{self.nombre_servicio} x{self.cantidad}"

    def save(self, *args, **kwargs):
        self.subtotal = self.precio_unitario * self.cantidad
        super().save(*args, **kwargs)

    @property
    def is_paid(self):
        return self.estado_pago == PaymentStatusChoices.PAGADO

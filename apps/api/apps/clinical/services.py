"""
Clinical services: overlap-safe booking, appointment status machine and
billable services attached to appointments.

BOOKING PROTOCOL (create, update, reschedule):
1. Open a transaction and lock the doctor row (SELECT ... FOR UPDATE);
   concurrent bookings for the same doctor queue behind the lock
2. Re-read the doctor's active appointments overlapping [start, end)
3. Write the appointment
On Postgres the `cita_sin_solapamiento` exclusion constraint backs the
same rule at the storage boundary; its violation (23P01) is translated
to SlotUnavailable like the application-level check. Never retried
automatically: choosing another time is a human decision.
"""
from collections import OrderedDict
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.authz.context import require_role, require_staff
from apps.authz.models import Doctor, RoleChoices
from apps.core.db_errors import translate_integrity_error
from apps.core.exceptions import (
    ConflictError,
    InvalidState,
    NotFound,
    SlotUnavailable,
    ValidationFailed,
)
from apps.core.observability import get_sanitized_logger, log_domain_event, metrics
from apps.core.observability.events import log_status_transition
from apps.core.observability.tracing import trace_span

from .models import (
    ACTIVE_APPOINTMENT_STATUSES,
    APPOINTMENT_TRANSITIONS,
    INACTIVE_APPOINTMENT_STATUSES,
    Appointment,
    AppointmentService,
    AppointmentStatusChoices,
    Patient,
    PaymentStatusChoices,
    Service,
)

logger = get_sanitized_logger(__name__)

APPOINTMENT_FOREIGN_KEYS = {
    'patient_id': ('patient_id', 'El paciente seleccionado no existe'),
    'doctor_id': ('doctor_id', 'El doctor seleccionado no existe'),
}

UPDATABLE_APPOINTMENT_FIELDS = (
    'patient_id', 'doctor_id', 'fecha_hora_inicio', 'fecha_hora_fin', 'motivo', 'notas',
)
_SCHEDULE_FIELDS = {'doctor_id', 'fecha_hora_inicio', 'fecha_hora_fin'}


# ============================================================================
# Helpers
# ============================================================================

def _field_error(field, message):
    return ValidationFailed(message, field_errors={field: [message]})


def _validate_interval(start, end):
    if start is None:
        raise _field_error('fecha_hora_inicio', 'La fecha de inicio es requerida')
    if end is None:
        raise _field_error('fecha_hora_fin', 'La fecha de fin es requerida')
    if timezone.is_naive(start) or timezone.is_naive(end):
        raise _field_error('fecha_hora_inicio', 'Las fechas deben incluir zona horaria')
    if end <= start:
        raise _field_error('fecha_hora_fin', 'La hora de fin debe ser posterior a la hora de inicio')


def _validate_texts(motivo, notas):
    if motivo and len(motivo) > Appointment.MOTIVO_MAX_LENGTH:
        raise _field_error('motivo', f'El motivo no puede exceder {Appointment.MOTIVO_MAX_LENGTH} caracteres')
    if notas and len(notas) > Appointment.NOTAS_MAX_LENGTH:
        raise _field_error('notas', f'Las notas no pueden exceder {Appointment.NOTAS_MAX_LENGTH} caracteres')


def _get_patient(patient_id):
    try:
        return Patient.objects.get(pk=patient_id)
    except (Patient.DoesNotExist, ValueError, DjangoValidationError):
        raise _field_error('patient_id', 'El paciente seleccionado no existe')


def _lock_doctor(doctor_id):
    """Serialize bookings for one doctor for the rest of the transaction."""
    try:
        doctor = Doctor.objects.select_for_update().get(pk=doctor_id)
    except (Doctor.DoesNotExist, ValueError, DjangoValidationError):
        raise _field_error('doctor_id', 'El doctor seleccionado no existe')
    if not doctor.activo:
        raise _field_error('doctor_id', 'El doctor seleccionado no está activo')
    return doctor


def _get_appointment_for_update(appointment_id):
    try:
        return Appointment.objects.select_for_update().get(pk=appointment_id)
    except (Appointment.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFound('Cita no encontrada')


def _save_booking(appointment, operation, update_fields=None):
    """
    Steps 1-3 of the booking protocol. Must run inside transaction.atomic().

    Raises:
        SlotUnavailable: another active appointment of the doctor overlaps
    """
    _lock_doctor(appointment.doctor_id)

    if appointment.estado in ACTIVE_APPOINTMENT_STATUSES:
        clash = Appointment.objects.overlapping(
            appointment.doctor_id,
            appointment.fecha_hora_inicio,
            appointment.fecha_hora_fin,
            exclude_id=appointment.pk if not appointment._state.adding else None,
        ).first()
        if clash is not None:
            metrics.appointment_booking_total.labels(operation=operation, result='slot_unavailable').inc()
            log_domain_event(
                f'appointment.{operation}',
                entity_type='Appointment',
                entity_id=str(appointment.pk),
                entity_ids={'doctor_id': str(appointment.doctor_id), 'conflicting_id': str(clash.pk)},
                result='blocked',
                reason='slot_unavailable',
            )
            raise SlotUnavailable()

    try:
        # Savepoint: a constraint violation must not poison the outer transaction
        with transaction.atomic():
            appointment.save(update_fields=update_fields)
    except IntegrityError as e:
        error = translate_integrity_error(e, foreign_keys=APPOINTMENT_FOREIGN_KEYS)
        if isinstance(error, SlotUnavailable):
            metrics.appointment_booking_total.labels(operation=operation, result='slot_unavailable').inc()
        raise error from e

    metrics.appointment_booking_total.labels(operation=operation, result='success').inc()


# ============================================================================
# Booking
# ============================================================================

def create_appointment(
    ctx,
    patient_id,
    doctor_id,
    fecha_hora_inicio,
    fecha_hora_fin,
    motivo='',
    notas='',
):
    """
    Book a new appointment in `programada`.

    Args:
        ctx: AuthContext of the caller (any staff role)
        patient_id, doctor_id: references (must exist)
        fecha_hora_inicio, fecha_hora_fin: aware datetimes, end > start
        motivo: up to 500 chars
        notas: up to 1000 chars

    Returns:
        Appointment

    Raises:
        Unauthenticated, Unauthorized, ValidationFailed, SlotUnavailable
    """
    ctx = require_staff(ctx)
    _validate_interval(fecha_hora_inicio, fecha_hora_fin)
    _validate_texts(motivo, notas)

    with trace_span('create_appointment', attributes={'doctor_id': doctor_id}):
        with transaction.atomic():
            patient = _get_patient(patient_id)
            appointment = Appointment(
                patient=patient,
                doctor_id=doctor_id,
                fecha_hora_inicio=fecha_hora_inicio,
                fecha_hora_fin=fecha_hora_fin,
                estado=AppointmentStatusChoices.PROGRAMADA,
                motivo=motivo or '',
                notas=notas or '',
                created_by_id=ctx.user_id,
            )
            _save_booking(appointment, 'create')

    log_domain_event(
        'appointment.created',
        entity_type='Appointment',
        entity_id=str(appointment.id),
        entity_ids={'doctor_id': str(appointment.doctor_id), 'patient_id': str(patient.id)},
        duracion_minutos=appointment.duracion_minutos,
    )
    return appointment


def create_appointment_with_new_patient(ctx, patient_data, **appointment_fields):
    """
    Register a patient and book their first appointment atomically.

    A booking failure (e.g. SlotUnavailable) rolls the patient back too.
    """
    ctx = require_staff(ctx)

    with transaction.atomic():
        cedula = (patient_data.get('cedula') or '').strip()
        if Patient.objects.filter(cedula=cedula).exists():
            raise _field_error('cedula', 'Ya existe un paciente con esta cédula')

        patient = Patient.objects.create(
            nombre=patient_data['nombre'].strip(),
            apellido=patient_data['apellido'].strip(),
            cedula=cedula,
            telefono=patient_data.get('telefono') or '',
            email=patient_data.get('email') or '',
            fecha_nacimiento=patient_data.get('fecha_nacimiento'),
            created_by_id=ctx.user_id,
        )
        appointment = create_appointment(ctx, patient_id=patient.id, **appointment_fields)

    log_domain_event(
        'patient.created_with_appointment',
        entity_type='Patient',
        entity_id=str(patient.id),
        entity_ids={'appointment_id': str(appointment.id)},
    )
    return appointment


def update_appointment(ctx, appointment_id, operation='update', **changes):
    """
    Edit an appointment that is not in a terminal state.

    Changes to doctor or times go through the booking protocol; other
    fields are plain updates.

    Raises:
        NotFound, InvalidState, ValidationFailed, SlotUnavailable
    """
    ctx = require_staff(ctx)
    unknown = set(changes) - set(UPDATABLE_APPOINTMENT_FIELDS)
    if unknown:
        raise ValidationFailed(f'Campos no editables: {", ".join(sorted(unknown))}')

    with trace_span(f'{operation}_appointment', attributes={'appointment_id': appointment_id}):
        with transaction.atomic():
            appointment = _get_appointment_for_update(appointment_id)
            if appointment.is_terminal:
                raise InvalidState(
                    f'No se puede modificar una cita en estado "{appointment.get_estado_display()}"'
                )

            if 'patient_id' in changes:
                appointment.patient = _get_patient(changes.pop('patient_id'))
            for field, value in changes.items():
                setattr(appointment, field, value)

            _validate_interval(appointment.fecha_hora_inicio, appointment.fecha_hora_fin)
            _validate_texts(appointment.motivo, appointment.notas)

            if _SCHEDULE_FIELDS & set(changes):
                _save_booking(appointment, operation)
            else:
                appointment.save()

    log_domain_event(
        f'appointment.{operation}',
        entity_type='Appointment',
        entity_id=str(appointment.id),
        changed_fields=sorted(changes),
    )
    return appointment


def reschedule_appointment(ctx, appointment_id, fecha_hora_inicio, fecha_hora_fin):
    """Time-only change (calendar drag and drop), same protocol as booking."""
    return update_appointment(
        ctx,
        appointment_id,
        operation='reschedule',
        fecha_hora_inicio=fecha_hora_inicio,
        fecha_hora_fin=fecha_hora_fin,
    )


# ============================================================================
# Status machine
# ============================================================================

def update_appointment_status(ctx, appointment_id, new_status):
    """
    Move an appointment to `new_status`.

    The current status is re-read from storage immediately before
    validation, and the write is a compare-and-swap on that status: if a
    concurrent request changed it in between, zero rows match and the
    caller gets ConflictError instead of silently overwriting.

    Raises:
        NotFound, ValidationFailed, InvalidTransition, ConflictError
    """
    ctx = require_staff(ctx)
    if new_status not in AppointmentStatusChoices.values:
        raise _field_error('estado', 'Estado de cita inválido')

    current = Appointment.objects.filter(pk=appointment_id).values_list('estado', flat=True).first()
    if current is None:
        raise NotFound('Cita no encontrada')

    if not APPOINTMENT_TRANSITIONS.can_transition(current, new_status):
        metrics.appointment_transition_total.labels(
            from_status=current, to_status=new_status, result='invalid_transition'
        ).inc()
        log_status_transition('Appointment', appointment_id, current, new_status, result='blocked')
    APPOINTMENT_TRANSITIONS.ensure_transition(current, new_status)

    updated = Appointment.objects.filter(pk=appointment_id, estado=current).update(
        estado=new_status,
        updated_at=timezone.now(),
    )
    if updated == 0:
        metrics.appointment_transition_total.labels(
            from_status=current, to_status=new_status, result='conflict'
        ).inc()
        log_status_transition('Appointment', appointment_id, current, new_status, result='conflict')
        raise ConflictError('La cita fue modificada por otro usuario. Recargue e intente de nuevo.')

    metrics.appointment_transition_total.labels(
        from_status=current, to_status=new_status, result='success'
    ).inc()
    log_status_transition('Appointment', appointment_id, current, new_status, user_id=str(ctx.user_id))
    return Appointment.objects.get(pk=appointment_id)


def delete_appointment(ctx, appointment_id):
    """Admin only. Appointments with paid services are kept for the record."""
    require_role(ctx, [RoleChoices.ADMIN], 'Solo Admin puede eliminar citas')

    with transaction.atomic():
        appointment = _get_appointment_for_update(appointment_id)
        if appointment.services.filter(estado_pago=PaymentStatusChoices.PAGADO).exists():
            raise InvalidState('No se puede eliminar una cita con servicios pagados')
        appointment.delete()

    log_domain_event('appointment.deleted', entity_type='Appointment', entity_id=str(appointment_id))


# ============================================================================
# Appointment services
# ============================================================================

def add_service_to_appointment(ctx, appointment_id, service_id, cantidad=1, precio=None):
    """
    Attach a catalog service, snapshotting its name and price.

    For variable-price services `precio` must fall within the service's
    range; fixed-price services ignore it.
    """
    require_staff(ctx)
    if cantidad is None or int(cantidad) < 1:
        raise _field_error('cantidad', 'La cantidad debe ser al menos 1')

    with transaction.atomic():
        appointment = _get_appointment_for_update(appointment_id)
        if appointment.estado in INACTIVE_APPOINTMENT_STATUSES:
            raise InvalidState(
                f'No se pueden agregar servicios a una cita en estado "{appointment.get_estado_display()}"'
            )

        try:
            service = Service.objects.get(pk=service_id, activo=True)
        except (Service.DoesNotExist, ValueError, DjangoValidationError):
            raise _field_error('service_id', 'El servicio seleccionado no existe o está inactivo')

        try:
            unit_price = service.resolve_price(precio)
        except ValueError as e:
            raise _field_error('precio', str(e))

        line = AppointmentService.objects.create(
            appointment=appointment,
            service=service,
            nombre_servicio=service.nombre,
            precio_unitario=unit_price,
            cantidad=int(cantidad),
        )

    log_domain_event(
        'appointment.service_added',
        entity_type='AppointmentService',
        entity_id=str(line.id),
        entity_ids={'appointment_id': str(appointment.id), 'service_id': str(service.id)},
        subtotal=str(line.subtotal),
    )
    return line


def remove_service_from_appointment(ctx, appointment_service_id):
    require_staff(ctx)

    with transaction.atomic():
        try:
            line = AppointmentService.objects.select_for_update().get(pk=appointment_service_id)
        except (AppointmentService.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFound('Servicio no encontrado')
        if line.is_paid:
            raise InvalidState('No se puede eliminar un servicio que ya fue pagado')
        line.delete()

    log_domain_event(
        'appointment.service_removed',
        entity_type='AppointmentService',
        entity_id=str(appointment_service_id),
    )


def get_pending_services_grouped(patient_id):
    """
    Unpaid services of a patient grouped by appointment, oldest first.

    Returns:
        list of {appointment_id, fecha_hora_inicio, doctor, estado, services: [...], subtotal}
    """
    lines = (
        AppointmentService.objects
        .filter(appointment__patient_id=patient_id, estado_pago=PaymentStatusChoices.PENDIENTE)
        .select_related('appointment', 'appointment__doctor')
        .order_by('appointment__fecha_hora_inicio', 'created_at')
    )

    groups = OrderedDict()
    for line in lines:
        appointment = line.appointment
        group = groups.setdefault(appointment.id, {
            'appointment_id': str(appointment.id),
            'fecha_hora_inicio': appointment.fecha_hora_inicio,
            'doctor': appointment.doctor.nombre,
            'estado': appointment.estado,
            'services': [],
            'subtotal': Decimal('0.00'),
        })
        group['services'].append({
            'id': str(line.id),
            'service_id': str(line.service_id),
            'nombre_servicio': line.nombre_servicio,
            'precio_unitario': line.precio_unitario,
            'cantidad': line.cantidad,
            'subtotal': line.subtotal,
        })
        group['subtotal'] += line.subtotal

    return list(groups.values())

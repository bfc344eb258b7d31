"""
Payment services: creation with gapless invoice numbers, and voiding.

TRANSACTION SAFETY:
- create_payment runs as one atomic unit: counter increment, payment,
  items, methods and the settlement of appointment services either all
  happen or none do
- The `factura` counter row stays locked until commit, so concurrent
  payments are numbered one after another
- Lock contention is retried once (core.numbering.retry_on_contention)
"""
import time

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.authz.context import ELEVATED_ROLES, require_role
from apps.authz.models import RoleChoices
from apps.clinical.models import Appointment, AppointmentService, Patient, PaymentStatusChoices, Service
from apps.core.db_errors import translate_integrity_error
from apps.core.exceptions import InvalidState, NotFound, ValidationFailed
from apps.core.models import SequenceNameChoices
from apps.core.numbering import format_document_number, next_sequence_value, retry_on_contention
from apps.core.observability import get_sanitized_logger, log_domain_event, metrics
from apps.core.observability.events import log_consistency_checkpoint, log_status_transition
from apps.core.observability.tracing import add_span_attribute, trace_span
from apps.core.validation import require_justification

from .models import PAYMENT_TRANSITIONS, Payment, PaymentItem, PaymentMethod, PaymentStateChoices
from .rules import money, validate_payment_request

logger = get_sanitized_logger(__name__)

INVOICE_PREFIX = 'FAC'

PAYMENT_CREATOR_ROLES = frozenset({RoleChoices.ADMIN, RoleChoices.MEDICO, RoleChoices.SECRETARIA})

PAYMENT_FOREIGN_KEYS = {
    'patient_id': ('patient_id', 'El paciente seleccionado no existe'),
    'service_id': ('items', 'Uno de los servicios seleccionados no existe'),
    'appointment_id': ('appointment_id', 'La cita seleccionada no existe'),
}


def _field_error(field, message):
    return ValidationFailed(message, field_errors={field: [message]})


def _get_service(service_id, index):
    try:
        return Service.objects.get(pk=service_id)
    except (Service.DoesNotExist, ValueError, DjangoValidationError):
        raise _field_error(f'items.{index}.service_id', 'El servicio seleccionado no existe')


def _settle_appointment_service(item_data, index, patient_id):
    """
    Lock and check the appointment service an item pays for.

    The item must match the line's snapshot: a stale form cannot bill a
    different price than the one attached to the appointment.
    """
    try:
        line = (
            AppointmentService.objects
            .select_for_update()
            .select_related('appointment')
            .get(pk=item_data['appointment_service_id'])
        )
    except (AppointmentService.DoesNotExist, ValueError, DjangoValidationError):
        raise _field_error(f'items.{index}.appointment_service_id', 'Servicio de cita no encontrado')

    if line.appointment.patient_id != patient_id:
        raise _field_error(
            f'items.{index}.appointment_service_id',
            'El servicio no pertenece a una cita de este paciente'
        )
    if line.estado_pago != PaymentStatusChoices.PENDIENTE:
        raise _field_error(f'items.{index}.appointment_service_id', 'El servicio ya fue pagado')
    if (
        str(line.service_id) != str(item_data['service_id'])
        or line.cantidad != int(item_data['cantidad'])
        or line.precio_unitario != money(item_data['precio_unitario'])
    ):
        raise _field_error(
            f'items.{index}.appointment_service_id',
            'El servicio de la cita cambió. Recargue e intente de nuevo.'
        )
    return line


@retry_on_contention('create_payment')
def create_payment(
    ctx,
    patient_id,
    items,
    methods,
    descuento=0,
    descuento_justificacion='',
    appointment_id=None,
    notas='',
):
    """
    Register a payment and assign the next invoice number.

    Args:
        ctx: AuthContext (admin, medico or secretaria)
        patient_id: Patient paying
        items: [{service_id, cantidad, precio_unitario, appointment_service_id?}]
        methods: [{metodo, monto, comprobante_path?}]
        descuento: Discount amount (needs justification when > 0)
        appointment_id: Optional appointment the payment is filed under

    Returns:
        Payment

    Raises:
        Unauthenticated, Unauthorized, ValidationFailed, ConflictError
    """
    ctx = require_role(ctx, PAYMENT_CREATOR_ROLES, 'No tiene permisos para registrar pagos')
    totals = validate_payment_request(items, methods, descuento, descuento_justificacion)

    start_time = time.time()
    with trace_span('create_payment', attributes={'patient_id': patient_id, 'items': len(items)}):
        try:
            with transaction.atomic():
                try:
                    patient = Patient.objects.get(pk=patient_id)
                except (Patient.DoesNotExist, ValueError, DjangoValidationError):
                    raise _field_error('patient_id', 'El paciente seleccionado no existe')

                if appointment_id is not None and not Appointment.objects.filter(
                    pk=appointment_id, patient=patient
                ).exists():
                    raise _field_error('appointment_id', 'La cita no pertenece a este paciente')

                lines = {}
                for index, item in enumerate(items):
                    if item.get('appointment_service_id'):
                        lines[index] = _settle_appointment_service(item, index, patient.id)

                secuencia = next_sequence_value(SequenceNameChoices.INVOICE)
                payment = Payment.objects.create(
                    secuencia=secuencia,
                    numero_factura=format_document_number(INVOICE_PREFIX, secuencia),
                    patient=patient,
                    appointment_id=appointment_id,
                    subtotal=totals.subtotal,
                    descuento=totals.descuento,
                    descuento_justificacion=(descuento_justificacion or '').strip(),
                    total=totals.total,
                    notas=notas or '',
                    created_by_id=ctx.user_id,
                )

                for index, item in enumerate(items):
                    service = _get_service(item['service_id'], index)
                    precio = money(item['precio_unitario'])
                    payment_item = PaymentItem.objects.create(
                        payment=payment,
                        position=index,
                        service=service,
                        nombre_servicio=lines[index].nombre_servicio if index in lines else service.nombre,
                        precio_unitario=precio,
                        cantidad=int(item['cantidad']),
                        subtotal=precio * int(item['cantidad']),
                    )
                    if index in lines:
                        line = lines[index]
                        line.estado_pago = PaymentStatusChoices.PAGADO
                        line.payment_item = payment_item
                        line.save(update_fields=['estado_pago', 'payment_item'])

                PaymentMethod.objects.bulk_create([
                    PaymentMethod(
                        payment=payment,
                        position=index,
                        metodo=method['metodo'],
                        monto=money(method['monto']),
                        comprobante_path=(method.get('comprobante_path') or '').strip(),
                    )
                    for index, method in enumerate(methods)
                ])
        except IntegrityError as e:
            metrics.payments_total.labels(operation='create', result='error').inc()
            raise translate_integrity_error(
                e,
                foreign_keys=PAYMENT_FOREIGN_KEYS,
                unique_message='El número de factura ya fue asignado. Intente de nuevo.',
            ) from e

        add_span_attribute('numero_factura', payment.numero_factura)

    metrics.payments_total.labels(operation='create', result='success').inc()
    metrics.payment_duration_seconds.observe(time.time() - start_time)

    log_consistency_checkpoint(
        'payment_balance',
        entity_ids={'payment_id': str(payment.id)},
        checks_passed={
            'total_equals_subtotal_minus_discount': payment.total == payment.subtotal - payment.descuento,
            'methods_match_total': sum(money(m['monto']) for m in methods) == payment.total,
        },
        total=str(payment.total),
    )
    log_domain_event(
        'payment.created',
        entity_type='Payment',
        entity_id=str(payment.id),
        entity_ids={'patient_id': str(patient_id)},
        numero_factura=payment.numero_factura,
        total=str(payment.total),
        settled_services=len(lines),
    )
    return payment


def void_payment(ctx, payment_id, justificacion):
    """
    Void a payment. Elevated roles only; the payment row is kept.

    Settled appointment services go back to `pendiente` so they can be
    billed again.

    Raises:
        Unauthorized, ValidationFailed, NotFound, InvalidState
    """
    ctx = require_role(ctx, ELEVATED_ROLES, 'Solo Admin o Médico pueden anular pagos')
    justificacion = require_justification(justificacion)

    with trace_span('void_payment', attributes={'payment_id': payment_id}):
        with transaction.atomic():
            try:
                payment = Payment.objects.select_for_update().get(pk=payment_id)
            except (Payment.DoesNotExist, ValueError, DjangoValidationError):
                raise NotFound('Pago no encontrado')

            if payment.is_voided:
                metrics.payments_total.labels(operation='void', result='already_voided').inc()
                raise InvalidState('El pago ya fue anulado')
            PAYMENT_TRANSITIONS.ensure_transition(payment.estado, PaymentStateChoices.ANULADO)

            payment.estado = PaymentStateChoices.ANULADO
            payment.anulado_por_id = ctx.user_id
            payment.anulado_at = timezone.now()
            payment.anulacion_justificacion = justificacion
            payment.save(update_fields=['estado', 'anulado_por', 'anulado_at', 'anulacion_justificacion'])

            reverted = AppointmentService.objects.filter(payment_item__payment=payment).update(
                estado_pago=PaymentStatusChoices.PENDIENTE,
                payment_item=None,
            )

    metrics.payments_total.labels(operation='void', result='success').inc()
    log_status_transition(
        'Payment',
        payment.id,
        PaymentStateChoices.ACTIVO,
        PaymentStateChoices.ANULADO,
        numero_factura=payment.numero_factura,
        reverted_services=reverted,
    )
    return payment

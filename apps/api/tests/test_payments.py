"""
Tests for payments: balance rules, gapless invoice numbering, settlement
of appointment services and voiding.
"""
import uuid
from decimal import Decimal

import pytest
from django.db import IntegrityError, OperationalError

from apps.clinical.models import PaymentStatusChoices
from apps.clinical.services import add_service_to_appointment, create_appointment
from apps.core.exceptions import ConflictError, InvalidState, NotFound, Unauthorized, ValidationFailed
from apps.core.models import SequenceCounter, SequenceNameChoices
from apps.payments import services as payment_services
from apps.payments.models import Payment, PaymentItem, PaymentMethod, PaymentStateChoices
from apps.payments.rules import compute_subtotal, money, validate_payment_request, validate_tender
from apps.payments.services import create_payment, void_payment

from helpers import at, cash

PRICE = Decimal('150000.00')


def service_item(service, precio=PRICE, cantidad=1, **extra):
    return {'service_id': service.id, 'cantidad': cantidad, 'precio_unitario': precio, **extra}


def pay(ctx, patient, service, **kwargs):
    kwargs.setdefault('items', [service_item(service)])
    kwargs.setdefault('methods', cash(PRICE))
    return create_payment(ctx, patient_id=patient.id, **kwargs)


class TestPaymentRules:
    """Pure rules, no database."""

    def test_money_quantizes_to_cents(self):
        assert money('10.005') == Decimal('10.01')
        assert money(3) == Decimal('3.00')

    def test_money_rejects_garbage(self):
        with pytest.raises(ValueError):
            money('diez')

    def test_subtotal(self):
        items = [{'cantidad': 2, 'precio_unitario': '100.00'}, {'cantidad': 1, 'precio_unitario': '50.50'}]
        assert compute_subtotal(items) == Decimal('250.50')

    def test_tender_within_tolerance(self):
        validate_tender(cash('100.01'), Decimal('100.00'))

    def test_tender_beyond_tolerance(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_tender(cash('100.02'), Decimal('100.00'))
        assert 'methods' in exc_info.value.field_errors

    @pytest.mark.parametrize('metodo', ['tarjeta', 'transferencia', 'nequi'])
    def test_electronic_method_requires_receipt(self, metodo):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_tender([{'metodo': metodo, 'monto': '100.00'}], Decimal('100.00'))
        assert 'methods.0.comprobante_path' in exc_info.value.field_errors

    def test_electronic_method_with_receipt(self):
        validate_tender(
            [{'metodo': 'tarjeta', 'monto': '100.00', 'comprobante_path': 'pagos/voucher.jpg'}],
            Decimal('100.00'),
        )

    def test_non_positive_amount(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_tender(cash('0'), Decimal('0.00'))
        assert 'methods.0.monto' in exc_info.value.field_errors

    def test_discount_needs_justification(self):
        items = [{'cantidad': 1, 'precio_unitario': '100.00'}]
        with pytest.raises(ValidationFailed) as exc_info:
            validate_payment_request(items, cash('90.00'), descuento='10.00', descuento_justificacion='ok')
        assert 'descuento_justificacion' in exc_info.value.field_errors

    def test_discount_cannot_exceed_subtotal(self):
        items = [{'cantidad': 1, 'precio_unitario': '100.00'}]
        with pytest.raises(ValidationFailed) as exc_info:
            validate_payment_request(items, cash('1.00'), descuento='150.00', descuento_justificacion='Cortesía')
        assert 'descuento' in exc_info.value.field_errors

    def test_discounted_totals(self):
        items = [{'cantidad': 2, 'precio_unitario': '100.00'}]
        totals = validate_payment_request(items, cash('180.00'), descuento='20.00', descuento_justificacion='Cortesía')
        assert totals.subtotal == Decimal('200.00')
        assert totals.descuento == Decimal('20.00')
        assert totals.total == Decimal('180.00')


@pytest.mark.django_db
class TestCreatePayment:

    def test_payment_is_numbered_and_stored(self, secretaria_ctx, patient, service):
        payment = pay(secretaria_ctx, patient, service)

        assert payment.numero_factura == 'FAC-000001'
        assert payment.total == PRICE
        assert payment.estado == PaymentStateChoices.ACTIVO
        assert payment.items.get().nombre_servicio == service.nombre
        assert payment.methods.get().monto == PRICE

    def test_split_tender(self, secretaria_ctx, patient, service):
        payment = pay(
            secretaria_ctx, patient, service,
            methods=[
                {'metodo': 'efectivo', 'monto': Decimal('100000.00')},
                {'metodo': 'nequi', 'monto': Decimal('50000.00'), 'comprobante_path': 'pagos/nequi.png'},
            ],
        )
        assert list(payment.methods.order_by('position').values_list('metodo', flat=True)) == ['efectivo', 'nequi']

    def test_mismatched_tender_is_rejected_before_storage(self, secretaria_ctx, patient, service):
        """
        Scenario: total 150000 paid with 140000 in cash.

        Expected: ValidationFailed on `methods`; nothing stored and no
        invoice number consumed.
        """
        with pytest.raises(ValidationFailed) as exc_info:
            pay(secretaria_ctx, patient, service, methods=cash(Decimal('140000.00')))

        assert 'methods' in exc_info.value.field_errors
        assert Payment.objects.count() == 0
        assert not SequenceCounter.objects.filter(name=SequenceNameChoices.INVOICE, last_value__gt=0).exists()

    def test_discount_is_applied(self, secretaria_ctx, patient, service):
        payment = pay(
            secretaria_ctx, patient, service,
            methods=cash(Decimal('135000.00')),
            descuento=Decimal('15000.00'),
            descuento_justificacion='Paciente frecuente',
        )
        assert payment.subtotal == PRICE
        assert payment.total == Decimal('135000.00')
        assert payment.descuento_justificacion == 'Paciente frecuente'

    def test_enfermera_cannot_register_payments(self, enfermera_ctx, patient, service):
        with pytest.raises(Unauthorized):
            pay(enfermera_ctx, patient, service)

    def test_unknown_patient(self, secretaria_ctx, service):
        with pytest.raises(ValidationFailed) as exc_info:
            create_payment(secretaria_ctx, patient_id=uuid.uuid4(), items=[service_item(service)], methods=cash(PRICE))
        assert 'patient_id' in exc_info.value.field_errors


@pytest.mark.django_db
class TestInvoiceNumbering:

    def test_sequential_payments_are_gapless(self, secretaria_ctx, patient, service):
        numbers = [pay(secretaria_ctx, patient, service).numero_factura for _ in range(5)]
        assert numbers == ['FAC-000001', 'FAC-000002', 'FAC-000003', 'FAC-000004', 'FAC-000005']

    def test_failed_payment_does_not_consume_a_number(self, secretaria_ctx, patient, service):
        """
        Scenario: the second payment fails after its number was drawn
        (an item references a service that does not exist).

        Expected: the transaction rolls back with the counter, so the
        next successful payment takes the number the failed one drew.
        """
        first = pay(secretaria_ctx, patient, service)

        ghost = {'service_id': uuid.uuid4(), 'cantidad': 1, 'precio_unitario': PRICE}
        with pytest.raises(ValidationFailed) as exc_info:
            pay(secretaria_ctx, patient, service, items=[ghost])
        assert 'items.0.service_id' in exc_info.value.field_errors

        second = pay(secretaria_ctx, patient, service)

        assert first.numero_factura == 'FAC-000001'
        assert second.numero_factura == 'FAC-000002'
        assert Payment.objects.count() == 2
        assert PaymentItem.objects.count() == 2
        assert PaymentMethod.objects.count() == 2

    def test_storage_conflict_is_not_retried_and_consumes_nothing(self, monkeypatch, secretaria_ctx, patient, service):
        def fail(*args, **kwargs):
            raise IntegrityError('duplicate key value violates unique constraint')

        monkeypatch.setattr(PaymentMethod.objects, 'bulk_create', fail)
        with pytest.raises(ConflictError):
            pay(secretaria_ctx, patient, service)
        assert Payment.objects.count() == 0

        monkeypatch.undo()
        assert pay(secretaria_ctx, patient, service).numero_factura == 'FAC-000001'

    def test_lock_contention_is_retried_once_then_conflict(self, monkeypatch, secretaria_ctx, patient, service):
        calls = []

        def locked(name):
            calls.append(name)
            raise OperationalError('database is locked')

        monkeypatch.setattr(payment_services, 'next_sequence_value', locked)
        with pytest.raises(ConflictError):
            pay(secretaria_ctx, patient, service)

        assert len(calls) == 2
        assert Payment.objects.count() == 0

    def test_contention_that_clears_on_retry_succeeds(self, monkeypatch, secretaria_ctx, patient, service):
        real_next = payment_services.next_sequence_value
        calls = []

        def locked_once(name):
            calls.append(name)
            if len(calls) == 1:
                raise OperationalError('deadlock detected')
            return real_next(name)

        monkeypatch.setattr(payment_services, 'next_sequence_value', locked_once)

        assert pay(secretaria_ctx, patient, service).numero_factura == 'FAC-000001'
        assert len(calls) == 2

    def test_lost_connection_is_not_retried(self, monkeypatch, secretaria_ctx, patient, service):
        """
        Scenario: the database connection drops while numbering.

        Expected: the error propagates unchanged after a single attempt,
        so the action layer reports a generic failure.
        """
        calls = []

        def disconnected(name):
            calls.append(name)
            raise OperationalError('server closed the connection unexpectedly')

        monkeypatch.setattr(payment_services, 'next_sequence_value', disconnected)
        with pytest.raises(OperationalError):
            pay(secretaria_ctx, patient, service)

        assert len(calls) == 1



@pytest.mark.django_db
class TestAppointmentSettlement:

    @pytest.fixture
    def line(self, secretaria_ctx, patient, doctor, service):
        appointment = create_appointment(
            secretaria_ctx,
            patient_id=patient.id,
            doctor_id=doctor.id,
            fecha_hora_inicio=at(10),
            fecha_hora_fin=at(10, 30),
        )
        return add_service_to_appointment(secretaria_ctx, appointment.id, service.id)

    def test_paying_a_line_settles_it(self, secretaria_ctx, patient, service, line):
        payment = pay(
            secretaria_ctx, patient, service,
            items=[service_item(service, appointment_service_id=line.id)],
            appointment_id=line.appointment_id,
        )

        line.refresh_from_db()
        assert line.estado_pago == PaymentStatusChoices.PAGADO
        assert line.payment_item.payment_id == payment.id

    def test_line_cannot_be_paid_twice(self, secretaria_ctx, patient, service, line):
        item = service_item(service, appointment_service_id=line.id)
        pay(secretaria_ctx, patient, service, items=[item])

        with pytest.raises(ValidationFailed) as exc_info:
            pay(secretaria_ctx, patient, service, items=[item])

        assert 'items.0.appointment_service_id' in exc_info.value.field_errors
        assert Payment.objects.count() == 1

    def test_stale_price_is_refused(self, secretaria_ctx, patient, service, line):
        item = service_item(service, precio=Decimal('140000.00'), appointment_service_id=line.id)
        with pytest.raises(ValidationFailed) as exc_info:
            pay(secretaria_ctx, patient, service, items=[item], methods=cash(Decimal('140000.00')))

        assert 'cambió' in exc_info.value.message
        line.refresh_from_db()
        assert line.estado_pago == PaymentStatusChoices.PENDIENTE

    def test_same_line_twice_in_one_payment_is_refused(self, secretaria_ctx, patient, service, line):
        """
        Scenario: one pending line is submitted as two items of one payment.

        Expected: the second item is flagged and nothing is billed.
        """
        item = service_item(service, appointment_service_id=line.id)
        with pytest.raises(ValidationFailed) as exc_info:
            pay(secretaria_ctx, patient, service, items=[item, dict(item)], methods=cash(PRICE * 2))

        assert 'items.1.appointment_service_id' in exc_info.value.field_errors
        assert Payment.objects.count() == 0
        line.refresh_from_db()
        assert line.estado_pago == PaymentStatusChoices.PENDIENTE

    def test_line_of_another_patient_is_refused(self, secretaria_ctx, other_patient, service, line):
        item = service_item(service, appointment_service_id=line.id)
        with pytest.raises(ValidationFailed):
            pay(secretaria_ctx, other_patient, service, items=[item])


@pytest.mark.django_db
class TestVoidPayment:

    @pytest.fixture
    def settled(self, secretaria_ctx, patient, doctor, service):
        appointment = create_appointment(
            secretaria_ctx,
            patient_id=patient.id,
            doctor_id=doctor.id,
            fecha_hora_inicio=at(10),
            fecha_hora_fin=at(10, 30),
        )
        line = add_service_to_appointment(secretaria_ctx, appointment.id, service.id)
        payment = pay(secretaria_ctx, patient, service, items=[service_item(service, appointment_service_id=line.id)])
        return payment, line

    def test_secretaria_cannot_void(self, secretaria_ctx, settled):
        payment, _ = settled
        with pytest.raises(Unauthorized):
            void_payment(secretaria_ctx, payment.id, 'Error en el cobro del servicio')

    def test_short_justification(self, admin_ctx, settled):
        payment, _ = settled
        with pytest.raises(ValidationFailed) as exc_info:
            void_payment(admin_ctx, payment.id, 'error')
        assert 'justificacion' in exc_info.value.field_errors

    def test_void_keeps_the_row_and_reverts_the_line(self, medico_ctx, settled):
        payment, line = settled

        voided = void_payment(medico_ctx, payment.id, 'Cobro duplicado por error de digitación')

        assert voided.estado == PaymentStateChoices.ANULADO
        assert voided.numero_factura == 'FAC-000001'
        assert voided.anulacion_justificacion == 'Cobro duplicado por error de digitación'
        line.refresh_from_db()
        assert line.estado_pago == PaymentStatusChoices.PENDIENTE
        assert line.payment_item is None

    def test_voided_line_can_be_billed_again(self, admin_ctx, secretaria_ctx, patient, service, settled):
        payment, line = settled
        void_payment(admin_ctx, payment.id, 'Cobro duplicado por error de digitación')

        again = pay(secretaria_ctx, patient, service, items=[service_item(service, appointment_service_id=line.id)])

        assert again.numero_factura == 'FAC-000002'

    def test_double_void_is_rejected(self, admin_ctx, settled):
        payment, _ = settled
        void_payment(admin_ctx, payment.id, 'Cobro duplicado por error de digitación')
        with pytest.raises(InvalidState):
            void_payment(admin_ctx, payment.id, 'Cobro duplicado por error de digitación')

    def test_unknown_payment(self, admin_ctx):
        with pytest.raises(NotFound):
            void_payment(admin_ctx, uuid.uuid4(), 'Cobro duplicado por error de digitación')

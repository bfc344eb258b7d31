"""
Tests for daily cash reconciliation of both registers.

- Expected totals come from the day's active transactions per method
- A counted cash difference needs a written justification
- One closing per module and date, unless the closing was reopened
"""
from datetime import date, datetime, time, timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone

from apps.cash import actions as cash_actions
from apps.cash.models import CashClosing, CashClosingStatusChoices, CashModuleChoices
from apps.cash.services import (
    close_cash,
    get_closing_summary,
    get_income_report,
    get_unclosed_days,
    reopen_cash,
)
from apps.clinical.models import Appointment, AppointmentStatusChoices
from apps.clinical.services import create_appointment
from apps.core.exceptions import InvalidState, Unauthorized, ValidationFailed
from apps.inventory.services import create_inventory_sale
from apps.payments import actions as payment_actions
from apps.payments.models import Payment
from apps.payments.services import create_payment, void_payment

from helpers import cash

PRICE = Decimal('150000.00')
CLOSING_DAY = date(2025, 1, 10)
REOPEN_JUSTIFICATION = 'Se registró un pago tardío del día'


def pay(ctx, patient, service, methods=None, **kwargs):
    return create_payment(
        ctx,
        patient_id=patient.id,
        items=[{'service_id': service.id, 'cantidad': 1, 'precio_unitario': PRICE}],
        methods=methods or cash(PRICE),
        **kwargs
    )


@pytest.mark.django_db
class TestClosingSummary:

    def test_totals_per_method(self, secretaria_ctx, admin_ctx, patient, service):
        """
        Scenario: cash, card and discounted payments plus one voided payment.

        Expected: voided payment excluded from method totals and reported
        as total_anulaciones; discounts reported separately.
        """
        pay(secretaria_ctx, patient, service)
        pay(secretaria_ctx, patient, service, methods=[
            {'metodo': 'tarjeta', 'monto': PRICE, 'comprobante_path': 'pagos/voucher.jpg'},
        ])
        pay(
            secretaria_ctx, patient, service,
            methods=cash(Decimal('135000.00')),
            descuento=Decimal('15000.00'),
            descuento_justificacion='Paciente frecuente',
        )
        voided = pay(secretaria_ctx, patient, service)
        void_payment(admin_ctx, voided.id, 'Cobro duplicado por error de digitación')

        summary = get_closing_summary(timezone.localdate(), CashModuleChoices.CLINICA)

        assert summary.total_efectivo == Decimal('285000.00')
        assert summary.total_tarjeta == PRICE
        assert summary.total_nequi == Decimal('0.00')
        assert summary.total_descuentos == Decimal('15000.00')
        assert summary.total_anulaciones == PRICE
        assert summary.grand_total == Decimal('435000.00')
        assert summary.transaction_count == 3
        assert summary.has_existing_closing is False

    def test_empty_day(self):
        summary = get_closing_summary(CLOSING_DAY)
        assert summary.grand_total == Decimal('0.00')
        assert summary.to_dict()['fecha'] == '2025-01-10'

    def test_medias_summary_counts_inventory_sales(self, secretaria_ctx, product):
        create_inventory_sale(
            secretaria_ctx,
            items=[{'product_id': product.id, 'cantidad': 2}],
            methods=cash(Decimal('240000.00')),
        )
        summary = get_closing_summary(timezone.localdate(), CashModuleChoices.MEDIAS)

        assert summary.total_efectivo == Decimal('240000.00')
        assert summary.transaction_count == 1
        assert summary.total_anulaciones == Decimal('0.00')

    def test_unknown_module(self):
        with pytest.raises(ValidationFailed) as exc_info:
            get_closing_summary(CLOSING_DAY, 'farmacia')
        assert 'modulo' in exc_info.value.field_errors


@pytest.mark.django_db
class TestCloseCash:

    def test_balanced_closing_needs_no_justification(self, secretaria_ctx, patient, service):
        pay(secretaria_ctx, patient, service)

        closing = close_cash(secretaria_ctx, timezone.localdate(), PRICE)

        assert closing.cierre_numero == 'CIE-000001'
        assert closing.diferencia == Decimal('0.00')
        assert closing.total_efectivo == PRICE
        assert closing.estado == CashClosingStatusChoices.CERRADO

    def test_difference_requires_justification(self, secretaria_ctx, patient, service):
        """
        Scenario: 150000 expected in cash, 149000 counted.

        Expected: a short justification is refused and nothing is stored;
        a 10+ character justification is accepted with diferencia -1000.
        """
        pay(secretaria_ctx, patient, service)
        today = timezone.localdate()

        with pytest.raises(ValidationFailed) as exc_info:
            close_cash(secretaria_ctx, today, Decimal('149000.00'), diferencia_justificacion='faltan')
        assert 'diferencia_justificacion' in exc_info.value.field_errors
        assert CashClosing.objects.count() == 0

        closing = close_cash(
            secretaria_ctx, today, Decimal('149000.00'),
            diferencia_justificacion='Vuelto mal entregado a un paciente',
        )
        assert closing.diferencia == Decimal('-1000.00')
        assert closing.cierre_numero == 'CIE-000001'

    def test_medias_register_has_zero_tolerance(self, secretaria_ctx, product):
        create_inventory_sale(
            secretaria_ctx,
            items=[{'product_id': product.id, 'cantidad': 1}],
            methods=cash(Decimal('120000.00')),
        )
        with pytest.raises(ValidationFailed) as exc_info:
            close_cash(secretaria_ctx, timezone.localdate(), Decimal('119999.00'), modulo=CashModuleChoices.MEDIAS)
        assert exc_info.value.message.startswith('Tolerancia cero')

    def test_modules_number_independently(self, secretaria_ctx):
        medias = close_cash(secretaria_ctx, CLOSING_DAY, 0, modulo=CashModuleChoices.MEDIAS)
        clinica = close_cash(secretaria_ctx, CLOSING_DAY, 0, modulo=CashModuleChoices.CLINICA)

        assert medias.cierre_numero == 'CIM-000001'
        assert clinica.cierre_numero == 'CIE-000001'

    def test_future_date_is_refused(self, secretaria_ctx):
        with pytest.raises(ValidationFailed) as exc_info:
            close_cash(secretaria_ctx, timezone.localdate() + timedelta(days=1), 0)
        assert 'fecha' in exc_info.value.field_errors

    @pytest.mark.parametrize('ctx_fixture', ['enfermera_ctx', 'medico_ctx'])
    def test_only_admin_and_secretaria_close(self, request, ctx_fixture):
        with pytest.raises(Unauthorized):
            close_cash(request.getfixturevalue(ctx_fixture), CLOSING_DAY, 0)

    def test_negative_count(self, secretaria_ctx):
        with pytest.raises(ValidationFailed):
            close_cash(secretaria_ctx, CLOSING_DAY, Decimal('-1.00'))


@pytest.mark.django_db
class TestDuplicateAndReopen:

    def test_second_closing_is_refused_with_existing_id(self, secretaria_ctx):
        first = close_cash(secretaria_ctx, CLOSING_DAY, 0)

        with pytest.raises(ValidationFailed) as exc_info:
            close_cash(secretaria_ctx, CLOSING_DAY, 0)

        assert exc_info.value.context['existing_closing_id'] == first.id
        assert CashClosing.objects.count() == 1

    def test_action_result_carries_existing_id(self, secretaria_ctx):
        payload = {'fecha': '2025-01-10', 'conteo_fisico_efectivo': '0'}
        first = cash_actions.close_cash(secretaria_ctx, payload)
        assert first.success

        second = cash_actions.close_cash(secretaria_ctx, payload)

        assert second.success is False
        assert second.error_code == 'validation_failed'
        assert second.data == {'existing_closing_id': first.data['id']}

    def test_reopen_then_close_supersedes(self, secretaria_ctx, admin_ctx):
        """
        Scenario: close 2025-01-10, reopen it, close it again.

        Expected: the new closing gets the next number and links back to
        the reopened one; the reopened row is kept.
        """
        first = close_cash(secretaria_ctx, CLOSING_DAY, 0)

        with pytest.raises(Unauthorized):
            reopen_cash(secretaria_ctx, first.id, REOPEN_JUSTIFICATION)

        reopened = reopen_cash(admin_ctx, first.id, REOPEN_JUSTIFICATION)
        assert reopened.estado == CashClosingStatusChoices.REABIERTO

        summary = get_closing_summary(CLOSING_DAY)
        assert summary.has_existing_closing is False

        second = close_cash(secretaria_ctx, CLOSING_DAY, 0)

        assert second.cierre_numero == 'CIE-000002'
        assert second.supersedes_id == first.id
        first.refresh_from_db()
        assert first.superseded_by == second

    def test_reopen_requires_justification(self, secretaria_ctx, admin_ctx):
        closing = close_cash(secretaria_ctx, CLOSING_DAY, 0)
        with pytest.raises(ValidationFailed):
            reopen_cash(admin_ctx, closing.id, 'error')

    def test_reopen_twice(self, secretaria_ctx, admin_ctx):
        closing = close_cash(secretaria_ctx, CLOSING_DAY, 0)
        reopen_cash(admin_ctx, closing.id, REOPEN_JUSTIFICATION)
        with pytest.raises(InvalidState):
            reopen_cash(admin_ctx, closing.id, REOPEN_JUSTIFICATION)


@pytest.mark.django_db
class TestUnclosedDays:

    def test_past_day_with_payments_until_closed(self, secretaria_ctx, patient, service):
        payment = pay(secretaria_ctx, patient, service)
        two_days_ago = timezone.now() - timedelta(days=2)
        Payment.objects.filter(pk=payment.pk).update(created_at=two_days_ago)
        fecha = timezone.localtime(two_days_ago).date()

        assert get_unclosed_days(CashModuleChoices.CLINICA) == [fecha]
        assert get_unclosed_days(CashModuleChoices.MEDIAS) == []

        close_cash(secretaria_ctx, fecha, PRICE)
        assert get_unclosed_days(CashModuleChoices.CLINICA) == []

    def test_today_is_not_reported(self, secretaria_ctx, patient, service):
        pay(secretaria_ctx, patient, service)
        assert get_unclosed_days(CashModuleChoices.CLINICA) == []

    def test_lookback_window(self, secretaria_ctx, patient, service):
        payment = pay(secretaria_ctx, patient, service)
        Payment.objects.filter(pk=payment.pk).update(created_at=timezone.now() - timedelta(days=40))

        assert get_unclosed_days(CashModuleChoices.CLINICA) == []
        assert len(get_unclosed_days(CashModuleChoices.CLINICA, days=45)) == 1


@pytest.mark.django_db
class TestIncomeReport:

    def test_totals_over_a_range(self, secretaria_ctx, admin_ctx, medico_ctx, patient, doctor, service):
        """
        Scenario: two payments today, one two days ago, one voided today,
        and one completed appointment in the range.

        Expected: method totals across the range, voids reported apart,
        and a daily breakdown with one entry per day that had income.
        """
        pay(secretaria_ctx, patient, service)
        pay(secretaria_ctx, patient, service, methods=[
            {'metodo': 'nequi', 'monto': PRICE, 'comprobante_path': 'pagos/nequi.jpg'},
        ])
        earlier = pay(secretaria_ctx, patient, service)
        two_days_ago = timezone.now() - timedelta(days=2)
        Payment.objects.filter(pk=earlier.pk).update(created_at=two_days_ago)
        voided = pay(secretaria_ctx, patient, service)
        void_payment(admin_ctx, voided.id, 'Cobro duplicado por error de digitación')

        today = timezone.localdate()
        start = timezone.make_aware(datetime.combine(today, time(9)))
        appointment = create_appointment(
            secretaria_ctx,
            patient_id=patient.id,
            doctor_id=doctor.id,
            fecha_hora_inicio=start,
            fecha_hora_fin=start + timedelta(minutes=30),
        )
        Appointment.objects.filter(pk=appointment.pk).update(estado=AppointmentStatusChoices.COMPLETADA)

        report = get_income_report(medico_ctx, timezone.localtime(two_days_ago).date(), today)

        assert report.total_efectivo == PRICE * 2
        assert report.total_nequi == PRICE
        assert report.total_anulaciones == PRICE
        assert report.grand_total == PRICE * 3
        assert report.payment_count == 3
        assert report.citas_atendidas == 1
        assert [day['fecha'] for day in report.daily] == [
            timezone.localtime(two_days_ago).date().isoformat(), today.isoformat()
        ]
        assert report.daily[-1]['efectivo'] == '150000.00'
        assert report.daily[-1]['nequi'] == '150000.00'
        assert report.daily[-1]['total'] == '300000.00'

    def test_single_day_matches_closing_summary(self, secretaria_ctx, admin_ctx, patient, service):
        pay(secretaria_ctx, patient, service)
        pay(
            secretaria_ctx, patient, service,
            methods=cash(Decimal('135000.00')),
            descuento=Decimal('15000.00'),
            descuento_justificacion='Paciente frecuente',
        )
        today = timezone.localdate()

        report = get_income_report(admin_ctx, today, today)
        summary = get_closing_summary(today)

        assert report.grand_total == summary.grand_total == Decimal('285000.00')
        assert report.total_descuentos == summary.total_descuentos == Decimal('15000.00')

    @pytest.mark.parametrize('ctx_fixture', ['secretaria_ctx', 'enfermera_ctx'])
    def test_only_admin_and_medico(self, request, ctx_fixture):
        with pytest.raises(Unauthorized):
            get_income_report(request.getfixturevalue(ctx_fixture), CLOSING_DAY, CLOSING_DAY)

    def test_inverted_range(self, admin_ctx):
        with pytest.raises(ValidationFailed) as exc_info:
            get_income_report(admin_ctx, CLOSING_DAY, CLOSING_DAY - timedelta(days=1))
        assert 'fecha_inicio' in exc_info.value.field_errors

    def test_range_too_long(self, admin_ctx):
        with pytest.raises(ValidationFailed) as exc_info:
            get_income_report(admin_ctx, CLOSING_DAY - timedelta(days=400), CLOSING_DAY)
        assert 'fecha_fin' in exc_info.value.field_errors

    def test_cached_report_is_cleared_by_a_new_payment(
        self, django_capture_on_commit_callbacks, secretaria_ctx, admin_ctx, patient, service
    ):
        cache.clear()
        today = timezone.localdate().isoformat()
        query = {'fecha_inicio': today, 'fecha_fin': today}

        first = cash_actions.get_income_report(admin_ctx, query)
        assert first.data['grand_total'] == '0.00'

        with django_capture_on_commit_callbacks(execute=True):
            result = payment_actions.create_payment(secretaria_ctx, {
                'patient_id': str(patient.id),
                'items': [{'service_id': str(service.id), 'cantidad': 1, 'precio_unitario': '150000.00'}],
                'methods': [{'metodo': 'efectivo', 'monto': '150000.00'}],
            })
        assert result.success

        second = cash_actions.get_income_report(admin_ctx, query)
        assert second.data['grand_total'] == '150000.00'

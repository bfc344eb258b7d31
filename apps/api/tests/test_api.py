"""
HTTP surface tests: every endpoint renders an ActionResult and maps its
error code to a status (401, 403, 400, 404, 409, 503).
"""
import uuid
from decimal import Decimal

import pytest
from django.db import DatabaseError, connection
from rest_framework import status

from apps.clinical.models import Appointment
from apps.clinical.services import create_appointment
from apps.core.results import GENERIC_ERROR_MESSAGE
from apps.core.validation import INVALID_PAYLOAD_MESSAGE
from apps.payments import actions as payment_actions
from apps.payments.models import Payment, PaymentStateChoices

from helpers import at

PAYMENTS_URL = '/api/v1/payments/'
APPOINTMENTS_URL = '/api/v1/clinical/appointments/'
CLOSINGS_URL = '/api/v1/cash/closings/'
INCOME_REPORT_URL = '/api/v1/cash/reports/income/'


def payment_payload(patient, service, monto='150000.00'):
    return {
        'patient_id': str(patient.id),
        'items': [{'service_id': str(service.id), 'cantidad': 1, 'precio_unitario': '150000.00'}],
        'methods': [{'metodo': 'efectivo', 'monto': monto}],
    }


@pytest.mark.django_db
class TestAuthenticationAndRoles:

    def test_anonymous_is_rejected(self, api_client):
        response = api_client.get(PAYMENTS_URL)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_user_without_role_is_forbidden(self, no_role_client):
        response = no_role_client.get(PAYMENTS_URL)
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_current_user_reports_effective_role(self, medico_client):
        response = medico_client.get('/api/auth/me/')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['role'] == 'medico'
        assert response.data['roles'] == ['medico']

    def test_current_user_without_role(self, no_role_client):
        response = no_role_client.get('/api/auth/me/')
        assert response.data['role'] == 'none'

    def test_secretaria_cannot_void(self, secretaria_client, secretaria_ctx, patient, service):
        payment = payment_actions.create_payment(secretaria_ctx, payment_payload(patient, service))

        response = secretaria_client.post(
            f"{PAYMENTS_URL}{payment.data['id']}/void/",
            {'justificacion': 'Cobro duplicado por error'},
            format='json',
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['error_code'] == 'unauthorized'


@pytest.mark.django_db
class TestPaymentEndpoints:

    def test_create_payment(self, secretaria_client, patient, service):
        response = secretaria_client.post(PAYMENTS_URL, payment_payload(patient, service), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['success'] is True
        assert response.data['data']['numero_factura'] == 'FAC-000001'

    def test_unbalanced_payment_is_a_validation_error(self, secretaria_client, patient, service):
        response = secretaria_client.post(
            PAYMENTS_URL, payment_payload(patient, service, monto='100000.00'), format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error_code'] == 'validation_failed'
        assert response.data['error'] == INVALID_PAYLOAD_MESSAGE
        assert 'methods' in response.data['field_errors']
        assert Payment.objects.count() == 0

    def test_nested_field_errors_are_flattened(self, secretaria_client, patient, service):
        payload = payment_payload(patient, service)
        payload['items'][0]['cantidad'] = 0

        response = secretaria_client.post(PAYMENTS_URL, payload, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'items.0.cantidad' in response.data['field_errors']

    def test_list_payments(self, secretaria_client, secretaria_ctx, patient, service):
        payment_actions.create_payment(secretaria_ctx, payment_payload(patient, service))

        response = secretaria_client.get(PAYMENTS_URL)

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1
        assert response.data['results'][0]['numero_factura'] == 'FAC-000001'

    def test_void_unknown_payment(self, admin_client):
        response = admin_client.post(
            f'{PAYMENTS_URL}{uuid.uuid4()}/void/',
            {'justificacion': 'Cobro duplicado por error'},
            format='json',
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['error_code'] == 'not_found'

    def test_void_without_justification(self, admin_client, secretaria_ctx, patient, service):
        payment = payment_actions.create_payment(secretaria_ctx, payment_payload(patient, service))

        response = admin_client.post(f"{PAYMENTS_URL}{payment.data['id']}/void/", {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'justificacion' in response.data['field_errors']

    def test_void_payment(self, admin_client, secretaria_ctx, patient, service):
        payment = payment_actions.create_payment(secretaria_ctx, payment_payload(patient, service))

        response = admin_client.post(
            f"{PAYMENTS_URL}{payment.data['id']}/void/",
            {'justificacion': 'Cobro duplicado por error'},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['estado'] == PaymentStateChoices.ANULADO

    def test_storage_failure_is_generic(self, monkeypatch, secretaria_client, patient, service):
        def boom(*args, **kwargs):
            raise DatabaseError('server closed the connection unexpectedly')

        monkeypatch.setattr(payment_actions.services, 'create_payment', boom)

        response = secretaria_client.post(PAYMENTS_URL, payment_payload(patient, service), format='json')

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.data['error'] == GENERIC_ERROR_MESSAGE
        assert 'server closed' not in str(response.data)


@pytest.mark.django_db
class TestAppointmentEndpoints:

    def booking_payload(self, patient, doctor, start, end):
        return {
            'patient_id': str(patient.id),
            'doctor_id': str(doctor.id),
            'fecha_hora_inicio': start.isoformat(),
            'fecha_hora_fin': end.isoformat(),
        }

    def test_overlap_is_a_conflict(self, secretaria_client, patient, doctor):
        first = secretaria_client.post(
            APPOINTMENTS_URL, self.booking_payload(patient, doctor, at(10), at(10, 30)), format='json'
        )
        assert first.status_code == status.HTTP_201_CREATED

        response = secretaria_client.post(
            APPOINTMENTS_URL, self.booking_payload(patient, doctor, at(10, 15), at(10, 45)), format='json'
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['error_code'] == 'slot_unavailable'
        assert 'fecha_hora_inicio' in response.data['field_errors']

    def test_invalid_transition_is_a_conflict(self, secretaria_client, secretaria_ctx, patient, doctor):
        appointment = create_appointment(
            secretaria_ctx,
            patient_id=patient.id,
            doctor_id=doctor.id,
            fecha_hora_inicio=at(10),
            fecha_hora_fin=at(10, 30),
        )

        response = secretaria_client.post(
            f'{APPOINTMENTS_URL}{appointment.id}/status/', {'estado': 'completada'}, format='json'
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['error_code'] == 'invalid_transition'
        assert response.data['data'] == {'current': 'programada', 'requested': 'completada'}

    def test_delete_requires_admin(self, secretaria_client, admin_client, secretaria_ctx, patient, doctor):
        appointment = create_appointment(
            secretaria_ctx,
            patient_id=patient.id,
            doctor_id=doctor.id,
            fecha_hora_inicio=at(10),
            fecha_hora_fin=at(10, 30),
        )

        assert secretaria_client.delete(f'{APPOINTMENTS_URL}{appointment.id}/').status_code == 403
        assert admin_client.delete(f'{APPOINTMENTS_URL}{appointment.id}/').status_code == 200
        assert not Appointment.objects.filter(pk=appointment.id).exists()

    def test_add_service_with_variable_price(self, secretaria_client, secretaria_ctx, patient, doctor, variable_service):
        appointment = create_appointment(
            secretaria_ctx,
            patient_id=patient.id,
            doctor_id=doctor.id,
            fecha_hora_inicio=at(10),
            fecha_hora_fin=at(10, 30),
        )

        response = secretaria_client.post(
            f'{APPOINTMENTS_URL}{appointment.id}/services/',
            {'service_id': str(variable_service.id), 'precio': '260000.00'},
            format='json',
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['data']['precio_unitario'] == '260000.00'

        pending = secretaria_client.get(f'/api/v1/clinical/patients/{patient.id}/pending-services/')
        assert pending.status_code == status.HTTP_200_OK


@pytest.mark.django_db
class TestInventoryEndpoints:

    def test_insufficient_stock_is_a_conflict(self, secretaria_client, product):
        response = secretaria_client.post(
            '/api/v1/inventory/sales/',
            {
                'items': [{'product_id': str(product.id), 'cantidad': 11}],
                'methods': [{'metodo': 'efectivo', 'monto': str(product.precio * 11)}],
            },
            format='json',
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['error_code'] == 'insufficient_stock'
        product.refresh_from_db()
        assert product.stock_normal == 10

    def test_products_list_flags_low_stock(self, secretaria_client, product):
        product.stock_normal = 2
        product.save()

        response = secretaria_client.get('/api/v1/inventory/products/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['results'][0]['stock_bajo'] is True


@pytest.mark.django_db
class TestCashEndpoints:

    def test_duplicate_closing_returns_existing_id(self, secretaria_client):
        payload = {'fecha': '2025-01-10', 'conteo_fisico_efectivo': '0.00'}
        first = secretaria_client.post(CLOSINGS_URL, payload, format='json')
        assert first.status_code == status.HTTP_201_CREATED

        second = secretaria_client.post(CLOSINGS_URL, payload, format='json')

        assert second.status_code == status.HTTP_400_BAD_REQUEST
        assert second.data['data']['existing_closing_id'] == first.data['data']['id']

    def test_enfermera_cannot_close(self, enfermera_client):
        response = enfermera_client.post(
            CLOSINGS_URL, {'fecha': '2025-01-10', 'conteo_fisico_efectivo': '0.00'}, format='json'
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_summary(self, secretaria_client):
        response = secretaria_client.get(f'{CLOSINGS_URL}summary/', {'fecha': '2025-01-10'})

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['grand_total'] == '0.00'
        assert response.data['data']['has_existing_closing'] is False

    def test_summary_requires_date(self, secretaria_client):
        response = secretaria_client.get(f'{CLOSINGS_URL}summary/')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'fecha' in response.data['field_errors']

    def test_unclosed_days(self, secretaria_client):
        response = secretaria_client.get(f'{CLOSINGS_URL}unclosed-days/', {'modulo': 'medias'})
        assert response.status_code == status.HTTP_200_OK
        assert response.data == {'modulo': 'medias', 'fechas': []}

    def test_reopen_and_list(self, secretaria_client, admin_client):
        created = secretaria_client.post(
            CLOSINGS_URL, {'fecha': '2025-01-10', 'conteo_fisico_efectivo': '0.00'}, format='json'
        )
        closing_id = created.data['data']['id']

        reopened = admin_client.post(
            f'{CLOSINGS_URL}{closing_id}/reopen/',
            {'justificacion': 'Se registró un pago tardío del día'},
            format='json',
        )
        assert reopened.status_code == status.HTTP_200_OK

        listing = admin_client.get(CLOSINGS_URL)
        assert listing.data['results'][0]['estado'] == 'reabierto'
        assert listing.data['results'][0]['superseded_by'] is None

    def test_income_report(self, medico_client, secretaria_client):
        query = {'fecha_inicio': '2025-01-01', 'fecha_fin': '2025-01-31'}

        response = medico_client.get(INCOME_REPORT_URL, query)

        assert response.status_code == status.HTTP_200_OK
        assert response.data['data']['grand_total'] == '0.00'
        assert response.data['data']['citas_atendidas'] == 0
        assert response.data['data']['daily'] == []

        assert secretaria_client.get(INCOME_REPORT_URL, query).status_code == status.HTTP_403_FORBIDDEN

    def test_income_report_requires_range(self, admin_client):
        response = admin_client.get(INCOME_REPORT_URL, {'fecha_inicio': '2025-01-01'})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'fecha_fin' in response.data['field_errors']



@pytest.mark.django_db
class TestHealth:

    def test_healthz(self, api_client):
        response = api_client.get('/healthz')
        assert response.status_code == 200
        assert response.json()['status'] == 'ok'

    def test_readyz(self, api_client):
        response = api_client.get('/readyz')
        assert response.status_code == 200
        assert response.json()['checks'] == {'database': True, 'sequence_counters': True}

    def test_request_id_is_propagated(self, api_client):
        response = api_client.get('/healthz', HTTP_X_REQUEST_ID='req-abc-123')
        assert response['X-Request-ID'] == 'req-abc-123'

    def test_suite_runs_on_in_memory_sqlite(self):
        assert connection.vendor == 'sqlite'

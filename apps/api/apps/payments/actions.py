"""Payment actions: create and void, returning ActionResults."""
from apps.authz.context import require_authenticated
from apps.core import revalidation
from apps.core.results import run_action
from apps.core.validation import validated_data

from . import services
from .serializers import PaymentCreateSerializer, VoidPaymentSerializer


def create_payment(ctx, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(PaymentCreateSerializer, payload)
        payment = services.create_payment(
            ctx,
            patient_id=data['patient_id'],
            items=[dict(item) for item in data['items']],
            methods=[dict(method) for method in data['methods']],
            descuento=data['descuento'],
            descuento_justificacion=data['descuento_justificacion'],
            appointment_id=data['appointment_id'],
            notas=data['notas'],
        )
        revalidation.revalidate(revalidation.PAYMENTS, revalidation.APPOINTMENTS, revalidation.REPORTS)
        return {
            'id': str(payment.id),
            'numero_factura': payment.numero_factura,
            'total': str(payment.total),
        }
    return run_action('create_payment', operation)


def void_payment(ctx, payment_id, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(VoidPaymentSerializer, payload)
        payment = services.void_payment(ctx, payment_id, data['justificacion'])
        revalidation.revalidate(revalidation.PAYMENTS, revalidation.APPOINTMENTS, revalidation.REPORTS)
        return {'id': str(payment.id), 'estado': payment.estado}
    return run_action('void_payment', operation)

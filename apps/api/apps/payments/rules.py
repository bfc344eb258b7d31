"""
Pure payment rules, checked before any storage call.

Shared by the payment serializer, the payment service and inventory sales
(which use the same tender rules without discounts).
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings

from apps.core.exceptions import ValidationFailed

from .models import ELECTRONIC_METHODS, PaymentMethodChoices

CENT = Decimal('0.01')


@dataclass(frozen=True)
class PaymentTotals:
    subtotal: Decimal
    descuento: Decimal
    total: Decimal


def money(value) -> Decimal:
    """Quantize to cents; ValueError on garbage."""
    try:
        return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError):
        raise ValueError(f'Monto inválido: {value!r}')


def _fail(field, message):
    raise ValidationFailed(message, field_errors={field: [message]})


def compute_subtotal(items, price_key='precio_unitario') -> Decimal:
    subtotal = Decimal('0.00')
    for index, item in enumerate(items):
        cantidad = item.get('cantidad')
        if cantidad is None or int(cantidad) < 1:
            _fail(f'items.{index}.cantidad', 'La cantidad debe ser al menos 1')
        try:
            price = money(item.get(price_key))
        except ValueError:
            _fail(f'items.{index}.{price_key}', 'Precio inválido')
        if price < 0:
            _fail(f'items.{index}.{price_key}', 'El precio no puede ser negativo')
        subtotal += price * int(cantidad)
    return money(subtotal)


def validate_tender(methods, total):
    """
    Tender lines must cover `total` exactly (within CLINIC_OPS_MONEY_TOLERANCE)
    and electronic lines need a receipt path.
    """
    if not methods:
        _fail('methods', 'Debe registrar al menos un método de pago')

    tolerance = Decimal(str(settings.CLINIC_OPS_MONEY_TOLERANCE))
    paid = Decimal('0.00')
    for index, method in enumerate(methods):
        metodo = method.get('metodo')
        if metodo not in PaymentMethodChoices.values:
            _fail(f'methods.{index}.metodo', 'Método de pago inválido')
        try:
            monto = money(method.get('monto'))
        except ValueError:
            _fail(f'methods.{index}.monto', 'Monto inválido')
        if monto <= 0:
            _fail(f'methods.{index}.monto', 'El monto debe ser mayor a 0')
        if metodo in ELECTRONIC_METHODS and not (method.get('comprobante_path') or '').strip():
            _fail(
                f'methods.{index}.comprobante_path',
                f'El pago por {PaymentMethodChoices(metodo).label} requiere comprobante'
            )
        paid += monto

    if abs(paid - total) > tolerance:
        _fail(
            'methods',
            f'La suma de los métodos de pago ({paid}) no coincide con el total ({total})'
        )


def validate_payment_request(items, methods, descuento=0, descuento_justificacion=''):
    """
    Check a payment request end to end.

    Returns:
        PaymentTotals

    Raises:
        ValidationFailed: first rule broken, with the field that broke it
    """
    if not items:
        _fail('items', 'Debe incluir al menos un servicio')

    seen_lines = set()
    for index, item in enumerate(items):
        line_id = item.get('appointment_service_id')
        if not line_id:
            continue
        if str(line_id) in seen_lines:
            _fail(
                f'items.{index}.appointment_service_id',
                'El servicio de la cita está repetido en el pago'
            )
        seen_lines.add(str(line_id))

    subtotal = compute_subtotal(items)
    try:
        descuento = money(descuento or 0)
    except ValueError:
        _fail('descuento', 'Descuento inválido')

    if descuento < 0:
        _fail('descuento', 'El descuento no puede ser negativo')
    if descuento > subtotal:
        _fail('descuento', 'El descuento no puede ser mayor al subtotal')
    if descuento > 0:
        min_length = settings.CLINIC_OPS_DISCOUNT_JUSTIFICATION_MIN_LENGTH
        if len((descuento_justificacion or '').strip()) < min_length:
            _fail(
                'descuento_justificacion',
                f'Debe justificar el descuento (mínimo {min_length} caracteres)'
            )

    total = subtotal - descuento
    validate_tender(methods, total)
    return PaymentTotals(subtotal=subtotal, descuento=descuento, total=total)

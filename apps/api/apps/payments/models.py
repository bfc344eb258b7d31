"""
Payment models: payment, payment_item, payment_method

A Payment is immutable once created. It can be voided (anulado) but
never edited or physically deleted.
"""
import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from apps.core.state_machine import TransitionTable


class PaymentStateChoices(models.TextChoices):
    """
    - activo -> anulado
    - anulado is terminal
    """
    ACTIVO = 'activo', 'Activo'
    ANULADO = 'anulado', 'Anulado'


PAYMENT_TRANSITIONS = TransitionTable.from_choices(PaymentStateChoices, {
    PaymentStateChoices.ACTIVO: [PaymentStateChoices.ANULADO],
    PaymentStateChoices.ANULADO: [],
})


class PaymentMethodChoices(models.TextChoices):
    EFECTIVO = 'efectivo', 'Efectivo'
    TARJETA = 'tarjeta', 'Tarjeta'
    TRANSFERENCIA = 'transferencia', 'Transferencia'
    NEQUI = 'nequi', 'Nequi'


# Methods verified through a receipt instead of the physical cash count
ELECTRONIC_METHODS = frozenset({
    PaymentMethodChoices.TARJETA,
    PaymentMethodChoices.TRANSFERENCIA,
    PaymentMethodChoices.NEQUI,
})


class Payment(models.Model):
    """
    Financial transaction with a gapless invoice number.

    INVARIANTS:
    - total = subtotal - descuento
    - sum(methods.monto) == total
    - descuento > 0 requires descuento_justificacion
    - secuencia is assigned inside the creating transaction (core.numbering)
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    secuencia = models.PositiveBigIntegerField(unique=True, editable=False)
    numero_factura = models.CharField(max_length=20, unique=True, editable=False)
    patient = models.ForeignKey(
        'clinical.Patient',
        on_delete=models.PROTECT,
        related_name='payments'
    )
    appointment = models.ForeignKey(
        'clinical.Appointment',
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name='payments'
    )
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    descuento = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    descuento_justificacion = models.TextField(blank=True)
    total = models.DecimalField(max_digits=12, decimal_places=2)
    estado = models.CharField(
        max_length=20,
        choices=PaymentStateChoices.choices,
        default=PaymentStateChoices.ACTIVO
    )
    notas = models.TextField(blank=True)

    # Void audit
    anulado_por = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='payments_voided'
    )
    anulado_at = models.DateTimeField(blank=True, null=True)
    anulacion_justificacion = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='payments_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'pago'
        verbose_name = 'Payment'
        verbose_name_plural = 'Payments'
        ordering = ['-secuencia']
        indexes = [
            models.Index(fields=['created_at'], name='idx_pago_created'),
            models.Index(fields=['estado'], name='idx_pago_estado'),
            models.Index(fields=['patient'], name='idx_pago_paciente'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(descuento__gte=0),
                name='pago_descuento_non_negative'
            ),
            models.CheckConstraint(
                condition=Q(total=F('subtotal') - F('descuento')),
                name='pago_total_equals_subtotal_minus_descuento'
            ),
            models.CheckConstraint(
                condition=Q(total__gte=0),
                name='pago_total_non_negative'
            ),
        ]

    def __str__(self):
        return f"{self.numero_factura} - {self.total}"

    @property
    def is_voided(self):
        return self.estado == PaymentStateChoices.ANULADO


class PaymentItem(models.Model):
    """Service snapshot billed by a payment, in entry order."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payment = models.ForeignKey(
        Payment,
        on_delete=models.CASCADE,
        related_name='items'
    )
    position = models.PositiveSmallIntegerField()
    service = models.ForeignKey(
        'clinical.Service',
        on_delete=models.PROTECT,
        related_name='payment_items'
    )
    nombre_servicio = models.CharField(max_length=255)
    precio_unitario = models.DecimalField(max_digits=12, decimal_places=2)
    cantidad = models.PositiveIntegerField()
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        db_table = 'pago_item'
        verbose_name = 'Payment Item'
        verbose_name_plural = 'Payment Items'
        ordering = ['position']
        constraints = [
            models.UniqueConstraint(fields=['payment', 'position'], name='uniq_pago_item_position'),
            models.CheckConstraint(condition=Q(cantidad__gte=1), name='pago_item_cantidad_positive'),
        ]

    def __str__(self):
        return f"{self.nombre_servicio} x{self.cantidad}"


class PaymentMethod(models.Model):
    """One tender line of a payment (method, amount, receipt reference)."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payment = models.ForeignKey(
        Payment,
        on_delete=models.CASCADE,
        related_name='methods'
    )
    position = models.PositiveSmallIntegerField()
    metodo = models.CharField(max_length=20, choices=PaymentMethodChoices.choices)
    monto = models.DecimalField(max_digits=12, decimal_places=2)
    comprobante_path = models.CharField(max_length=500, blank=True)

    class Meta:
        db_table = 'pago_metodo'
        verbose_name = 'Payment Method'
        verbose_name_plural = 'Payment Methods'
        ordering = ['position']
        constraints = [
            models.UniqueConstraint(fields=['payment', 'position'], name='uniq_pago_metodo_position'),
            models.CheckConstraint(condition=Q(monto__gt=0), name='pago_metodo_monto_positive'),
        ]

    def __str__(self):
        return f"{self.get_metodo_display()} {self.monto}"

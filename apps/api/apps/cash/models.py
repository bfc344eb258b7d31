"""
Cash models: cash_closing

One table serves both cash registers (the clinic and the garment counter,
"medias"); `modulo` tells them apart and each module has its own gapless
closing counter.
"""
import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q

from apps.core.state_machine import TransitionTable


class CashModuleChoices(models.TextChoices):
    CLINICA = 'clinica', 'Clínica'
    MEDIAS = 'medias', 'Medias'


class CashClosingStatusChoices(models.TextChoices):
    """
    - cerrado -> reabierto
    - reabierto is terminal for that row; a new closing for the same date
      supersedes it
    """
    CERRADO = 'cerrado', 'Cerrado'
    REABIERTO = 'reabierto', 'Reabierto'


CASH_CLOSING_TRANSITIONS = TransitionTable.from_choices(CashClosingStatusChoices, {
    CashClosingStatusChoices.CERRADO: [CashClosingStatusChoices.REABIERTO],
    CashClosingStatusChoices.REABIERTO: [],
})


class CashClosing(models.Model):
    """
    Daily reconciliation snapshot.

    INVARIANTS:
    - At most one `cerrado` closing per (modulo, fecha_cierre)
    - diferencia = conteo_fisico_efectivo - total_efectivo
    - diferencia != 0 requires diferencia_justificacion
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    modulo = models.CharField(
        max_length=20,
        choices=CashModuleChoices.choices,
        default=CashModuleChoices.CLINICA
    )
    secuencia = models.PositiveBigIntegerField(editable=False)
    cierre_numero = models.CharField(max_length=20, unique=True, editable=False)
    fecha_cierre = models.DateField()

    # Expected totals (computed at closing time)
    total_efectivo = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_tarjeta = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_transferencia = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_nequi = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_descuentos = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_anulaciones = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    grand_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    transaction_count = models.PositiveIntegerField(default=0)

    # Physical count
    conteo_fisico_efectivo = models.DecimalField(max_digits=12, decimal_places=2)
    diferencia = models.DecimalField(max_digits=12, decimal_places=2)
    diferencia_justificacion = models.TextField(blank=True)
    cierre_photo_path = models.CharField(max_length=500, blank=True)
    notas = models.TextField(blank=True)

    estado = models.CharField(
        max_length=20,
        choices=CashClosingStatusChoices.choices,
        default=CashClosingStatusChoices.CERRADO
    )
    supersedes = models.OneToOneField(
        'self',
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='superseded_by',
        help_text='Reopened closing of the same date that this closing replaces'
    )

    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='cash_closings_closed'
    )
    closed_at = models.DateTimeField(auto_now_add=True)
    reopened_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        blank=True,
        null=True,
        related_name='cash_closings_reopened'
    )
    reopened_at = models.DateTimeField(blank=True, null=True)
    reopen_justificacion = models.TextField(blank=True)

    class Meta:
        db_table = 'cierre_caja'
        verbose_name = 'Cash Closing'
        verbose_name_plural = 'Cash Closings'
        ordering = ['-fecha_cierre', '-secuencia']
        indexes = [
            models.Index(fields=['modulo', 'fecha_cierre'], name='idx_cierre_modulo_fecha'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['modulo', 'fecha_cierre'],
                condition=Q(estado='cerrado'),
                name='uniq_cierre_cerrado_por_fecha'
            ),
            models.UniqueConstraint(fields=['modulo', 'secuencia'], name='uniq_cierre_modulo_secuencia'),
            models.CheckConstraint(
                condition=Q(conteo_fisico_efectivo__gte=0),
                name='cierre_conteo_non_negative'
            ),
        ]

    def __str__(self):
        return f"{self.cierre_numero} ({self.fecha_cierre})"

    @property
    def is_reopened(self):
        return self.estado == CashClosingStatusChoices.REABIERTO

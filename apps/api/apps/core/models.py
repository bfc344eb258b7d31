"""
Core models: sequence_counter
"""
from django.db import models


class SequenceNameChoices(models.TextChoices):
    """Gapless counters, one row each."""
    INVOICE = 'factura', 'Factura'
    CLINIC_CLOSING = 'cierre_clinica', 'Cierre de caja clínica'
    MEDIAS_CLOSING = 'cierre_medias', 'Cierre de caja medias'
    PURCHASE = 'compra', 'Compra'
    INVENTORY_SALE = 'venta_medias', 'Venta de medias'
    PRODUCT_RETURN = 'devolucion', 'Devolución'


class SequenceCounter(models.Model):
    """
    Single-row counter per numbered document type.

    Only ever read and incremented under SELECT ... FOR UPDATE inside the
    same transaction that inserts the numbered row (see core.numbering).
    A rolled back transaction rolls back the increment as well, so failed
    operations never consume a number.
    """
    name = models.CharField(
        max_length=50,
        primary_key=True,
        choices=SequenceNameChoices.choices
    )
    last_value = models.PositiveBigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'sequence_counter'
        verbose_name = 'Sequence Counter'
        verbose_name_plural = 'Sequence Counters'

    def __str__(self):
        return f"{self.name}={self.last_value}"

"""
Cash reconciliation engine.

Both cash registers close the same way:
1. Sum the day's active transactions per payment method (expected totals)
2. Compare the physically counted cash against the expected cash; only
   `efectivo` is counted, electronic methods are backed by receipts
3. Any difference needs a written justification before the closing is
   stored
4. The closing takes the next gapless number of its module and marks the
   date as closed; a second closing for the date is refused unless the
   first one was reopened

The modules differ only in their ReconciliationPolicy.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, FrozenSet, List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone

from apps.authz.context import require_authenticated, require_role
from apps.authz.models import RoleChoices
from apps.clinical.models import Appointment, AppointmentStatusChoices
from apps.core.exceptions import InvalidState, NotFound, ValidationFailed
from apps.core.models import SequenceNameChoices
from apps.core.numbering import format_document_number, next_sequence_value, retry_on_contention
from apps.core.observability import get_sanitized_logger, log_domain_event, metrics
from apps.core.observability.events import log_consistency_checkpoint, log_status_transition
from apps.core.observability.tracing import trace_span
from apps.core.validation import require_justification
from apps.inventory.models import InventorySale, InventorySaleMethod, InventorySaleStatusChoices
from apps.payments.models import Payment, PaymentMethod, PaymentMethodChoices, PaymentStateChoices

from .models import CASH_CLOSING_TRANSITIONS, CashClosing, CashClosingStatusChoices, CashModuleChoices

logger = get_sanitized_logger(__name__)

ZERO = Decimal('0.00')
DUPLICATE_CLOSING_MESSAGE = 'Ya existe un cierre para esta fecha'


# ============================================================================
# Summary sources
# ============================================================================

def _clinic_range_totals(start, end):
    payments = Payment.objects.filter(created_at__date__range=(start, end))
    active = payments.filter(estado=PaymentStateChoices.ACTIVO)

    by_method = dict(
        PaymentMethod.objects
        .filter(payment__in=active)
        .order_by()
        .values('metodo')
        .annotate(total=Sum('monto'))
        .values_list('metodo', 'total')
    )
    aggregates = active.aggregate(descuentos=Sum('descuento'), count=Count('id'))
    voided = payments.filter(estado=PaymentStateChoices.ANULADO).aggregate(total=Sum('total'))
    return by_method, aggregates['descuentos'] or ZERO, voided['total'] or ZERO, aggregates['count']


def _clinic_summary_totals(fecha):
    return _clinic_range_totals(fecha, fecha)


def _medias_summary_totals(fecha):
    active = InventorySale.objects.filter(created_at__date=fecha, estado=InventorySaleStatusChoices.ACTIVO)
    by_method = dict(
        InventorySaleMethod.objects
        .filter(sale__in=active)
        .order_by()
        .values('metodo')
        .annotate(total=Sum('monto'))
        .values_list('metodo', 'total')
    )
    return by_method, ZERO, ZERO, active.count()


@dataclass(frozen=True)
class ReconciliationPolicy:
    modulo: str
    sequence_name: str
    prefix: str
    closer_roles: FrozenSet[str]
    tracks_adjustments: bool
    zero_tolerance: bool
    summary_totals: Callable
    transactions: Callable

    def variance_message(self, diferencia, min_length):
        if self.zero_tolerance:
            return (
                f'Tolerancia cero: la diferencia de {diferencia} requiere una justificación '
                f'detallada (mínimo {min_length} caracteres)'
            )
        return f'Hay una diferencia de {diferencia}. Debe justificarla (mínimo {min_length} caracteres)'


CLOSER_ROLES = frozenset({RoleChoices.ADMIN, RoleChoices.SECRETARIA})

POLICIES = {
    CashModuleChoices.CLINICA: ReconciliationPolicy(
        modulo=CashModuleChoices.CLINICA,
        sequence_name=SequenceNameChoices.CLINIC_CLOSING,
        prefix='CIE',
        closer_roles=CLOSER_ROLES,
        tracks_adjustments=True,
        zero_tolerance=False,
        summary_totals=_clinic_summary_totals,
        transactions=lambda: Payment.objects.filter(estado=PaymentStateChoices.ACTIVO),
    ),
    CashModuleChoices.MEDIAS: ReconciliationPolicy(
        modulo=CashModuleChoices.MEDIAS,
        sequence_name=SequenceNameChoices.MEDIAS_CLOSING,
        prefix='CIM',
        closer_roles=CLOSER_ROLES,
        tracks_adjustments=False,
        zero_tolerance=True,
        summary_totals=_medias_summary_totals,
        transactions=lambda: InventorySale.objects.filter(estado=InventorySaleStatusChoices.ACTIVO),
    ),
}


def get_policy(modulo):
    try:
        return POLICIES[modulo]
    except KeyError:
        raise ValidationFailed('Módulo de caja inválido', field_errors={'modulo': ['Módulo de caja inválido']})


# ============================================================================
# Summary
# ============================================================================

@dataclass
class ClosingSummary:
    fecha: date
    modulo: str
    total_efectivo: Decimal = ZERO
    total_tarjeta: Decimal = ZERO
    total_transferencia: Decimal = ZERO
    total_nequi: Decimal = ZERO
    total_descuentos: Decimal = ZERO
    total_anulaciones: Decimal = ZERO
    grand_total: Decimal = ZERO
    transaction_count: int = 0
    has_existing_closing: bool = False
    existing_closing_id: Optional[str] = None
    method_totals: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            'fecha': self.fecha.isoformat(),
            'modulo': self.modulo,
            'total_efectivo': str(self.total_efectivo),
            'total_tarjeta': str(self.total_tarjeta),
            'total_transferencia': str(self.total_transferencia),
            'total_nequi': str(self.total_nequi),
            'total_descuentos': str(self.total_descuentos),
            'total_anulaciones': str(self.total_anulaciones),
            'grand_total': str(self.grand_total),
            'transaction_count': self.transaction_count,
            'has_existing_closing': self.has_existing_closing,
            'existing_closing_id': self.existing_closing_id,
        }


def _existing_closing(modulo, fecha, for_update=False):
    queryset = CashClosing.objects.filter(
        modulo=modulo, fecha_cierre=fecha, estado=CashClosingStatusChoices.CERRADO
    )
    if for_update:
        queryset = queryset.select_for_update()
    return queryset.first()


def get_closing_summary(fecha, modulo=CashModuleChoices.CLINICA):
    """
    Expected totals of `fecha` for one cash register.

    Discounts and voids are informative: payment totals already net the
    discount, and voided payments are excluded from the method totals.
    """
    policy = get_policy(modulo)
    by_method, descuentos, anulaciones, count = policy.summary_totals(fecha)

    totals = {metodo: by_method.get(metodo) or ZERO for metodo in PaymentMethodChoices.values}
    existing = _existing_closing(modulo, fecha)

    return ClosingSummary(
        fecha=fecha,
        modulo=modulo,
        total_efectivo=totals[PaymentMethodChoices.EFECTIVO],
        total_tarjeta=totals[PaymentMethodChoices.TARJETA],
        total_transferencia=totals[PaymentMethodChoices.TRANSFERENCIA],
        total_nequi=totals[PaymentMethodChoices.NEQUI],
        total_descuentos=descuentos if policy.tracks_adjustments else ZERO,
        total_anulaciones=anulaciones if policy.tracks_adjustments else ZERO,
        grand_total=sum(totals.values(), ZERO),
        transaction_count=count,
        has_existing_closing=existing is not None,
        existing_closing_id=str(existing.id) if existing else None,
        method_totals=totals,
    )


# ============================================================================
# Close / reopen
# ============================================================================

def _duplicate_closing_error(existing):
    return ValidationFailed(
        DUPLICATE_CLOSING_MESSAGE,
        field_errors={'fecha': [DUPLICATE_CLOSING_MESSAGE]},
        existing_closing_id=existing.id if existing else '',
    )


def _check_variance(policy, diferencia, justificacion):
    """Return the cleaned justification; required whenever diferencia != 0."""
    text = (justificacion or '').strip()
    if diferencia == 0:
        return text

    min_length = settings.CLINIC_OPS_JUSTIFICATION_MIN_LENGTH
    if len(text) < min_length:
        message = policy.variance_message(diferencia, min_length)
        raise ValidationFailed(message, field_errors={'diferencia_justificacion': [message]})
    return require_justification(text, field='diferencia_justificacion')


@retry_on_contention('close_cash')
def close_cash(
    ctx,
    fecha,
    conteo_fisico_efectivo,
    diferencia_justificacion='',
    cierre_photo_path='',
    notas='',
    modulo=CashModuleChoices.CLINICA,
):
    """
    Close the cash register of `modulo` for `fecha`.

    Returns:
        CashClosing

    Raises:
        Unauthorized: role not allowed to close
        ValidationFailed: future date, negative count, missing justification,
            or a closing already exists (carries existing_closing_id)
        ConflictError: numbering contention after retry
    """
    require_authenticated(ctx)
    policy = get_policy(modulo)
    ctx = require_role(ctx, policy.closer_roles, 'Solo Secretaria y Admin pueden cerrar caja')

    if fecha > timezone.localdate():
        raise ValidationFailed('No se puede cerrar un día futuro', field_errors={'fecha': ['No se puede cerrar un día futuro']})
    conteo = Decimal(str(conteo_fisico_efectivo))
    if conteo < 0:
        message = 'El conteo físico no puede ser negativo'
        raise ValidationFailed(message, field_errors={'conteo_fisico_efectivo': [message]})

    with trace_span('close_cash', attributes={'modulo': modulo, 'fecha': fecha}):
        try:
            with transaction.atomic():
                existing = _existing_closing(modulo, fecha, for_update=True)
                if existing is not None:
                    metrics.cash_closings_total.labels(modulo=modulo, operation='close', result='duplicate').inc()
                    raise _duplicate_closing_error(existing)

                summary = get_closing_summary(fecha, modulo)
                diferencia = conteo - summary.total_efectivo
                justificacion = _check_variance(policy, diferencia, diferencia_justificacion)

                superseded = (
                    CashClosing.objects
                    .select_for_update()
                    .filter(
                        modulo=modulo,
                        fecha_cierre=fecha,
                        estado=CashClosingStatusChoices.REABIERTO,
                        superseded_by__isnull=True,
                    )
                    .order_by('-reopened_at')
                    .first()
                )

                secuencia = next_sequence_value(policy.sequence_name)
                closing = CashClosing.objects.create(
                    modulo=modulo,
                    secuencia=secuencia,
                    cierre_numero=format_document_number(policy.prefix, secuencia),
                    fecha_cierre=fecha,
                    total_efectivo=summary.total_efectivo,
                    total_tarjeta=summary.total_tarjeta,
                    total_transferencia=summary.total_transferencia,
                    total_nequi=summary.total_nequi,
                    total_descuentos=summary.total_descuentos,
                    total_anulaciones=summary.total_anulaciones,
                    grand_total=summary.grand_total,
                    transaction_count=summary.transaction_count,
                    conteo_fisico_efectivo=conteo,
                    diferencia=diferencia,
                    diferencia_justificacion=justificacion,
                    cierre_photo_path=(cierre_photo_path or '').strip(),
                    notas=notas or '',
                    supersedes=superseded,
                    closed_by_id=ctx.user_id,
                )
        except IntegrityError as e:
            # A concurrent closing for the same date won the race
            existing = _existing_closing(modulo, fecha)
            if existing is not None:
                raise _duplicate_closing_error(existing) from e
            raise

    metrics.cash_closings_total.labels(modulo=modulo, operation='close', result='success').inc()
    log_consistency_checkpoint(
        'cash_closing',
        entity_ids={'closing_id': str(closing.id)},
        checks_passed={
            'difference_matches_count': closing.diferencia == closing.conteo_fisico_efectivo - closing.total_efectivo,
            'justified_if_different': closing.diferencia == 0 or bool(closing.diferencia_justificacion),
        },
        modulo=modulo,
        diferencia=str(closing.diferencia),
    )
    log_domain_event(
        'cash.closed',
        entity_type='CashClosing',
        entity_id=str(closing.id),
        cierre_numero=closing.cierre_numero,
        modulo=modulo,
        fecha=fecha.isoformat(),
        supersedes=str(closing.supersedes_id) if closing.supersedes_id else None,
    )
    return closing


def reopen_cash(ctx, closing_id, justificacion):
    """
    Admin only. The closing row is kept as `reabierto`; a later closing
    for the same date links back to it through `supersedes`.
    """
    ctx = require_role(ctx, [RoleChoices.ADMIN], 'Solo Admin puede reabrir cierres de caja')
    justificacion = require_justification(justificacion)

    with transaction.atomic():
        try:
            closing = CashClosing.objects.select_for_update().get(pk=closing_id)
        except (CashClosing.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFound('Cierre no encontrado')

        if closing.is_reopened:
            raise InvalidState('El cierre ya está reabierto')
        CASH_CLOSING_TRANSITIONS.ensure_transition(closing.estado, CashClosingStatusChoices.REABIERTO)

        closing.estado = CashClosingStatusChoices.REABIERTO
        closing.reopened_by_id = ctx.user_id
        closing.reopened_at = timezone.now()
        closing.reopen_justificacion = justificacion
        closing.save(update_fields=['estado', 'reopened_by', 'reopened_at', 'reopen_justificacion'])

    metrics.cash_closings_total.labels(modulo=closing.modulo, operation='reopen', result='success').inc()
    log_status_transition(
        'CashClosing', closing.id,
        CashClosingStatusChoices.CERRADO, CashClosingStatusChoices.REABIERTO,
        cierre_numero=closing.cierre_numero,
    )
    return closing


def get_unclosed_days(modulo=CashModuleChoices.CLINICA, days=None) -> List[date]:
    """Past dates (within the lookback) with active transactions and no closing."""
    policy = get_policy(modulo)
    days = settings.CLINIC_OPS_UNCLOSED_DAYS_LOOKBACK if days is None else days
    today = timezone.localdate()
    since = today - timedelta(days=days)

    active_days = set(
        policy.transactions()
        .filter(created_at__date__gte=since, created_at__date__lt=today)
        .annotate(dia=TruncDate('created_at'))
        .values_list('dia', flat=True)
        .distinct()
    )
    closed_days = set(
        CashClosing.objects
        .filter(modulo=modulo, estado=CashClosingStatusChoices.CERRADO, fecha_cierre__gte=since)
        .values_list('fecha_cierre', flat=True)
    )
    return sorted(active_days - closed_days)


# ============================================================================
# Income report
# ============================================================================

REPORT_ROLES = frozenset({RoleChoices.ADMIN, RoleChoices.MEDICO})
MAX_REPORT_DAYS = 366


@dataclass
class IncomeReport:
    """Clinic income over an inclusive date range, same totals as a closing summary."""
    fecha_inicio: date
    fecha_fin: date
    total_efectivo: Decimal = ZERO
    total_tarjeta: Decimal = ZERO
    total_transferencia: Decimal = ZERO
    total_nequi: Decimal = ZERO
    total_descuentos: Decimal = ZERO
    total_anulaciones: Decimal = ZERO
    grand_total: Decimal = ZERO
    payment_count: int = 0
    citas_atendidas: int = 0
    daily: list = field(default_factory=list)

    def to_dict(self):
        return {
            'fecha_inicio': self.fecha_inicio.isoformat(),
            'fecha_fin': self.fecha_fin.isoformat(),
            'total_efectivo': str(self.total_efectivo),
            'total_tarjeta': str(self.total_tarjeta),
            'total_transferencia': str(self.total_transferencia),
            'total_nequi': str(self.total_nequi),
            'total_descuentos': str(self.total_descuentos),
            'total_anulaciones': str(self.total_anulaciones),
            'grand_total': str(self.grand_total),
            'payment_count': self.payment_count,
            'citas_atendidas': self.citas_atendidas,
            'daily': self.daily,
        }


def _validate_report_range(fecha_inicio, fecha_fin):
    if fecha_inicio > fecha_fin:
        message = 'La fecha inicial no puede ser posterior a la final'
        raise ValidationFailed(message, field_errors={'fecha_inicio': [message]})
    if (fecha_fin - fecha_inicio).days >= MAX_REPORT_DAYS:
        message = f'El rango no puede superar {MAX_REPORT_DAYS} días'
        raise ValidationFailed(message, field_errors={'fecha_fin': [message]})


def get_daily_income_breakdown(fecha_inicio, fecha_fin):
    """
    Per-day method totals of active payments, oldest first.

    Days without payments are omitted.
    """
    rows = (
        PaymentMethod.objects
        .filter(
            payment__estado=PaymentStateChoices.ACTIVO,
            payment__created_at__date__range=(fecha_inicio, fecha_fin),
        )
        .annotate(dia=TruncDate('payment__created_at'))
        .order_by()
        .values('dia', 'metodo')
        .annotate(total=Sum('monto'))
    )

    days = {}
    for row in rows:
        day = days.setdefault(row['dia'], {metodo: ZERO for metodo in PaymentMethodChoices.values})
        day[row['metodo']] += row['total']

    breakdown = []
    for dia in sorted(days):
        totals = days[dia]
        entry = {'fecha': dia.isoformat()}
        entry.update({metodo: str(amount) for metodo, amount in totals.items()})
        entry['total'] = str(sum(totals.values(), ZERO))
        breakdown.append(entry)
    return breakdown


def get_income_report(ctx, fecha_inicio, fecha_fin):
    """
    Admin and Medico only.

    Totals reuse the closing summary aggregation over the whole range;
    `citas_atendidas` counts completed appointments that started in it.
    """
    require_role(ctx, REPORT_ROLES, 'Solo Admin o Médico pueden ver reportes')
    _validate_report_range(fecha_inicio, fecha_fin)

    by_method, descuentos, anulaciones, count = _clinic_range_totals(fecha_inicio, fecha_fin)
    totals = {metodo: by_method.get(metodo) or ZERO for metodo in PaymentMethodChoices.values}
    citas_atendidas = Appointment.objects.filter(
        estado=AppointmentStatusChoices.COMPLETADA,
        fecha_hora_inicio__date__range=(fecha_inicio, fecha_fin),
    ).count()

    return IncomeReport(
        fecha_inicio=fecha_inicio,
        fecha_fin=fecha_fin,
        total_efectivo=totals[PaymentMethodChoices.EFECTIVO],
        total_tarjeta=totals[PaymentMethodChoices.TARJETA],
        total_transferencia=totals[PaymentMethodChoices.TRANSFERENCIA],
        total_nequi=totals[PaymentMethodChoices.NEQUI],
        total_descuentos=descuentos,
        total_anulaciones=anulaciones,
        grand_total=sum(totals.values(), ZERO),
        payment_count=count,
        citas_atendidas=citas_atendidas,
        daily=get_daily_income_breakdown(fecha_inicio, fecha_fin),
    )

"""Cash actions: summary, close, reopen and the income report."""
from django.core.cache import cache

from apps.authz.context import require_authenticated, require_role, require_staff
from apps.core import revalidation
from apps.core.results import run_action
from apps.core.validation import validated_data

from . import services
from .serializers import (
    CloseCashSerializer,
    IncomeReportQuerySerializer,
    ReopenCashSerializer,
    SummaryQuerySerializer,
)


def get_closing_summary(ctx, payload):
    def operation():
        require_staff(ctx)
        data = validated_data(SummaryQuerySerializer, payload)
        return services.get_closing_summary(data['fecha'], data['modulo']).to_dict()
    return run_action('get_closing_summary', operation)


def close_cash(ctx, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(CloseCashSerializer, payload)
        closing = services.close_cash(ctx, **data)
        revalidation.revalidate(revalidation.CLOSINGS, revalidation.PAYMENTS, revalidation.REPORTS)
        return {
            'id': str(closing.id),
            'cierre_numero': closing.cierre_numero,
            'diferencia': str(closing.diferencia),
        }
    return run_action('close_cash', operation)


def reopen_cash(ctx, closing_id, payload):
    def operation():
        require_authenticated(ctx)
        data = validated_data(ReopenCashSerializer, payload)
        closing = services.reopen_cash(ctx, closing_id, data['justificacion'])
        revalidation.revalidate(revalidation.CLOSINGS, revalidation.PAYMENTS, revalidation.REPORTS)
        return {'id': str(closing.id), 'estado': closing.estado}
    return run_action('reopen_cash', operation)


def get_income_report(ctx, payload):
    """
    Reports are cached per date range under the `reportes` view key, which
    payment, appointment and closing actions clear on commit.
    """
    def operation():
        require_role(ctx, services.REPORT_ROLES, 'Solo Admin o Médico pueden ver reportes')
        data = validated_data(IncomeReportQuerySerializer, payload)
        key = revalidation.view_cache_key(revalidation.REPORTS)
        range_key = f"{data['fecha_inicio'].isoformat()}:{data['fecha_fin'].isoformat()}"

        cached = cache.get(key) or {}
        if range_key in cached:
            return cached[range_key]

        report = services.get_income_report(ctx, data['fecha_inicio'], data['fecha_fin']).to_dict()
        cached[range_key] = report
        cache.set(key, cached)
        return report
    return run_action('get_income_report', operation)

"""
Cash closing views.

- GET  /api/v1/cash/closings/?modulo=clinica
- POST /api/v1/cash/closings/                        (Admin, Secretaria)
- POST /api/v1/cash/closings/{id}/reopen/            (Admin)
- GET  /api/v1/cash/closings/summary/?fecha=2025-01-10&modulo=clinica
- GET  /api/v1/cash/closings/unclosed-days/?modulo=medias
- GET  /api/v1/cash/reports/income/?fecha_inicio=2025-01-01&fecha_fin=2025-01-31  (Admin, Medico)
"""
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.authz.context import AuthContext
from apps.authz.permissions import IsStaffMember
from apps.core.views import action_response

from . import actions
from .models import CashClosing, CashModuleChoices
from .serializers import CashClosingSerializer
from .services import get_unclosed_days


class CashClosingViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = CashClosingSerializer
    permission_classes = [IsStaffMember]

    def get_queryset(self):
        queryset = CashClosing.objects.all()
        if self.request.query_params.get('modulo'):
            queryset = queryset.filter(modulo=self.request.query_params['modulo'])
        return queryset.order_by('-fecha_cierre', '-secuencia')

    def create(self, request):
        result = actions.close_cash(AuthContext.from_user(request.user), request.data)
        return action_response(result, success_status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def reopen(self, request, pk=None):
        return action_response(actions.reopen_cash(AuthContext.from_user(request.user), pk, request.data))

    @action(detail=False, methods=['get'])
    def summary(self, request):
        return action_response(actions.get_closing_summary(AuthContext.from_user(request.user), request.query_params))

    @action(detail=False, methods=['get'], url_path='unclosed-days')
    def unclosed_days(self, request):
        modulo = request.query_params.get('modulo', CashModuleChoices.CLINICA)
        if modulo not in CashModuleChoices.values:
            return Response({'modulo': ['Módulo de caja inválido']}, status=status.HTTP_400_BAD_REQUEST)
        days = get_unclosed_days(modulo)
        return Response({'modulo': modulo, 'fechas': [day.isoformat() for day in days]})


class IncomeReportView(APIView):
    """Clinic income by payment method over a date range, with a daily breakdown."""
    permission_classes = [IsStaffMember]

    def get(self, request):
        return action_response(actions.get_income_report(AuthContext.from_user(request.user), request.query_params))

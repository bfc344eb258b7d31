"""
Payment views.

- GET  /api/v1/payments/?patient=&estado=&fecha=
- POST /api/v1/payments/               create (admin, medico, secretaria)
- POST /api/v1/payments/{id}/void/     {"justificacion": "..."} (admin, medico)
"""
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action

from apps.authz.context import AuthContext
from apps.authz.permissions import IsStaffMember
from apps.core.views import action_response

from . import actions
from .models import Payment
from .serializers import PaymentSerializer


class PaymentViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = PaymentSerializer
    permission_classes = [IsStaffMember]

    def get_queryset(self):
        queryset = Payment.objects.prefetch_related('items', 'methods')
        params = self.request.query_params
        if params.get('patient'):
            queryset = queryset.filter(patient_id=params['patient'])
        if params.get('estado'):
            queryset = queryset.filter(estado=params['estado'])
        if params.get('fecha'):
            queryset = queryset.filter(created_at__date=params['fecha'])
        return queryset.order_by('-secuencia')

    def create(self, request):
        result = actions.create_payment(AuthContext.from_user(request.user), request.data)
        return action_response(result, success_status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def void(self, request, pk=None):
        return action_response(actions.void_payment(AuthContext.from_user(request.user), pk, request.data))

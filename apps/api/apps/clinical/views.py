"""
Clinical views: appointments (with status, reschedule and services
sub-resources), patients and the service catalog.

Mutations go through clinical.actions; views only render ActionResults.
"""
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.authz.context import AuthContext
from apps.authz.permissions import IsStaffMember
from apps.core.views import action_response

from . import actions
from .models import Appointment, Patient, Service
from .serializers import AppointmentSerializer, PatientSerializer, ServiceSerializer
from .services import get_pending_services_grouped


class AppointmentViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    - GET    /api/v1/clinical/appointments/?doctor=&estado=&desde=&hasta=
    - POST   /api/v1/clinical/appointments/
    - POST   /api/v1/clinical/appointments/with-new-patient/
    - PATCH  /api/v1/clinical/appointments/{id}/
    - DELETE /api/v1/clinical/appointments/{id}/            (Admin)
    - POST   /api/v1/clinical/appointments/{id}/status/     {"estado": "confirmada"}
    - POST   /api/v1/clinical/appointments/{id}/reschedule/
    - POST   /api/v1/clinical/appointments/{id}/services/   {"service_id", "cantidad", "precio"}
    - DELETE /api/v1/clinical/appointments/services/{service_line_id}/
    """
    serializer_class = AppointmentSerializer
    permission_classes = [IsStaffMember]
    ordering = ['fecha_hora_inicio']

    def get_queryset(self):
        queryset = (
            Appointment.objects
            .select_related('doctor', 'patient')
            .prefetch_related('services')
        )
        params = self.request.query_params
        if params.get('doctor'):
            queryset = queryset.filter(doctor_id=params['doctor'])
        if params.get('patient'):
            queryset = queryset.filter(patient_id=params['patient'])
        if params.get('estado'):
            queryset = queryset.filter(estado=params['estado'])
        if params.get('desde'):
            queryset = queryset.filter(fecha_hora_inicio__date__gte=params['desde'])
        if params.get('hasta'):
            queryset = queryset.filter(fecha_hora_inicio__date__lte=params['hasta'])
        return queryset.order_by('fecha_hora_inicio')

    def _ctx(self):
        return AuthContext.from_user(self.request.user)

    def create(self, request):
        result = actions.create_appointment(self._ctx(), request.data)
        return action_response(result, success_status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path='with-new-patient')
    def with_new_patient(self, request):
        result = actions.create_appointment_with_new_patient(self._ctx(), request.data)
        return action_response(result, success_status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        return action_response(actions.update_appointment(self._ctx(), pk, request.data))

    def destroy(self, request, pk=None):
        return action_response(actions.delete_appointment(self._ctx(), pk))

    @action(detail=True, methods=['post'], url_path='status')
    def change_status(self, request, pk=None):
        return action_response(actions.update_appointment_status(self._ctx(), pk, request.data))

    @action(detail=True, methods=['post'])
    def reschedule(self, request, pk=None):
        return action_response(actions.reschedule_appointment(self._ctx(), pk, request.data))

    @action(detail=True, methods=['post'])
    def services(self, request, pk=None):
        result = actions.add_service_to_appointment(self._ctx(), pk, request.data)
        return action_response(result, success_status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['delete'], url_path=r'services/(?P<service_line_id>[^/.]+)')
    def remove_service(self, request, service_line_id=None):
        return action_response(actions.remove_service_from_appointment(self._ctx(), service_line_id))


class PatientViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only patient lookup for booking and billing.

    GET /api/v1/clinical/patients/{id}/pending-services/ - unpaid services grouped by appointment
    """
    serializer_class = PatientSerializer
    permission_classes = [IsStaffMember]

    def get_queryset(self):
        queryset = Patient.objects.all()
        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(cedula__startswith=q) | queryset.filter(apellido__icontains=q)
        return queryset.order_by('apellido', 'nombre')

    @action(detail=True, methods=['get'], url_path='pending-services')
    def pending_services(self, request, pk=None):
        patient = self.get_object()
        groups = get_pending_services_grouped(patient.id)
        for group in groups:
            group['subtotal'] = str(group['subtotal'])
            for line in group['services']:
                line['precio_unitario'] = str(line['precio_unitario'])
                line['subtotal'] = str(line['subtotal'])
        return Response(groups, status=status.HTTP_200_OK)


class ServiceViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ServiceSerializer
    permission_classes = [IsStaffMember]
    queryset = Service.objects.filter(activo=True).order_by('nombre')

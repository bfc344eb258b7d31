"""
Authz views for Doctor.
"""
from rest_framework import viewsets

from apps.authz.models import Doctor
from apps.authz.permissions import DoctorPermission
from apps.authz.serializers import DoctorSerializer


class DoctorViewSet(viewsets.ModelViewSet):
    """
    - GET /api/v1/doctors/ - List doctors (active only unless ?include_inactive=true)
    - GET /api/v1/doctors/{id}/
    - POST/PATCH - Admin only
    """
    permission_classes = [DoctorPermission]
    serializer_class = DoctorSerializer
    http_method_names = ['get', 'post', 'patch', 'head', 'options']

    def get_queryset(self):
        queryset = Doctor.objects.select_related('user').all()

        include_inactive = self.request.query_params.get('include_inactive', 'false').lower() == 'true'
        if not include_inactive:
            queryset = queryset.filter(activo=True)

        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(nombre__icontains=q)

        return queryset.order_by('nombre')

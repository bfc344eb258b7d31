"""
Authz serializers for Doctor.
"""
from rest_framework import serializers
from apps.authz.models import Doctor


class DoctorSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source='user.email', read_only=True, default=None)

    class Meta:
        model = Doctor
        fields = [
            'id',
            'user',
            'user_email',
            'nombre',
            'especialidad',
            'activo',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'user_email', 'created_at', 'updated_at']

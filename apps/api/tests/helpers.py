"""Plain helpers shared by fixtures and tests."""
from datetime import datetime

from django.utils import timezone
from rest_framework.test import APIClient

from apps.authz.models import Role, User, UserRole


def create_user_with_role(email, role_name=None):
    """Active user holding `role_name` (or no role at all)."""
    user = User.objects.create_user(
        email=email,
        password='testpass123',
        is_active=True
    )
    if role_name:
        role, _ = Role.objects.get_or_create(name=role_name)
        UserRole.objects.create(user=user, role=role)
    return user


def at(hour, minute=0, day=6, month=5, year=2030):
    """Aware datetime in the clinic time zone."""
    return timezone.make_aware(datetime(year, month, day, hour, minute))


def authenticated_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


def cash(monto):
    return [{'metodo': 'efectivo', 'monto': monto}]

"""
Global test fixtures for pytest.

Provides reusable fixtures for service and API testing:
- Users per clinic role and their AuthContext
- Authenticated API clients by role
- Model instances (Doctor, Patient, Service, Product)
"""
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from apps.authz.context import AuthContext
from apps.authz.models import Doctor, RoleChoices
from apps.clinical.models import Patient, Service
from apps.inventory.models import Product, ProductSizeChoices, ProductTypeChoices

from helpers import authenticated_client, create_user_with_role


# ============================================================================
# Users and contexts
# ============================================================================

@pytest.fixture
def admin_user(db):
    return create_user_with_role('admin@clinica.test', RoleChoices.ADMIN)


@pytest.fixture
def second_admin_user(db):
    return create_user_with_role('admin2@clinica.test', RoleChoices.ADMIN)


@pytest.fixture
def medico_user(db):
    return create_user_with_role('medico@clinica.test', RoleChoices.MEDICO)


@pytest.fixture
def enfermera_user(db):
    return create_user_with_role('enfermera@clinica.test', RoleChoices.ENFERMERA)


@pytest.fixture
def secretaria_user(db):
    return create_user_with_role('secretaria@clinica.test', RoleChoices.SECRETARIA)


@pytest.fixture
def no_role_user(db):
    return create_user_with_role('sinrol@clinica.test')


@pytest.fixture
def admin_ctx(admin_user):
    return AuthContext.from_user(admin_user)


@pytest.fixture
def second_admin_ctx(second_admin_user):
    return AuthContext.from_user(second_admin_user)


@pytest.fixture
def medico_ctx(medico_user):
    return AuthContext.from_user(medico_user)


@pytest.fixture
def enfermera_ctx(enfermera_user):
    return AuthContext.from_user(enfermera_user)


@pytest.fixture
def secretaria_ctx(secretaria_user):
    return AuthContext.from_user(secretaria_user)


# ============================================================================
# API Clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def admin_client(admin_user):
    return authenticated_client(admin_user)


@pytest.fixture
def medico_client(medico_user):
    return authenticated_client(medico_user)


@pytest.fixture
def secretaria_client(secretaria_user):
    return authenticated_client(secretaria_user)


@pytest.fixture
def enfermera_client(enfermera_user):
    return authenticated_client(enfermera_user)


@pytest.fixture
def no_role_client(no_role_user):
    return authenticated_client(no_role_user)


# ============================================================================
# Domain fixtures
# ============================================================================

@pytest.fixture
def doctor(db):
    return Doctor.objects.create(nombre='Dra. Valentina Ríos', especialidad='Flebología')


@pytest.fixture
def other_doctor(db):
    return Doctor.objects.create(nombre='Dr. Andrés Gómez', especialidad='Cirugía vascular')


@pytest.fixture
def patient(db):
    return Patient.objects.create(nombre='Laura', apellido='Martínez', cedula='1020304050')


@pytest.fixture
def other_patient(db):
    return Patient.objects.create(nombre='Carlos', apellido='Pérez', cedula='9080706050')


@pytest.fixture
def service(db):
    return Service.objects.create(nombre='Consulta de valoración', precio_base=Decimal('150000.00'))


@pytest.fixture
def variable_service(db):
    return Service.objects.create(
        nombre='Escleroterapia',
        precio_base=Decimal('300000.00'),
        precio_variable=True,
        precio_minimo=Decimal('250000.00'),
        precio_maximo=Decimal('450000.00'),
    )


@pytest.fixture
def product(db):
    return Product.objects.create(
        codigo='MED-MUS-M',
        tipo=ProductTypeChoices.MUSLO,
        talla=ProductSizeChoices.M,
        precio=Decimal('120000.00'),
        stock_normal=10,
        umbral_alerta=3,
    )


@pytest.fixture
def other_product(db):
    return Product.objects.create(
        codigo='MED-PAN-L',
        tipo=ProductTypeChoices.PANTY,
        talla=ProductSizeChoices.L,
        precio=Decimal('180000.00'),
        stock_normal=4,
        umbral_alerta=2,
    )

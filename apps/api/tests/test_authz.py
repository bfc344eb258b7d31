"""
Tests for identity resolution and role checks.
"""
from datetime import date

import pytest
from django.contrib.auth.models import AnonymousUser
from django.core.management import call_command

from apps.authz.context import (
    ELEVATED_ROLES,
    AuthContext,
    require_authenticated,
    require_role,
    require_staff,
)
from apps.authz.models import Role, RoleChoices, UserRole
from apps.cash.services import close_cash
from apps.core.exceptions import Unauthenticated, Unauthorized

from helpers import create_user_with_role


@pytest.mark.django_db
class TestAuthContext:

    def test_anonymous_has_no_context(self):
        assert AuthContext.from_user(AnonymousUser()) is None
        assert AuthContext.from_user(None) is None

    def test_inactive_user_has_no_context(self, secretaria_user):
        secretaria_user.is_active = False
        secretaria_user.save()
        assert AuthContext.from_user(secretaria_user) is None

    def test_highest_role_wins(self, secretaria_user):
        """
        Scenario: a user holds both secretaria and medico.

        Expected: the effective role is medico.
        """
        medico, _ = Role.objects.get_or_create(name=RoleChoices.MEDICO)
        UserRole.objects.create(user=secretaria_user, role=medico)

        ctx = AuthContext.from_user(secretaria_user)

        assert ctx.role == RoleChoices.MEDICO
        assert ctx.user_id == secretaria_user.id

    def test_user_without_roles(self, no_role_user):
        ctx = AuthContext.from_user(no_role_user)
        assert ctx.role == 'none'
        assert ctx.roles == frozenset()

    def test_every_held_role_authorizes(self, secretaria_user):
        """
        Scenario: a user holds both secretaria and enfermera.

        Expected: enfermera is displayed, yet the secretaria permissions
        (closing the cash register) are still granted.
        """
        enfermera, _ = Role.objects.get_or_create(name=RoleChoices.ENFERMERA)
        UserRole.objects.create(user=secretaria_user, role=enfermera)

        ctx = AuthContext.from_user(secretaria_user)

        assert ctx.role == RoleChoices.ENFERMERA
        assert ctx.roles == {RoleChoices.SECRETARIA, RoleChoices.ENFERMERA}
        closing = close_cash(ctx, date(2025, 1, 10), 0)
        assert closing.cierre_numero == 'CIE-000001'



class TestRoleChecks:

    def test_identity_is_checked_before_role(self):
        with pytest.raises(Unauthenticated):
            require_role(None, [RoleChoices.ADMIN], 'Solo Admin')

    def test_require_authenticated_passes_context_through(self):
        ctx = AuthContext(user_id='u-1', role=RoleChoices.ENFERMERA)
        assert require_authenticated(ctx) is ctx

    def test_wrong_role(self):
        with pytest.raises(Unauthorized) as exc_info:
            require_role(AuthContext(user_id='u-1', role=RoleChoices.SECRETARIA), ELEVATED_ROLES, 'Solo Admin o Médico')
        assert exc_info.value.message == 'Solo Admin o Médico'

    @pytest.mark.parametrize('role', RoleChoices.values)
    def test_every_clinic_role_is_staff(self, role):
        assert require_staff(AuthContext(user_id='u-1', role=role)).role == role

    def test_no_role_is_not_staff(self):
        with pytest.raises(Unauthorized):
            require_staff(AuthContext(user_id='u-1'))


@pytest.mark.django_db
class TestEnsureRolesCommand:

    def test_creates_all_roles_idempotently(self):
        call_command('ensure_roles')
        call_command('ensure_roles')
        assert set(Role.objects.values_list('name', flat=True)) == set(RoleChoices.values)

    def test_assigns_role_to_user(self):
        user = create_user_with_role('nueva@clinica.test')
        call_command('ensure_roles', email='nueva@clinica.test', role=RoleChoices.SECRETARIA)
        assert AuthContext.from_user(user).role == RoleChoices.SECRETARIA

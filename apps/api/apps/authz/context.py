"""
Explicit identity passed into every business operation.

AuthContext is built once per request from the authenticated user and
handed to services; services never look up roles on their own.
"""
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional
from uuid import UUID

from apps.authz.models import RoleChoices
from apps.core.exceptions import Unauthenticated, Unauthorized
from apps.core.observability.correlation import bind_user

NO_ROLE = 'none'

# Highest precedence first; picks the displayed role
ROLE_PRECEDENCE = [choice.value for choice in RoleChoices]

STAFF_ROLES = frozenset(ROLE_PRECEDENCE)
ELEVATED_ROLES = frozenset({RoleChoices.ADMIN, RoleChoices.MEDICO})


@dataclass(frozen=True)
class AuthContext:
    """
    `roles` is every role the user holds and is what authorization checks.
    `role` is the highest one by precedence, for display only.
    """
    user_id: UUID
    role: str = NO_ROLE
    roles: FrozenSet[str] = frozenset()

    def __post_init__(self):
        if not self.roles and self.role != NO_ROLE:
            object.__setattr__(self, 'roles', frozenset({str(self.role)}))

    @classmethod
    def from_user(cls, user) -> Optional['AuthContext']:
        """
        Resolve the roles of `user`.

        Returns None for anonymous or inactive users.
        """
        if user is None or not getattr(user, 'is_authenticated', False) or not user.is_active:
            return None

        held = frozenset(user.user_roles.values_list('role__name', flat=True)) & STAFF_ROLES
        role = next((name for name in ROLE_PRECEDENCE if name in held), NO_ROLE)
        bind_user(user.id, role)
        return cls(user_id=user.id, role=role, roles=held)

    def has_role(self, allowed: Iterable[str]) -> bool:
        return bool(self.roles & {str(r) for r in allowed})


def require_authenticated(ctx: Optional[AuthContext]) -> AuthContext:
    if ctx is None:
        raise Unauthenticated()
    return ctx


def require_role(ctx: Optional[AuthContext], allowed: Iterable[str], message: str) -> AuthContext:
    """
    Check authentication first, then role membership.

    Raises:
        Unauthenticated: no identity
        Unauthorized: identity without one of the `allowed` roles
    """
    ctx = require_authenticated(ctx)
    if not ctx.has_role(allowed):
        raise Unauthorized(message)
    return ctx


def require_staff(ctx: Optional[AuthContext]) -> AuthContext:
    return require_role(ctx, STAFF_ROLES, 'Su usuario no tiene un rol asignado para esta operación')

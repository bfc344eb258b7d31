"""
Domain error taxonomy.

Services raise these; the orchestration layer (actions.py in each app)
recovers them into ActionResult objects with a user-facing message.

Every error carries a stable `code` so callers never pattern-match on
message text.
"""
from typing import Dict, List, Optional


class DomainError(Exception):
    """Base class for expected business failures."""

    code = 'domain_error'

    def __init__(self, message: str, field_errors: Optional[Dict[str, List[str]]] = None, **context):
        super().__init__(message)
        self.message = message
        self.field_errors = field_errors or {}
        self.context = context

    def __str__(self):
        return self.message


class Unauthenticated(DomainError):
    """No valid identity. Always checked before any business logic."""
    code = 'unauthenticated'

    def __init__(self, message='No autorizado. Por favor inicie sesión.', **kwargs):
        super().__init__(message, **kwargs)


class Unauthorized(DomainError):
    """Valid identity with insufficient role for the operation."""
    code = 'unauthorized'


class ValidationFailed(DomainError):
    code = 'validation_failed'


class InvalidTransition(DomainError):
    """Status-machine rule violated."""
    code = 'invalid_transition'

    def __init__(self, current, requested, current_label, requested_label):
        message = (
            f'No se puede cambiar de "{current_label}" a "{requested_label}". '
            f'Transición no permitida.'
        )
        super().__init__(message, current=current, requested=requested)
        self.current = current
        self.requested = requested
        self.current_label = current_label
        self.requested_label = requested_label


class SlotUnavailable(DomainError):
    """Booking overlap for the same doctor."""
    code = 'slot_unavailable'

    DEFAULT_MESSAGE = (
        'El doctor ya tiene una cita programada en ese horario. '
        'Por favor seleccione otro horario.'
    )

    def __init__(self, field='fecha_hora_inicio', message=DEFAULT_MESSAGE):
        super().__init__(
            message,
            field_errors={field: ['Horario no disponible - hay otra cita']},
        )
        self.field = field


class InvalidState(DomainError):
    """Entity is not in the precondition state required by the operation."""
    code = 'invalid_state'


class InsufficientStock(InvalidState):
    code = 'insufficient_stock'


class NotFound(DomainError):
    code = 'not_found'


class ConflictError(DomainError):
    """Concurrent modification or numbering contention that survived a retry."""
    code = 'conflict'

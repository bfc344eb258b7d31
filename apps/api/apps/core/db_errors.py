"""
Translation of raw storage errors into domain errors.

Postgres reports a stable SQLSTATE on the driver exception wrapped by
Django's IntegrityError. SQLite has no codes, so the message text is
matched instead.
"""
from typing import Dict, Optional, Tuple

from apps.core.exceptions import ConflictError, DomainError, SlotUnavailable, ValidationFailed

EXCLUSION_VIOLATION = '23P01'
FOREIGN_KEY_VIOLATION = '23503'
UNIQUE_VIOLATION = '23505'
SERIALIZATION_FAILURE = '40001'
DEADLOCK_DETECTED = '40P01'
LOCK_NOT_AVAILABLE = '55P03'

CONTENTION_CODES = frozenset({SERIALIZATION_FAILURE, DEADLOCK_DETECTED, LOCK_NOT_AVAILABLE})

_CONTENTION_MESSAGES = (
    'database is locked',
    'deadlock detected',
    'could not serialize access',
    'could not obtain lock',
)

_MESSAGE_FALLBACKS = (
    ('exclusion constraint', EXCLUSION_VIOLATION),
    ('foreign key constraint', FOREIGN_KEY_VIOLATION),
    ('unique constraint', UNIQUE_VIOLATION),
    ('duplicate key', UNIQUE_VIOLATION),
)


def storage_error_code(exc: Exception) -> Optional[str]:
    """Return the SQLSTATE of a database error, or a best guess from its text."""
    cause = exc.__cause__
    code = getattr(cause, 'pgcode', None) or getattr(cause, 'sqlstate', None)
    if code:
        return code

    text = str(exc).lower()
    for needle, fallback in _MESSAGE_FALLBACKS:
        if needle in text:
            return fallback
    return None


def is_contention_error(exc: Exception) -> bool:
    """Whether an OperationalError is lock contention worth retrying (not a lost connection)."""
    cause = exc.__cause__
    code = getattr(cause, 'pgcode', None) or getattr(cause, 'sqlstate', None)
    if code:
        return code in CONTENTION_CODES
    text = str(exc).lower()
    return any(needle in text for needle in _CONTENTION_MESSAGES)


def translate_integrity_error(
    exc: Exception,
    foreign_keys: Optional[Dict[str, Tuple[str, str]]] = None,
    unique_message: Optional[str] = None,
) -> DomainError:
    """
    Map an IntegrityError to the domain error the caller should raise.

    Args:
        exc: The IntegrityError
        foreign_keys: {column_substring: (field, message)} for 23503 errors
        unique_message: Message for 23505 errors

    Returns:
        A DomainError instance (the caller raises it `from exc`)
    """
    code = storage_error_code(exc)
    text = str(exc)

    if code == EXCLUSION_VIOLATION:
        return SlotUnavailable()

    if code == FOREIGN_KEY_VIOLATION:
        for column, (field, message) in (foreign_keys or {}).items():
            if column in text:
                return ValidationFailed(message, field_errors={field: [message]})
        return ValidationFailed('Referencia inválida: el registro relacionado no existe')

    if code == UNIQUE_VIOLATION:
        return ConflictError(unique_message or 'El registro ya existe')

    return ConflictError('No se pudo guardar el registro por un conflicto de datos')

"""
Gapless document numbering.

BUSINESS RULES:
- Numbers are strictly increasing and contiguous among successful operations
- The increment happens inside the same transaction as the numbered insert,
  under a row lock on the counter, so concurrent issuers are serialized
- A failed transaction rolls the increment back (no number consumed)
- Lock contention (deadlock, serialization failure, lock timeout) is retried
  once, then surfaced as ConflictError; other operational errors propagate
"""
from functools import wraps

from django.db import OperationalError, transaction

from apps.core.db_errors import is_contention_error
from apps.core.exceptions import ConflictError
from apps.core.models import SequenceCounter
from apps.core.observability import get_sanitized_logger, metrics

logger = get_sanitized_logger(__name__)

CONTENTION_MESSAGE = (
    'El sistema está procesando otra operación similar. '
    'Por favor intente de nuevo en unos segundos.'
)


def next_sequence_value(name: str) -> int:
    """
    Increment counter `name` and return the new value.

    Must be called inside transaction.atomic(); the lock is held until the
    surrounding transaction commits or rolls back.
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError('next_sequence_value() requires an atomic block')

    counter, _ = SequenceCounter.objects.select_for_update().get_or_create(name=name)
    counter.last_value += 1
    counter.save(update_fields=['last_value', 'updated_at'])
    return counter.last_value


def format_document_number(prefix: str, value: int) -> str:
    return f'{prefix}-{value:06d}'


def retry_on_contention(operation: str):
    """
    Run a transactional operation, retrying it once on lock contention.

    The decorated function must open its own atomic block so each attempt
    is a fresh transaction.

    Usage:
        @retry_on_contention('create_payment')
        def create_payment(...):
            with transaction.atomic():
                ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except OperationalError as first_error:
                if not is_contention_error(first_error):
                    raise
                metrics.numbering_retries_total.labels(operation=operation).inc()
                logger.warning(
                    'Numbering contention, retrying once',
                    extra={'operation': operation, 'error': str(first_error)}
                )

            try:
                return func(*args, **kwargs)
            except OperationalError as second_error:
                if not is_contention_error(second_error):
                    raise
                metrics.numbering_conflicts_total.labels(operation=operation).inc()
                logger.error(
                    'Numbering contention persisted after retry',
                    extra={'operation': operation, 'error': str(second_error)}
                )
                raise ConflictError(CONTENTION_MESSAGE) from second_error
        return wrapper
    return decorator

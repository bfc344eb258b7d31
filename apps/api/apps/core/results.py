"""
Discriminated results returned by the orchestration layer.

Actions never raise for expected domain failures: they return an
ActionResult with either `data` or an error code, message and field errors.
"""
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

from django.db import DatabaseError

from apps.core.exceptions import DomainError
from apps.core.observability import get_sanitized_logger, log_domain_event, metrics

logger = get_sanitized_logger(__name__)

GENERIC_ERROR_MESSAGE = 'Ocurrió un error inesperado. Por favor intente de nuevo.'


@dataclass
class ActionResult:
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    field_errors: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def ok(cls, data=None):
        return cls(success=True, data=data or {})

    @classmethod
    def fail(cls, error, error_code, field_errors=None, data=None):
        return cls(
            success=False,
            data=data,
            error=error,
            error_code=error_code,
            field_errors=field_errors or {},
        )

    def to_dict(self):
        return asdict(self)


def run_action(action_name: str, operation: Callable[[], Optional[Dict[str, Any]]]) -> ActionResult:
    """
    Execute `operation` and convert its outcome into an ActionResult.

    - DomainError -> failure with its code, message and field errors
    - DatabaseError (connectivity, schema mismatch) -> logged, generic message
    - anything else propagates
    """
    start_time = time.time()
    try:
        data = operation()
    except DomainError as e:
        metrics.actions_total.labels(action=action_name, result=e.code).inc()
        log_domain_event(
            f'action.{action_name}',
            result='blocked',
            error_code=e.code,
            error=e.message,
        )
        return ActionResult.fail(
            e.message,
            e.code,
            field_errors=e.field_errors,
            data={key: str(value) for key, value in e.context.items()} or None,
        )
    except DatabaseError:
        metrics.actions_total.labels(action=action_name, result='storage_error').inc()
        logger.error(
            f'Action failed with storage error: {action_name}',
            exc_info=True,
            extra={'action': action_name}
        )
        return ActionResult.fail(GENERIC_ERROR_MESSAGE, 'unexpected')

    duration_ms = int((time.time() - start_time) * 1000)
    metrics.actions_total.labels(action=action_name, result='success').inc()
    log_domain_event(f'action.{action_name}', result='success', duration_ms=duration_ms)
    return ActionResult.ok(data)

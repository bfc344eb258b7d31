"""
Domain events logging helpers.

Structured, sanitized event records for business operations.
"""
from typing import Dict, Optional

from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)

_ERROR_RESULTS = {'failure', 'error'}
_WARNING_RESULTS = {'warning', 'blocked', 'conflict'}


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'payment.created', 'purchase.cancelled')
        entity_type: Type of entity (e.g., 'Payment', 'Purchase')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: success | blocked | conflict | failure ...
        **extra_fields: Additional fields (sanitized)

    Example:
        log_domain_event(
            'payment.created',
            entity_type='Payment',
            entity_id=str(payment.id),
            entity_ids={'patient_id': str(payment.patient_id)},
            numero_factura=payment.numero_factura,
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }
    if entity_type:
        event_data['entity_type'] = entity_type
    if entity_id:
        event_data['entity_id'] = entity_id
    if entity_ids:
        event_data.update(entity_ids)
    event_data.update(sanitize_dict(extra_fields))

    if result in _ERROR_RESULTS:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in _WARNING_RESULTS:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_consistency_checkpoint(
    checkpoint_name: str,
    entity_ids: Dict[str, str],
    checks_passed: Dict[str, bool],
    **extra_fields
):
    """
    Log a consistency checkpoint for money or stock moving operations.

    Example:
        log_consistency_checkpoint(
            'payment_balance',
            entity_ids={'payment_id': str(payment.id)},
            checks_passed={'methods_match_total': True, 'items_match_subtotal': True},
            total=str(payment.total),
        )
    """
    all_passed = all(checks_passed.values())

    event_data = {
        'event': 'consistency_checkpoint',
        'checkpoint': checkpoint_name,
        'status': 'passed' if all_passed else 'failed',
        'checks': checks_passed,
    }
    event_data.update(entity_ids)
    event_data.update(sanitize_dict(extra_fields))

    if all_passed:
        logger.info(f'Checkpoint passed: {checkpoint_name}', extra=event_data)
    else:
        logger.error(f'Checkpoint FAILED: {checkpoint_name}', extra=event_data)


def log_status_transition(entity_type, entity_id, from_status, to_status, result='success', **extra):
    """Log a status change of any entity governed by a transition table."""
    log_domain_event(
        f'{entity_type.lower()}.transition',
        entity_type=entity_type,
        entity_id=str(entity_id),
        result=result,
        from_status=from_status,
        to_status=to_status,
        **extra
    )


def log_stock_movement(movement):
    log_domain_event(
        'stock.movement',
        entity_type='StockMovement',
        entity_id=str(movement.id),
        entity_ids={'product_id': str(movement.product_id)},
        tipo=movement.tipo,
        bucket=movement.bucket,
        cantidad=movement.cantidad,
        stock_antes=movement.stock_antes,
        stock_despues=movement.stock_despues,
    )

"""
Schema-level validation for the orchestration layer.

Payloads are validated with DRF serializers before any storage call;
serializer errors become a ValidationFailed with flat field errors
(`items.0.cantidad`) that forms can attach to inputs.
"""
from django.conf import settings

from apps.core.exceptions import ValidationFailed

INVALID_PAYLOAD_MESSAGE = 'Datos inválidos. Revise los campos marcados.'


def flatten_errors(errors, prefix=''):
    """Turn DRF's nested error structure into {dotted.field: [messages]}."""
    flat = {}
    if isinstance(errors, dict):
        for key, value in errors.items():
            name = key if key != 'non_field_errors' else '__all__'
            flat.update(flatten_errors(value, f'{prefix}{name}' if not prefix else f'{prefix}.{name}'))
    elif isinstance(errors, list) and errors and all(isinstance(e, (dict, list)) for e in errors):
        for index, value in enumerate(errors):
            if value:
                flat.update(flatten_errors(value, f'{prefix}.{index}' if prefix else str(index)))
    else:
        messages = errors if isinstance(errors, list) else [errors]
        flat[prefix or '__all__'] = [str(message) for message in messages]
    return flat


def validated_data(serializer_class, payload, **kwargs):
    """
    Validate `payload` with `serializer_class`.

    Returns:
        serializer.validated_data

    Raises:
        ValidationFailed: with field_errors populated
    """
    serializer = serializer_class(data=payload if payload is not None else {}, **kwargs)
    if not serializer.is_valid():
        field_errors = flatten_errors(serializer.errors)
        general = field_errors.get('__all__')
        raise ValidationFailed(general[0] if general else INVALID_PAYLOAD_MESSAGE, field_errors=field_errors)
    return serializer.validated_data


def require_justification(text, field='justificacion', min_length=None, max_length=None, label='La justificación'):
    """
    Trimmed justification text, or ValidationFailed naming `field`.

    Defaults come from CLINIC_OPS_JUSTIFICATION_MIN_LENGTH / _MAX_LENGTH.
    """
    min_length = settings.CLINIC_OPS_JUSTIFICATION_MIN_LENGTH if min_length is None else min_length
    max_length = settings.CLINIC_OPS_JUSTIFICATION_MAX_LENGTH if max_length is None else max_length
    cleaned = (text or '').strip()

    if len(cleaned) < min_length:
        message = f'{label} debe tener al menos {min_length} caracteres'
        raise ValidationFailed(message, field_errors={field: [message]})
    if max_length and len(cleaned) > max_length:
        message = f'{label} no puede exceder {max_length} caracteres'
        raise ValidationFailed(message, field_errors={field: [message]})
    return cleaned

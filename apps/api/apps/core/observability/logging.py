"""
Structured logging with patient-data protection.

Log records are enriched with correlation context and any field whose
name identifies personal or clinical data is redacted before output.
"""
import json
import logging
from datetime import datetime, timezone

from .correlation import get_request_id, get_trace_id, get_user_id, get_user_role


# Fields that should NEVER be logged in clear text
SENSITIVE_FIELDS = {
    'password',
    'token',
    'secret',
    'api_key',
    'nombre',
    'apellido',
    'cedula',
    'telefono',
    'email',
    'fecha_nacimiento',
    'direccion',
    'motivo',
    'notas',
    'comprobante_path',
    'factura_path',
    'foto_path',
    'cierre_photo_path',
}

# Attributes every LogRecord has; never copied as extra fields
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord('', 0, '', 0, '', (), None).__dict__
) | {'message', 'asctime', 'taskName'}

REDACTED = '[REDACTED]'


def _is_sensitive(key):
    return str(key).lower() in SENSITIVE_FIELDS


class CorrelationFilter(logging.Filter):
    """Inject request/trace/user context into every record."""

    def filter(self, record):
        record.request_id = get_request_id() or '-'
        record.trace_id = get_trace_id() or '-'
        record.user_id = get_user_id() or '-'
        record.user_role = get_user_role() or '-'
        return True


class SanitizedJSONFormatter(logging.Formatter):
    """One JSON object per line, sensitive keys redacted at any depth."""

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'request_id': getattr(record, 'request_id', '-'),
            'trace_id': getattr(record, 'trace_id', '-'),
            'user_id': getattr(record, 'user_id', '-'),
            'user_role': getattr(record, 'user_role', '-'),
        }

        for key, value in record.__dict__.items():
            if key in log_data or key in _RECORD_ATTRIBUTES or key.startswith('_'):
                continue
            log_data[key] = REDACTED if _is_sensitive(key) else sanitize_value(value)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def sanitize_value(value):
    """Redact sensitive keys inside nested dicts and lists."""
    if isinstance(value, dict):
        return {
            k: REDACTED if _is_sensitive(k) else sanitize_value(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [sanitize_value(v) for v in value]
    return value


def sanitize_dict(data):
    """Sanitized copy of `data`; non-dicts are returned unchanged."""
    if not isinstance(data, dict):
        return data
    return sanitize_value(data)


def get_sanitized_logger(name):
    """
    Get a logger with the correlation filter attached.

    Usage:
        logger = get_sanitized_logger(__name__)
        logger.info('Payment created', extra={'payment_id': str(payment.id)})
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationFilter) for f in logger.filters):
        logger.addFilter(CorrelationFilter())
    return logger

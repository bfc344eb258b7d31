"""
Cache invalidation signal fired after successful mutations.

Fire-and-forget: receivers run after the surrounding transaction commits,
and a failing receiver is logged, never raised to the caller.
"""
from django.core.cache import cache
from django.db import transaction
from django.dispatch import Signal, receiver

from apps.core.observability import get_sanitized_logger

logger = get_sanitized_logger(__name__)

# Named views whose cached data must be marked stale
APPOINTMENTS = 'citas'
PAYMENTS = 'pagos'
PRODUCTS = 'productos'
REPORTS = 'reportes'
CLOSINGS = 'cierres'
PURCHASES = 'compras'
RETURNS = 'devoluciones'
SALES = 'ventas'

views_invalidated = Signal()


def view_cache_key(view_name):
    return f'view:{view_name}'


def revalidate(*view_names):
    """Mark `view_names` stale once the current transaction commits."""
    names = tuple(dict.fromkeys(view_names))
    if not names:
        return

    def _send():
        responses = views_invalidated.send_robust(sender=None, views=names)
        for handler, response in responses:
            if isinstance(response, Exception):
                logger.warning(
                    'Revalidation receiver failed',
                    extra={
                        'event': 'revalidation_failed',
                        'receiver': getattr(handler, '__name__', repr(handler)),
                        'error': str(response),
                        'views': list(names),
                    }
                )

    transaction.on_commit(_send)


@receiver(views_invalidated)
def clear_cached_views(sender, views, **kwargs):
    cache.delete_many([view_cache_key(name) for name in views])

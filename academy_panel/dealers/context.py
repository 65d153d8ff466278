"""
Dealer context - хранение текущего дилера.
Используется middleware для установки; читается из signals и Celery tasks,
где нет request.

Использует contextvars (async-safe) вместо threading.local.
"""
import contextvars

_current_dealer: contextvars.ContextVar = contextvars.ContextVar(
    'current_dealer', default=None
)


def set_current_dealer(dealer):
    _current_dealer.set(dealer)


def get_current_dealer():
    """Текущий дилер или None если не установлен."""
    return _current_dealer.get()


def clear_current_dealer():
    _current_dealer.set(None)

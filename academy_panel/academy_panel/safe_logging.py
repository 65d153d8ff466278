"""
Logging helpers для многопоточного gunicorn.

ThreadSafeStreamHandler сериализует запись в stderr общим RLock, иначе
возможен ``RuntimeError: reentrant call inside <_io.BufferedWriter>``.
DealerContextFilter добавляет в запись slug текущего дилера.
"""
import logging
import threading

from dealers.context import get_current_dealer


class DealerContextFilter(logging.Filter):
    """Sets ``record.dealer`` to the slug of the dealer bound to this context, or '-'."""

    def filter(self, record):
        if not hasattr(record, 'dealer'):
            dealer = get_current_dealer()
            record.dealer = getattr(dealer, 'slug', None) or '-'
        return True


class ThreadSafeStreamHandler(logging.StreamHandler):
    _write_lock = threading.RLock()

    def emit(self, record):
        try:
            msg = self.format(record)
            with self._write_lock:
                self.stream.write(msg + self.terminator)
                self.flush()
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)

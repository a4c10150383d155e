"""Structured logger carrying run, operation and iteration context."""

import logging
import sys
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Optional

# Correlation fields injected into every record
run_context: ContextVar[Optional[str]] = ContextVar('run_id', default=None)
operation_context: ContextVar[Optional[str]] = ContextVar('operation', default=None)
iteration_context: ContextVar[Optional[int]] = ContextVar('iteration', default=None)


@contextmanager
def iteration_scope(iteration: int):
    """Tag every record logged inside the block with ``iteration``."""
    token = iteration_context.set(iteration)
    try:
        yield
    finally:
        iteration_context.reset(token)


def _format_traceback(exc_info: Any) -> Optional[str]:
    if isinstance(exc_info, BaseException):
        exc_info = (type(exc_info), exc_info, exc_info.__traceback__)
    elif not isinstance(exc_info, tuple):
        exc_info = sys.exc_info()
    if exc_info[0] is None:
        return None
    return ''.join(traceback.format_exception(*exc_info))


class StructuredLogger(logging.Logger):
    """Logger that attaches ``context``, ``metrics`` and ``traceback`` to records.

    ``extra={'context': {...}}`` adds per-message fields on top of the
    active run/operation/iteration and any fields bound with ``bind``;
    ``extra={'metrics': {...}}`` carries timing data for the formatters.
    Tracebacks are rendered once here so the JSON file keeps them as text.
    """

    def __init__(self, name: str):
        super().__init__(name)
        self._bound: Dict[str, Any] = {}

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False, **kwargs):
        extra = dict(extra) if isinstance(extra, dict) else {}

        context = {
            'run_id': run_context.get(),
            'operation': operation_context.get(),
            'iteration': iteration_context.get(),
            **self._bound,
        }
        context.update(extra.pop('context', None) or {})
        extra['context'] = {k: v for k, v in context.items() if v is not None}
        extra['metrics'] = extra.pop('metrics', None)

        tb = extra.pop('traceback', None)
        if tb is None and exc_info:
            tb = _format_traceback(exc_info)
        extra['traceback'] = tb

        super()._log(level, msg, args, exc_info=False, extra=extra,
                     stack_info=stack_info, **kwargs)

    def bind(self, **fields):
        """Attach fields to every later message of this logger."""
        self._bound.update(fields)

    def unbind(self, *keys):
        for key in keys:
            self._bound.pop(key, None)

    def log_timing(self, operation: str, seconds: float, **metrics):
        """Log how long ``operation`` took.

        Passing ``n_items`` also records a throughput in ``per_second``,
        e.g. ``logger.log_timing('cookies', 0.8, n_items=100)`` for 100 draws.
        """
        data = {'operation': operation, 'seconds': round(seconds, 3), **metrics}
        if metrics.get('n_items') and seconds > 0:
            data['per_second'] = round(metrics['n_items'] / seconds, 2)
        self.info(f"{operation} took {seconds:.3f}s", extra={'metrics': data})

    def log_failure(self, error: BaseException, operation: Optional[str] = None, **context):
        """Log ``error`` at ERROR level with its type and traceback."""
        fields = {'error_type': type(error).__name__, **context}
        if operation:
            fields['operation'] = operation
        self.error(f"{type(error).__name__}: {error}", exc_info=error,
                   extra={'context': fields})


_loggers: Dict[str, StructuredLogger] = {}


def get_logger(name: str) -> StructuredLogger:
    """Structured logger for ``name``, usually ``__name__``."""
    logger = _loggers.get(name)
    if logger is not None:
        return logger

    previous = logging.getLoggerClass()
    logging.setLoggerClass(StructuredLogger)
    try:
        logger = logging.getLogger(name)
    finally:
        logging.setLoggerClass(previous)

    # A name registered earlier through logging.getLogger keeps its class
    if not isinstance(logger, StructuredLogger):
        logger.__class__ = StructuredLogger
        logger._bound = {}

    _loggers[name] = logger
    return logger

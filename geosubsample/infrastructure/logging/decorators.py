"""The ``log_operation`` decorator for public sampling and summary entry points."""

import functools
import inspect
import time
from typing import Any, Callable, Dict, Optional

import psutil

from .structured_logger import get_logger, operation_context

_SCALARS = (str, int, float, bool)


def _describe_arguments(func: Callable, args: tuple, kwargs: dict) -> Dict[str, Any]:
    """Scalar arguments by value, everything else by type name."""
    bound = inspect.signature(func).bind(*args, **kwargs)
    bound.apply_defaults()
    described = {}
    for name, value in bound.arguments.items():
        if name == 'self':
            continue
        if value is None or isinstance(value, _SCALARS):
            described[name] = value
        else:
            described[name] = f"<{type(value).__name__}>"
    return described


def log_operation(operation_name: Optional[str] = None,
                  log_args: bool = False,
                  log_performance: bool = True):
    """Log entry, timing and failure of the decorated call.

    Args:
        operation_name: Name recorded as ``operation`` (defaults to the function name)
        log_args: Include the call's parameters in the start record
        log_performance: Log duration and resident memory on success
    """
    def decorator(func):
        name = operation_name or func.__name__
        logger = get_logger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            token = operation_context.set(name)
            started = time.perf_counter()
            context = _describe_arguments(func, args, kwargs) if log_args else {}
            logger.debug(f"{name} called", extra={'context': context})
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"{name} failed: {e}", exc_info=True,
                    extra={'metrics': {'operation': name, 'status': 'failed',
                                       'seconds': round(time.perf_counter() - started, 3),
                                       'error_type': type(e).__name__}}
                )
                raise
            else:
                if log_performance:
                    rss_mb = psutil.Process().memory_info().rss / 2 ** 20
                    logger.log_timing(name, time.perf_counter() - started,
                                      status='success', memory_mb=round(rss_mb, 1))
                return result
            finally:
                operation_context.reset(token)

        return wrapper
    return decorator

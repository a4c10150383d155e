"""Structured logging for sampling runs."""

from .structured_logger import (
    StructuredLogger, get_logger, iteration_scope,
    run_context, operation_context, iteration_context
)
from .context import LoggingContext
from .decorators import log_operation
from .setup import setup_logging

__all__ = [
    'StructuredLogger',
    'get_logger',
    'iteration_scope',
    'run_context',
    'operation_context',
    'iteration_context',
    'LoggingContext',
    'log_operation',
    'setup_logging',
]

"""Console formatter: one line per record plus metrics and traceback."""

import logging
import time
from typing import Any, Dict

_LEVEL_COLORS = {
    logging.DEBUG: '\033[36m',
    logging.WARNING: '\033[33m',
    logging.ERROR: '\033[31m',
    logging.CRITICAL: '\033[35m',
}
_RESET = '\033[0m'
_DIM = '\033[2m'


class HumanFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL [logger] {run op #iteration} message``.

    The context tag only shows the correlation fields; other context keys
    go to the JSON file.
    """

    def __init__(self, use_colors: bool = True, show_context: bool = True):
        super().__init__()
        self.use_colors = use_colors
        self.show_context = show_context

    def _paint(self, text: str, code: str) -> str:
        return f"{code}{text}{_RESET}" if self.use_colors and code else text

    def format(self, record: logging.LogRecord) -> str:
        stamp = time.strftime('%H:%M:%S', time.localtime(record.created))
        pieces = [
            self._paint(stamp, _DIM),
            self._paint(f"{record.levelname:<7}", _LEVEL_COLORS.get(record.levelno, '')),
            self._paint(f"[{record.name.rsplit('.', 1)[-1]}]", _DIM),
        ]
        if self.show_context:
            tag = self.context_tag(getattr(record, 'context', None) or {})
            if tag:
                pieces.append(tag)
        pieces.append(record.getMessage())
        lines = [' '.join(pieces)]

        metrics = getattr(record, 'metrics', None)
        if metrics:
            lines.append(self._paint(f"    {self.describe_metrics(metrics)}", _DIM))

        tb = getattr(record, 'traceback', None)
        if tb:
            lines.append(tb.rstrip())
        return '\n'.join(lines)

    @staticmethod
    def context_tag(context: Dict[str, Any]) -> str:
        parts = []
        if 'run_id' in context:
            parts.append(str(context['run_id'])[:8])
        if 'operation' in context:
            parts.append(str(context['operation']))
        if 'iteration' in context:
            parts.append(f"#{context['iteration']}")
        return '{' + ' '.join(parts) + '}' if parts else ''

    @staticmethod
    def describe_metrics(metrics: Dict[str, Any]) -> str:
        parts = []
        if 'seconds' in metrics:
            parts.append(f"{metrics['seconds']:.3f}s")
        if 'per_second' in metrics:
            parts.append(f"{metrics['per_second']:.1f}/s")
        if 'memory_mb' in metrics:
            parts.append(f"rss {metrics['memory_mb']:.0f} MB")
        if metrics.get('status') not in (None, 'success'):
            parts.append(str(metrics['status']))
        return ', '.join(parts)

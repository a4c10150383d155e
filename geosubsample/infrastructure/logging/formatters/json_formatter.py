"""JSON-lines formatter for log files."""

import json
import logging
from datetime import datetime, timezone


class JsonFormatter(logging.Formatter):
    """One compact JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'time': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'where': f"{record.module}:{record.funcName}:{record.lineno}",
            'pid': record.process,
        }
        for key in ('context', 'metrics', 'traceback'):
            value = getattr(record, key, None)
            if value:
                entry[key] = value
        if 'traceback' not in entry and record.exc_info:
            entry['traceback'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, separators=(',', ':'))

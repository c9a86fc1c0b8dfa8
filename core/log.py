"""
Structured logging.

Log records are emitted as one JSON object per line so that they can be
shipped to a log aggregator without further parsing.  The formatter is
installed through ``settings.LOGGING``; modules obtain loggers with
``logging.getLogger(__name__)`` and attach context through ``extra=``.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

# Attributes copied from ``extra=`` into the JSON payload when present.
CONTEXT_FIELDS = ('user_id', 'request_id', 'operation', 'execution_time', 'error_type', 'extra_data')


class StructuredFormatter(logging.Formatter):
    """Render a log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }
        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False, default=str)

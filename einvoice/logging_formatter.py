"""Structured JSON logging formatter for Authority call observability."""

import json
import logging
from datetime import datetime, timezone

# Optional record attributes copied into the JSON line when set
EXTRA_FIELDS = ("operation", "endpoint", "sales_point", "document_type", "sequence_number", "status_code")


class JSONFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message plus known extras."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        log_obj = {
            "timestamp": now.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value not in (None, ""):
                log_obj[name] = value
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)

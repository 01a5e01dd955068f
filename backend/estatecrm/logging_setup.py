"""
EstateCRM Reminders - Logging Setup

Purpose: One place to configure the root logger for the API process and the
scheduler Lambda.

    LOG_FORMAT=json  one JSON object per line (CloudWatch Logs Insights)
    LOG_FORMAT=text  human readable, for local development

Request and dispatch code attach `request_id`, `employee_id` and
`reminder_id` through `extra=`; the JSON formatter copies them into the record.
"""

import json
import logging
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = ('request_id', 'employee_id', 'reminder_id')

NOISY_LOGGERS = ('botocore', 'boto3', 'urllib3', 'apscheduler.executors.default')


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def setup_logging(level: str = "INFO", log_format: str = "json"):
    """Replace root handlers with a single stdout handler"""
    handler = logging.StreamHandler(sys.stdout)

    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

    logging.basicConfig(level=getattr(logging, level), handlers=[handler], force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

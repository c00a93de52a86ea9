"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def __init__(self, *args, service_name: str = "tutor-payroll", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "tutor-payroll") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        service_name=service_name,
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_compensation(
    instructor_id: str,
    period_start: str,
    period_end: str,
    net_salary_cents: int,
    cache_hit: bool,
    duration_ms: float,
) -> None:
    """Log structured compensation outcome for auditing"""
    logging.info(
        "Compensation computed",
        extra={
            "instructor_id": instructor_id,
            "period_start": period_start,
            "period_end": period_end,
            "step": "compensation_complete",
            "net_salary_cents": net_salary_cents,
            "cache_hit": cache_hit,
            "duration_ms": duration_ms,
        },
    )

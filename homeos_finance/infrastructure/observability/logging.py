"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from homeos_finance.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_generation_run(
    user_id: str,
    as_of: str,
    generated: int,
    skipped_existing: int,
    failures: int,
    duration_ms: float,
) -> None:
    """Log structured generation outcome for monitoring"""
    logging.getLogger("homeos_finance.generation").info(
        "Recurring generation completed",
        extra={
            "user_id": user_id,
            "as_of": as_of,
            "step": "generation_complete",
            "generated": generated,
            "skipped_existing": skipped_existing,
            "failures": failures,
            "duration_ms": duration_ms,
        },
    )


def log_forecast(
    user_id: str,
    horizon_months: int,
    data_points: int,
    starting_balance: str,
    duration_ms: float,
) -> None:
    """Log structured forecast outcome for analysis"""
    logging.getLogger("homeos_finance.forecast").info(
        "Cash-flow forecast computed",
        extra={
            "user_id": user_id,
            "step": "forecast_complete",
            "horizon_months": horizon_months,
            "data_points": data_points,
            "starting_balance": starting_balance,
            "duration_ms": duration_ms,
        },
    )

"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "salary-advance"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def __init__(self, *args: Any, service_name: str = SERVICE_NAME, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = SERVICE_NAME) -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s", service_name=service_name
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_import_completed(kind: str, total: int, accepted: int, persistence_failures: int) -> None:
    """Log batch outcome for analysis"""
    logging.info(
        "Import completed",
        extra={
            "step": "import_complete",
            "kind": kind,
            "records_total": total,
            "records_accepted": accepted,
            "records_rejected": total - accepted,
            "persistence_failures": persistence_failures,
        },
    )


def log_record_rejected(kind: str, record_index: int, errors: List[str]) -> None:
    logging.info(
        "Record rejected",
        extra={"step": "record_rejected", "kind": kind, "record_index": record_index, "errors": errors},
    )


def log_persistence_failure(operation: str, error: Exception, **context: Any) -> None:
    """Persistence failures are systemic, unlike validation rejections"""
    logging.warning(
        f"Persistence failure during {operation}: {error}",
        extra={"step": "persistence_failure", "operation": operation, **context},
    )


def log_backfill_completed(customer_id: str, entries: int, final_balance: str) -> None:
    logging.info(
        "Synthetic history generated",
        extra={
            "step": "backfill_complete",
            "customer_id": customer_id,
            "synthetic_entries": entries,
            "final_balance": final_balance,
        },
    )


def log_rating_computed(customer_id: str, score: float) -> None:
    logging.info(
        "Rating computed",
        extra={"step": "rating_complete", "customer_id": customer_id, "score": score},
    )

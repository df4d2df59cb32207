"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from rt_finance.config import settings


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

    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_ocr_job(
    fee_id: int,
    period: str,
    status: str,
    amount: Optional[int],
    duration_ms: float,
) -> None:
    """Log structured OCR job outcome for analysis"""
    logging.getLogger("rt_finance.ocr").info(
        "OCR job completed",
        extra={
            "fee_id": fee_id,
            "period": period,
            "step": "ocr_complete",
            "status": status,
            "amount": amount,
            "duration_ms": duration_ms,
        },
    )


def log_ledger_posting(entry_id: int, bucket: str, entry_type: str, amount: int, balance: Optional[int]) -> None:
    """Log each ledger posting with the resulting balance"""
    logging.getLogger("rt_finance.ledger").info(
        "Ledger entry posted",
        extra={
            "entry_id": entry_id,
            "bucket": bucket,
            "entry_type": entry_type,
            "amount": amount,
            "balance": balance,
        },
    )

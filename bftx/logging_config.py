"""
Logging configuration for BFTX.

Provides structured JSON logging and an audit logger for lifecycle events.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable tying log lines to one engine operation
operation_id_var: ContextVar[str] = ContextVar('operation_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line, suitable for log aggregation systems.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        operation_id = operation_id_var.get()
        if operation_id:
            log_data["operation_id"] = operation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Specialized logger for BF_TX lifecycle events.

    Every committed transition and every refused one is recorded.
    """

    def __init__(self, name: str = "bftx.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, message: str, **fields) -> None:
        fields["event_type"] = event_type
        fields["operation_id"] = operation_id_var.get()
        # stacklevel points module/function/line at the engine call site
        self._logger.log(level, "%s: %s", event_type, message,
                         extra={"extra_fields": fields}, stacklevel=3)

    def record_constructed(self, bftx_id: str, app_hash: str) -> None:
        self._log(
            logging.INFO,
            "RECORD_CONSTRUCTED",
            bftx_id=bftx_id,
            app_hash=app_hash,
            message=f"BF_TX {bftx_id} constructed"
        )

    def record_signed(self, bftx_id: str, key_id: str) -> None:
        self._log(
            logging.INFO,
            "RECORD_SIGNED",
            bftx_id=bftx_id,
            key_id=key_id,
            message=f"BF_TX {bftx_id} signed"
        )

    def record_transmitted(self, bftx_id: str, tx_hash: str, resubmitted: bool = False) -> None:
        self._log(
            logging.INFO,
            "RECORD_TRANSMITTED",
            bftx_id=bftx_id,
            tx_hash=tx_hash,
            resubmitted=resubmitted,
            message=f"BF_TX {bftx_id} transmitted"
        )

    def record_amended(self, target_id: str, amendment_id: str) -> None:
        self._log(
            logging.INFO,
            "RECORD_AMENDED",
            bftx_id=target_id,
            amendment=amendment_id,
            message=f"BF_TX {target_id} amended by {amendment_id}"
        )

    def transition_rejected(self, operation: str, bftx_id: Optional[str], reason: str) -> None:
        """Log a guard violation."""
        self._log(
            logging.WARNING,
            "TRANSITION_REJECTED",
            operation=operation,
            bftx_id=bftx_id,
            reason=reason,
            message=f"{operation} rejected: {reason}"
        )

    def collaborator_failure(self, operation: str, collaborator: str, error: str,
                             bftx_id: Optional[str] = None) -> None:
        """Log a store, network or signer failure."""
        self._log(
            logging.ERROR,
            "COLLABORATOR_FAILURE",
            operation=operation,
            collaborator=collaborator,
            bftx_id=bftx_id,
            error=error,
            message=f"{collaborator} failed during {operation}: {error}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Logs go to stderr; stdout carries command results.
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_operation_id(operation_id: Optional[str] = None) -> str:
    """
    Set the operation ID for the current context.

    Args:
        operation_id: ID to set, or None to generate one

    Returns:
        The operation ID that was set
    """
    if operation_id is None:
        operation_id = str(uuid.uuid4())
    operation_id_var.set(operation_id)
    return operation_id


# Global audit logger instance
audit_log = AuditLogger()

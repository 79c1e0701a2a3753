"""
Logging configuration for the CFP registry API.

Provides structured JSON logging for audit trails and debugging.
"""

import json
import logging
import sys
import time
from contextvars import ContextVar
from typing import Optional

from .security import generate_request_id, sanitize_for_logging

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs in a consistent JSON format suitable for
    log aggregation systems like ELK, Splunk, or CloudWatch.
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

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Specialized logger for audit events.

    Records signature checks, ledger writes and rejections. Raw revert
    reasons are logged here and never returned to clients.
    """

    def __init__(self, name: str = "cfp_api.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **sanitize_for_logging(kwargs)
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def signature_rejected(
        self,
        operation: str,
        claimed: Optional[str],
        signature: Optional[str]
    ) -> None:
        """Log a failed signed-action verification."""
        self._log(
            logging.WARNING,
            "SIGNATURE_REJECTED",
            operation=operation,
            claimed=claimed,
            signature=signature,
            message=f"Signature rejected for {operation}"
        )

    def ledger_write(
        self,
        operation: str,
        status: str,
        tx_hash: Optional[str] = None,
        **details
    ) -> None:
        """Log a ledger write (SUBMITTED, CONFIRMED or FAILED)."""
        level = logging.ERROR if status == "FAILED" else logging.INFO
        self._log(
            level,
            "LEDGER_WRITE",
            operation=operation,
            status=status,
            tx_hash=tx_hash,
            **details,
            message=f"{operation} {status}"
        )

    def ledger_rejection(
        self,
        operation: str,
        reason: str,
        mapped_to: str
    ) -> None:
        """Log a ledger revert with its raw reason."""
        self._log(
            logging.WARNING,
            "LEDGER_REJECTION",
            operation=operation,
            reason=reason,
            mapped_to=mapped_to,
            message=f"{operation} rejected by ledger"
        )

    def naming_step_failed(
        self,
        name: str,
        step: str,
        error: str
    ) -> None:
        """Log a failed naming sub-step."""
        self._log(
            logging.ERROR,
            "NAMING_STEP_FAILED",
            name=name,
            step=step,
            error=error,
            message=f"Naming step {step} failed for {name}"
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )

    def rate_limit_exceeded(
        self,
        client_id: str,
        endpoint: str
    ) -> None:
        """Log rate limit exceeded."""
        self._log(
            logging.WARNING,
            "RATE_LIMIT_EXCEEDED",
            client_id=client_id,
            endpoint=endpoint,
            message=f"Rate limit exceeded for {client_id} on {endpoint}"
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
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = generate_request_id()
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


# Global audit logger instance
audit_log = AuditLogger()

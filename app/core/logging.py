"""
Structured logging setup for the MediAssist backend
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import structlog

from app.config import settings, Environment


def setup_logging():
    """Configure structlog; console output in development, JSON lines elsewhere"""

    processors = [
        # request_id bound by the request middleware ends up on every line
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.environment == Environment.DEVELOPMENT:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None):
    return structlog.get_logger(name or __name__)


class AuditLogger:
    """
    Audit trail of requests, background jobs and provider calls.

    Every event carries its own UTC timestamp so the trail can be read
    independently of the renderer in use.
    """

    def __init__(self):
        self.logger = get_logger("audit")

    def _emit(self, event: str, level: str = "info", **fields):
        getattr(self.logger, level)(event, timestamp=datetime.now(timezone.utc).isoformat(), **fields)

    def log_api_request(
        self,
        request_id: str,
        endpoint: str,
        method: str,
        status_code: int,
        doctor_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        **kwargs
    ):
        self._emit(
            "api_request",
            request_id=request_id,
            endpoint=endpoint,
            method=method,
            status_code=status_code,
            doctor_id=doctor_id,
            ip_address=ip_address,
            **kwargs
        )

    def log_recording_processing(
        self,
        recording_id: str,
        status: str,
        transcription_provider: str,
        language: str,
        processing_time_ms: int,
        **kwargs
    ):
        """Outcome of one background transcription + summary job"""
        self._emit(
            "recording_processing",
            recording_id=recording_id,
            status=status,
            transcription_provider=transcription_provider,
            language=language,
            processing_time_ms=processing_time_ms,
            **kwargs
        )

    def log_external_api_call(self, service: str, endpoint: str, response_status: int, response_time_ms: int, **kwargs):
        # response_status is 0 when no HTTP response was received
        self._emit(
            "external_api_call",
            service=service,
            endpoint=endpoint,
            response_status=response_status,
            response_time_ms=response_time_ms,
            **kwargs
        )

    def log_error(self, error_type: str, error_message: str, request_id: Optional[str] = None, **kwargs):
        self._emit(
            "error_event",
            level="error",
            request_id=request_id,
            error_type=error_type,
            error_message=error_message,
            **kwargs
        )


# Global audit logger instance
audit_logger = AuditLogger()

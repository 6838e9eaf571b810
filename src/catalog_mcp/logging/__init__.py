"""Structured logging utilities."""

from .audit import (
    AuditEvent,
    JsonlAuditLogger,
    build_log_sink,
    sanitize_arguments,
    utc_timestamp,
)

__all__ = [
    "AuditEvent",
    "JsonlAuditLogger",
    "build_log_sink",
    "sanitize_arguments",
    "utc_timestamp",
]

"""
Structured operation logging for the immunization core.

Free-text fields (record notes, contact details) are redacted before they
reach the log; identifiers are logged as-is.
"""

import logging
from typing import Any, Dict, List

SENSITIVE_FIELDS = ['notes', 'parentContact', 'parent_contact', 'address', 'motherName', 'mother_name',
                    'phoneNumber', 'phone_number', 'password']


class StructuredLogger:
    """Structured logger for store, commit and sync operations."""

    def __init__(self, name: str = "epi_core"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.info(message)

    def log_store_operation(self, replica: str, collection: str, operation: str, entity_id: str,
                            details: Dict[str, Any] = None, status: str = "success"):
        """Log a single-entity store mutation."""
        log_details = {"replica": replica, "collection": collection, "id": entity_id}
        if details:
            log_details.update(details)

        self.log_operation(f"store.{operation}", status, log_details)

    def log_record_commit(self, child_id: str, vaccine_ids: List[str], correction: bool,
                          replaced: int, details: Dict[str, Any] = None):
        """Log a vaccination administration event."""
        log_details = {
            "child_id": child_id,
            "vaccine_ids": list(vaccine_ids),
            "correction": correction,
            "replaced": replaced
        }
        if details:
            log_details.update(sanitize_payload(details))

        self.log_operation("records.commit", "success", log_details)

    def log_sync_started(self, collections: List[str]):
        self.log_operation("sync.started", "running", {"collections": list(collections)})

    def log_sync_completed(self, duration_ms: float, stats: Dict[str, Any]):
        """Log a completed reconciliation pass."""
        log_details = {"duration_ms": round(duration_ms, 2)}
        log_details.update(stats)

        self.log_operation("sync.completed", "success", log_details)

    def log_sync_failed(self, reason: str, error: str, details: Dict[str, Any] = None):
        log_details = {"reason": reason, "error": error[:200]}
        if details:
            log_details.update(details)

        self.log_operation("sync.failed", "failed", log_details)

    def log_merge_decision(self, collection: str, entity_id: str, decision: str):
        """Per-entity merge outcome; debug level only."""
        self.logger.debug(f"Merge: {collection}/{entity_id} -> {decision}")

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def audit_event(event_type: str, identifiers: Dict[str, Any], payload: Dict[str, Any] = None,
                sensitive_fields: List[str] = None):
    """General audit event logging with privacy controls."""
    log_details = identifiers.copy() if identifiers else {}

    if payload:
        log_details["payload"] = sanitize_payload(payload, sensitive_fields=sensitive_fields)

    logger.log_operation(event_type.replace(".", "_"), "audit", log_details)


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for audit logging."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload

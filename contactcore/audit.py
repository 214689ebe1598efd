"""Audit trail for contact collaborator operations."""

import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional

import structlog

from .logging_config import StructuredFormatter
from .models import HistoryEntry

AUDIT_LOGGER_NAME = "contactcore.audit"
AUDIT_VERSION = "1.0"


def _add_audit_fields(logger, method_name, event_dict):
    """Add standard audit fields to every entry."""
    event_dict["audit_version"] = AUDIT_VERSION
    event_dict.setdefault("component", "contactcore")
    return event_dict


def _redact_sensitive(logger, method_name, event_dict):
    """Mask values whose key names mark them as secrets."""
    for key in list(event_dict):
        lowered = key.lower()
        if any(s in lowered for s in StructuredFormatter.SENSITIVE_FIELDS):
            event_dict[key] = "[REDACTED]"
    return event_dict


def configure_audit_logging() -> None:
    """Route structlog audit events through the standard library logging tree."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _add_audit_fields,
            _redact_sensitive,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class AuditTrail:
    """Bounded history of collaborator actions.

    Entries are kept newest last; once ``limit`` is reached the oldest entry
    is dropped. Each entry is also emitted as a structured audit event.
    """

    def __init__(self, limit: int = 100):
        """Initialize the trail.

        Args:
            limit: Maximum number of entries kept in memory
        """
        if not structlog.is_configured():
            configure_audit_logging()

        self.limit = limit
        self.logger = structlog.get_logger(AUDIT_LOGGER_NAME)
        self._entries: Deque[HistoryEntry] = deque(maxlen=limit)
        self._lock = threading.Lock()

    def record(self, action: str, data: Optional[Dict[str, Any]] = None) -> HistoryEntry:
        """Record an action and emit it.

        Args:
            action: Action name, e.g. "merge" or "import"
            data: Action details (ids, counts)

        Returns:
            The stored entry
        """
        entry = HistoryEntry(action=action, data=dict(data or {}))

        with self._lock:
            self._entries.append(entry)

        self.logger.info(action, **entry.data)
        return entry

    def entries(self) -> List[HistoryEntry]:
        """Copies of all retained entries, oldest first."""
        with self._lock:
            return [entry.model_copy(deep=True) for entry in self._entries]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

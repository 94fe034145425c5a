"""
Claim Event Logger
==================

Bounded Context: Observability Infrastructure

Emits claim lifecycle and store traffic events as JSON lines.

Design:
- One record per LogEvent; the event decides the default severity
  (see events.default_level), callers only override it when needed
- Context binding: bind(owner_id=...) returns a logger whose entries all
  carry that context, so a claim's events can be grouped downstream
- The record message stays human readable ("[claim.started] Claim started");
  the JSON document is produced by JSONFormatter from the attached entry

Example:
    >>> events = create_logger("claim").bind(owner_id="u-1")
    >>> events.emit(LogEvent.CLAIM_ACCEPTED, "Claim accepted", {'area_m2': 1600.0})

Output:
    {"timestamp": "2025-06-01T08:01:45.120000+00:00", "level": "INFO",
     "component": "claim", "event": "claim.accepted", "message": "Claim accepted",
     "context": {"owner_id": "u-1"}, "metadata": {"area_m2": 1600.0}}
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .events import LogEvent, default_level

ENTRY_ATTR = "claim_entry"


class StructuredLogger:
    """
    Event logger for one store component.

    Attributes:
        component: Component name (e.g. "claim", "subscriber")
        context: Fields added to every entry (owner_id, broker, ...)
        logger: Underlying logger, named territory_store.<component>
    """

    def __init__(
        self,
        component: str,
        level: int = logging.INFO,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.component = component
        self.context = dict(context or {})
        self.logger = logging.getLogger(f"territory_store.{component}")
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)

    def bind(self, **context: Any) -> "StructuredLogger":
        """Logger for the same component with extra context fields."""
        child = StructuredLogger.__new__(StructuredLogger)
        child.component = self.component
        child.context = {**self.context, **context}
        child.logger = self.logger
        return child

    def build_entry(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None,
    ) -> Dict[str, Any]:
        """JSON-ready entry without timestamp or level (the record supplies both)."""
        entry: Dict[str, Any] = {
            'component': self.component,
            'event': event.value,
            'message': message,
        }
        if self.context:
            entry['context'] = dict(self.context)
        if metadata:
            entry['metadata'] = metadata
        if exc_info is not None:
            entry['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info),
            }
        return entry

    def emit(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        level: Optional[int] = None,
        exc_info: Optional[BaseException] = None,
    ) -> None:
        """Log one event at its default level (or `level` when given)."""
        if level is None:
            level = default_level(event)
        if not self.logger.isEnabledFor(level):
            return
        self.logger.log(
            level,
            "[%s] %s",
            event.value,
            message,
            exc_info=exc_info if level >= logging.ERROR else None,
            extra={ENTRY_ATTR: self.build_entry(event, message, metadata, exc_info)},
        )

    def debug(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.emit(event, message, metadata, level=logging.DEBUG)

    def info(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.emit(event, message, metadata, level=logging.INFO)

    def warning(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.emit(event, message, metadata, level=logging.WARNING)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None,
    ) -> None:
        """
        Log an error event.

        Example:
            >>> try:
            ...     snapshot = TerritorySnapshotMessage.from_dict(data)
            ... except ValueError as e:
            ...     logger.error(LogEvent.SCHEMA_VALIDATION_ERROR, "Bad snapshot", exc_info=e)
        """
        self.emit(event, message, metadata, level=logging.ERROR, exc_info=exc_info)


class JSONFormatter(logging.Formatter):
    """
    Renders records as one JSON document per line.

    Records from StructuredLogger carry their entry; any other record is
    rendered from its logger name and message.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = getattr(record, ENTRY_ATTR, None)
        if entry is None:
            entry = {'component': record.name, 'message': record.getMessage()}
        document = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            **entry,
        }
        return json.dumps(document, default=str)


def create_logger(component: str, level: int = logging.INFO) -> StructuredLogger:
    """StructuredLogger writing JSON lines to stderr under territory_store.<component>."""
    return StructuredLogger(component=component, level=level)

"""
Structured Logging for the Territory Store
==========================================

Bounded Context: Observability

Design:
- JSON output (parseable by ELK, CloudWatch, Loki)
- Typed events (enums prevent typos)
- Events carry their own default severity and bound claim context
- In-memory claim log for field testing (ClaimLogBuffer)

Public API
----------
    LogEvent: Typed event names (enum)
    StructuredLogger: Event logger with bound claim context
    JSONFormatter: One JSON document per record
    create_logger: Factory function
    ClaimLogBuffer: Ring-buffer logging handler with export()

Example:
    >>> from territory_store.logging import StructuredLogger, LogEvent
    >>> events = StructuredLogger(component="claim").bind(owner_id="u-1")
    >>> events.emit(LogEvent.CLAIM_STARTED, "Claim started")
"""

from .events import LogEvent
from .structured import JSONFormatter, StructuredLogger, create_logger
from .buffer import ClaimLogBuffer

__all__ = [
    'LogEvent',
    'StructuredLogger',
    'JSONFormatter',
    'create_logger',
    'ClaimLogBuffer',
]

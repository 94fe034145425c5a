"""
Claim Log Buffer
================

In-memory ring buffer of recent claim log records, for field testing
(a device shows the last records and can export them as text).

Design:
- Standard logging.Handler: attach to any logger, no new logging API
- Bounded (default 200 records); oldest records drop first
- Thread-safe via the handler lock
"""

import logging
from collections import deque
from datetime import datetime
from typing import Deque, List, Optional

DEFAULT_CAPACITY = 200

_EXPORT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_DISPLAY_TIME_FORMAT = "%H:%M:%S"


class ClaimLogBuffer(logging.Handler):
    """
    Keeps the last N log records.

    Usage:
        buffer = ClaimLogBuffer.attach("territory_engine")
        ...
        print(buffer.export())
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, level: int = logging.INFO):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        super().__init__(level=level)
        self.capacity = capacity
        self._records: Deque[logging.LogRecord] = deque(maxlen=capacity)
        self._attached_to: Optional[logging.Logger] = None

    @classmethod
    def attach(
        cls,
        logger_name: str = "territory_engine",
        capacity: int = DEFAULT_CAPACITY,
        level: int = logging.INFO,
    ) -> "ClaimLogBuffer":
        """Create a buffer and add it to the named logger."""
        buffer = cls(capacity=capacity, level=level)
        target = logging.getLogger(logger_name)
        target.addHandler(buffer)
        buffer._attached_to = target
        if target.level == logging.NOTSET or target.level > level:
            target.setLevel(level)
        return buffer

    def detach(self) -> None:
        """Remove the buffer from the logger it was attached to."""
        if self._attached_to is not None:
            self._attached_to.removeHandler(self)
            self._attached_to = None

    def emit(self, record: logging.LogRecord) -> None:
        with self.lock:
            self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def lines(self) -> List[str]:
        """Display lines: "[HH:MM:SS] [LEVEL] message"."""
        with self.lock:
            records = list(self._records)
        return [self._format_line(r, _DISPLAY_TIME_FORMAT) for r in records]

    def clear(self) -> None:
        with self.lock:
            self._records.clear()

    def export(self, now: Optional[datetime] = None) -> str:
        """
        Full text dump with a header.

        Args:
            now: Export time shown in the header (default: current time)
        """
        with self.lock:
            records = list(self._records)

        exported_at = (now or datetime.now()).strftime(_EXPORT_TIME_FORMAT)
        header = [
            "=== Territory claim log ===",
            f"Exported: {exported_at}",
            f"Entries: {len(records)}",
            "",
        ]
        body = [self._format_line(r, _EXPORT_TIME_FORMAT) for r in records]
        return "\n".join(header + body) + "\n"

    @staticmethod
    def _format_line(record: logging.LogRecord, time_format: str) -> str:
        when = datetime.fromtimestamp(record.created).strftime(time_format)
        return f"[{when}] [{record.levelname}] {record.getMessage()}"

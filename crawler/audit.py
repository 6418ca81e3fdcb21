"""Bounded audit trail for session lifecycle events."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, Mapping, Optional

__all__ = ["AuditEntry", "AuditLog"]

log = logging.getLogger("crawler.audit")


@dataclass(frozen=True)
class AuditEntry:
    timestamp: datetime
    event: str
    message: str
    details: Mapping[str, object] = field(default_factory=dict)


class AuditLog:
    """Keep the most recent audit entries and mirror them to the log."""

    def __init__(self, max_entries: int = 1000) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._entries: Deque[AuditEntry] = deque(maxlen=max_entries)

    def record(
        self,
        event: str,
        message: str,
        details: Optional[Mapping[str, object]] = None,
    ) -> None:
        try:
            entry = AuditEntry(
                timestamp=datetime.now(timezone.utc),
                event=event,
                message=message,
                details=dict(details or {}),
            )
            self._entries.append(entry)
            log.info("[%s] %s %s", event, message, entry.details or "")
        except Exception:  # pragma: no cover
            log.exception("Failed to record audit event %s", event)

    def entries(self, event: Optional[str] = None) -> tuple[AuditEntry, ...]:
        if event is None:
            return tuple(self._entries)
        return tuple(entry for entry in self._entries if entry.event == event)

    def __len__(self) -> int:
        return len(self._entries)

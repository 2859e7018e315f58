"""Bounded in-memory ingestion counters."""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timezone
from threading import Lock
from typing import Any


class IngestionStats:
    """Count accepted and rejected lines, keeping rejection reasons bounded (LRU)."""

    def __init__(self, *, max_reasons: int = 64) -> None:
        if max_reasons < 1:
            raise ValueError("max_reasons must be >= 1")
        self._max_reasons = max_reasons
        self._accepted = 0
        self._rejected = 0
        self._reasons: OrderedDict[str, int] = OrderedDict()
        self._last_rejected_at: datetime | None = None
        self._lock = Lock()

    def record_accepted(self, count: int = 1) -> None:
        with self._lock:
            self._accepted += count

    def record_rejected(self, reason: str, at: datetime | None = None) -> None:
        timestamp = at or datetime.now(tz=timezone.utc)
        with self._lock:
            self._rejected += 1
            self._last_rejected_at = timestamp
            current = self._reasons.get(reason)
            if current is not None:
                self._reasons[reason] = current + 1
                self._reasons.move_to_end(reason)
                return

            if len(self._reasons) >= self._max_reasons:
                self._reasons.popitem(last=False)
            self._reasons[reason] = 1

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "accepted": self._accepted,
                "rejected": self._rejected,
                "rejected_by_reason": dict(self._reasons),
                "last_rejected_at": (
                    self._last_rejected_at.isoformat() if self._last_rejected_at else None
                ),
            }

    def clear(self) -> None:
        with self._lock:
            self._accepted = 0
            self._rejected = 0
            self._reasons.clear()
            self._last_rejected_at = None

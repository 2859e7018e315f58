"""Per-key, per-minute in-memory store of request records."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import NamedTuple

from logrollup.parsing import RequestRecord


class StoreKey(NamedTuple):
    """Composite key grouping buckets by HTTP method and resource path."""

    method: str
    resource: str


@dataclass(slots=True)
class StoreStats:
    keys: int
    buckets: int
    records: int


def truncate_to_minute(timestamp: datetime) -> datetime:
    return timestamp.replace(second=0, microsecond=0)


class _KeyBuckets:
    """Buckets of a single store key, guarded by their own lock."""

    __slots__ = ("lock", "buckets")

    def __init__(self) -> None:
        self.lock = Lock()
        self.buckets: dict[datetime, list[RequestRecord]] = {}


class MetricStore:
    """Append-only store keyed by (method, resource), bucketed by minute.

    Each key owns a lock, so ingestion and queries on different keys never
    contend. The store-level lock is only taken when a key is seen for the
    first time.
    """

    def __init__(self) -> None:
        self._keys: dict[StoreKey, _KeyBuckets] = {}
        self._lock = Lock()

    def _entry_for(self, key: StoreKey) -> _KeyBuckets:
        entry = self._keys.get(key)
        if entry is not None:
            return entry
        with self._lock:
            entry = self._keys.get(key)
            if entry is None:
                entry = _KeyBuckets()
                self._keys[key] = entry
            return entry

    def append(self, record: RequestRecord) -> None:
        entry = self._entry_for(StoreKey(record.method, record.resource))
        bucket_key = truncate_to_minute(record.timestamp)
        with entry.lock:
            entry.buckets.setdefault(bucket_key, []).append(record)

    def lookup(
        self, method: str, resource: str
    ) -> Mapping[datetime, tuple[RequestRecord, ...]] | None:
        """Return a snapshot of the key's buckets, or None for an unseen key."""

        entry = self._keys.get(StoreKey(method, resource))
        if entry is None:
            return None
        with entry.lock:
            return {bucket: tuple(records) for bucket, records in entry.buckets.items()}

    def keys(self) -> list[StoreKey]:
        with self._lock:
            return list(self._keys)

    def stats(self) -> StoreStats:
        with self._lock:
            entries = list(self._keys.values())
        buckets = 0
        records = 0
        for entry in entries:
            with entry.lock:
                buckets += len(entry.buckets)
                records += sum(len(items) for items in entry.buckets.values())
        return StoreStats(keys=len(entries), buckets=buckets, records=records)

    def clear(self) -> None:
        with self._lock:
            self._keys.clear()

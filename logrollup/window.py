"""Selection of the most recent minute buckets for a store key."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from math import log2

from logrollup.parsing import RequestRecord

BucketMap = Mapping[datetime, Sequence[RequestRecord]]
Window = list[tuple[datetime, Sequence[RequestRecord]]]
ScanPreference = Callable[[int, int], bool]


def prefers_scan(limit: int, bucket_count: int) -> bool:
    """Cost rule: ``limit`` linear scans beat one sort while limit < log2(buckets)."""

    if bucket_count < 1:
        return False
    return limit < log2(bucket_count)


def always_scan(limit: int, bucket_count: int) -> bool:
    return True


def never_scan(limit: int, bucket_count: int) -> bool:
    return False


def select_by_sort(buckets: BucketMap, limit: int) -> Window:
    """O(B log B): sort every bucket key descending and keep the first ``limit``."""

    return [(key, buckets[key]) for key in sorted(buckets, reverse=True)[:limit]]


def select_by_scan(buckets: BucketMap, limit: int) -> Window:
    """O(B * K): repeatedly pick the newest key strictly older than the last pick."""

    window: Window = []
    upper_bound: datetime | None = None
    for _ in range(limit):
        newest: datetime | None = None
        for key in buckets:
            if upper_bound is not None and key >= upper_bound:
                continue
            if newest is None or key > newest:
                newest = key
        if newest is None:
            break
        window.append((newest, buckets[newest]))
        upper_bound = newest
    return window


class WindowSelector:
    """Pick the ``limit`` newest buckets, choosing sort or scan per call."""

    def __init__(self, *, use_scan: ScanPreference = prefers_scan) -> None:
        self._use_scan = use_scan

    def select(self, buckets: BucketMap, limit: int) -> Window:
        if not buckets:
            return []
        if self._use_scan(limit, len(buckets)):
            return select_by_scan(buckets, limit)
        return select_by_sort(buckets, limit)


_STRATEGIES: dict[str, ScanPreference] = {
    "adaptive": prefers_scan,
    "scan": always_scan,
    "sort": never_scan,
}


def create_window_selector(strategy: str = "adaptive") -> WindowSelector:
    """Create a selector for the configured strategy name."""

    normalized = strategy.strip().lower()
    use_scan = _STRATEGIES.get(normalized)
    if use_scan is None:
        raise ValueError(f"Unsupported WINDOW_SELECTION_STRATEGY value: {strategy}")
    return WindowSelector(use_scan=use_scan)

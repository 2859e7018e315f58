"""Reduce a minute bucket of request records into summary statistics."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from logrollup.parsing import RequestRecord


@dataclass(frozen=True, slots=True)
class AggregatedMetrics:
    """Summary of one minute bucket for a (method, resource) pair."""

    bucket: datetime
    first_request: datetime | None
    last_request: datetime | None
    count: int
    avg_duration_ms: int | None
    min_duration_ms: int | None
    max_duration_ms: int | None


def _truncating_div(total: int, count: int) -> int:
    quotient = abs(total) // count
    return quotient if total >= 0 else -quotient


def aggregate_bucket(bucket: datetime, records: Sequence[RequestRecord]) -> AggregatedMetrics:
    """Aggregate ``records`` independently of their insertion order."""

    if not records:
        return AggregatedMetrics(bucket, None, None, 0, None, None, None)

    first = last = records[0].timestamp
    shortest = longest = records[0].duration_ms
    total = 0
    for record in records:
        if record.timestamp < first:
            first = record.timestamp
        if record.timestamp > last:
            last = record.timestamp
        if record.duration_ms < shortest:
            shortest = record.duration_ms
        if record.duration_ms > longest:
            longest = record.duration_ms
        total += record.duration_ms

    return AggregatedMetrics(
        bucket=bucket,
        first_request=first,
        last_request=last,
        count=len(records),
        avg_duration_ms=_truncating_div(total, len(records)),
        min_duration_ms=shortest,
        max_duration_ms=longest,
    )

"""Ingestion and windowed-aggregation queries over the metric store."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from logrollup.aggregation import AggregatedMetrics, aggregate_bucket
from logrollup.metrics import IngestionStats
from logrollup.parsing import LogLineParseError, RequestRecord, parse_log_line
from logrollup.store import MetricStore
from logrollup.window import WindowSelector

DEFAULT_MAX_REPORTED_ERRORS = 50

logger = logging.getLogger("logrollup.ingest")


@dataclass(slots=True)
class IngestError:
    line_number: int
    reason: str


@dataclass(slots=True)
class IngestSummary:
    """Outcome of feeding a batch of raw lines through ingestion."""

    accepted: int = 0
    rejected: int = 0
    errors: list[IngestError] = field(default_factory=list)

    def merge(self, other: IngestSummary, *, line_offset: int = 0, max_errors: int | None = None) -> None:
        self.accepted += other.accepted
        self.rejected += other.rejected
        for error in other.errors:
            if max_errors is not None and len(self.errors) >= max_errors:
                break
            self.errors.append(IngestError(error.line_number + line_offset, error.reason))


class MetricsService:
    """Front door for ingesting log lines and answering aggregate queries."""

    def __init__(
        self,
        store: MetricStore | None = None,
        selector: WindowSelector | None = None,
        stats: IngestionStats | None = None,
    ) -> None:
        self.store = store or MetricStore()
        self.selector = selector or WindowSelector()
        self.stats = stats or IngestionStats()

    def ingest(self, raw_line: str) -> RequestRecord:
        """
        Parse and store a single raw line.

        Raises:
            LogLineParseError: when the line is malformed. The rejection is counted first.
        """

        try:
            record = parse_log_line(raw_line)
        except LogLineParseError as exc:
            self.stats.record_rejected(exc.reason)
            logger.debug("log_line_rejected reason=%s error=%s", exc.reason, exc)
            raise

        self.store.append(record)
        self.stats.record_accepted()
        return record

    def ingest_lines(
        self,
        lines: Iterable[str],
        *,
        max_reported_errors: int = DEFAULT_MAX_REPORTED_ERRORS,
    ) -> IngestSummary:
        """Ingest every line, rejecting malformed ones without stopping the batch.

        Blank lines are skipped and not counted. Line numbers in the returned
        errors are 1-based positions in ``lines``.
        """

        summary = IngestSummary()
        for line_number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                self.ingest(line)
            except LogLineParseError as exc:
                summary.rejected += 1
                if len(summary.errors) < max_reported_errors:
                    summary.errors.append(IngestError(line_number, exc.reason))
                continue
            summary.accepted += 1

        if summary.rejected:
            logger.info(
                "ingest_batch accepted=%s rejected=%s",
                summary.accepted,
                summary.rejected,
            )
        return summary

    def get_aggregated_metrics(self, method: str, resource: str, limit: int) -> list[AggregatedMetrics]:
        """Aggregate the ``limit`` most recent minute buckets, newest first."""

        if limit < 1:
            return []

        buckets = self.store.lookup(method, resource)
        if buckets is None:
            return []

        return [aggregate_bucket(bucket, records) for bucket, records in self.selector.select(buckets, limit)]

"""Feed finite sources of raw access-log lines through the ingestion path."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from itertools import islice
from pathlib import Path

from logrollup.service import DEFAULT_MAX_REPORTED_ERRORS, IngestSummary, MetricsService

DEFAULT_BATCH_SIZE = 1000

logger = logging.getLogger("logrollup.replay")


def _batched(lines: Iterable[str], size: int) -> Iterator[list[str]]:
    iterator = iter(lines)
    while batch := list(islice(iterator, size)):
        yield batch


def replay_lines(
    service: MetricsService,
    lines: Iterable[str],
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    max_reported_errors: int = DEFAULT_MAX_REPORTED_ERRORS,
) -> IngestSummary:
    """Ingest ``lines`` in batches and merge the per-batch outcomes."""

    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    total = IngestSummary()
    offset = 0
    for batch in _batched(lines, batch_size):
        summary = service.ingest_lines(batch, max_reported_errors=max_reported_errors)
        total.merge(summary, line_offset=offset, max_errors=max_reported_errors)
        offset += len(batch)
    return total


def replay_file(
    service: MetricsService,
    path: str | Path,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    max_reported_errors: int = DEFAULT_MAX_REPORTED_ERRORS,
) -> IngestSummary:
    """Replay an access-log file line by line.

    Raises:
        FileNotFoundError: when ``path`` does not exist.
    """

    log_path = Path(path)
    with log_path.open(encoding="utf-8") as handle:
        summary = replay_lines(
            service,
            (line.rstrip("\r\n") for line in handle),
            batch_size=batch_size,
            max_reported_errors=max_reported_errors,
        )

    logger.info(
        "replay_file_complete path=%s accepted=%s rejected=%s",
        log_path,
        summary.accepted,
        summary.rejected,
    )
    return summary

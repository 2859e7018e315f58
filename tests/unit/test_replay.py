from __future__ import annotations

from pathlib import Path

import pytest

from logrollup.replay import replay_file, replay_lines
from logrollup.service import IngestError, MetricsService

FIXTURE_LOG = Path(__file__).resolve().parents[1] / "fixtures" / "access.log"


def test_replay_file_ingests_sample_log() -> None:
    service = MetricsService()

    summary = replay_file(service, FIXTURE_LOG)

    assert summary.accepted == 14
    assert summary.rejected == 1
    assert summary.errors == [IngestError(13, "invalid_timestamp")]
    results = service.get_aggregated_metrics("GET", "/quotes/latest", 5)
    assert len(results) == 5
    assert [item.bucket.minute for item in results] == [6, 5, 4, 3, 2]
    assert results[2].count == 3


def test_replay_lines_keeps_line_numbers_across_batches() -> None:
    service = MetricsService()
    good = '[2023-02-02T16:30:35] "GET /a HTTP/1.1" 200 1'
    lines = [good, good, "bad", good, "bad", good, good]

    summary = replay_lines(service, lines, batch_size=2)

    assert summary.accepted == 5
    assert summary.rejected == 2
    assert [error.line_number for error in summary.errors] == [3, 5]


def test_replay_lines_caps_errors_across_batches() -> None:
    service = MetricsService()
    summary = replay_lines(service, ["bad"] * 9, batch_size=2, max_reported_errors=4)
    assert summary.rejected == 9
    assert [error.line_number for error in summary.errors] == [1, 2, 3, 4]


def test_replay_rejects_invalid_batch_size() -> None:
    with pytest.raises(ValueError):
        replay_lines(MetricsService(), [], batch_size=0)


def test_replay_file_missing_path_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        replay_file(MetricsService(), tmp_path / "missing.log")

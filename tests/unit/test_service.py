from __future__ import annotations

import random
from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest

from logrollup.parsing import LogLineParseError
from logrollup.service import IngestError, MetricsService
from logrollup.window import WindowSelector

DAY = datetime(2023, 2, 2, tzinfo=timezone.utc)


def _line(timestamp: str, duration_ms: int, *, method: str = "GET", resource: str = "/test") -> str:
    return f'[{timestamp}] "{method} {resource} HTTP/1.1" 200 {duration_ms}'


def _scenario_lines() -> list[str]:
    lines = []
    for minute in ("16:04", "16:11", "16:00", "16:30", "16:13", "16:22", "16:10"):
        for second, duration in (("25", 80), ("42", 100), ("10", 40)):
            lines.append(_line(f"2023-02-02T{minute}:{second}", duration))
    return lines


def test_returns_last_minutes_newest_first() -> None:
    service = MetricsService()
    assert service.ingest_lines(_scenario_lines()).accepted == 21

    results = service.get_aggregated_metrics("GET", "/test", 3)

    assert [item.bucket for item in results] == [
        DAY.replace(hour=16, minute=30),
        DAY.replace(hour=16, minute=22),
        DAY.replace(hour=16, minute=13),
    ]
    newest = results[0]
    assert newest.count == 3
    assert newest.first_request == DAY.replace(hour=16, minute=30, second=10)
    assert newest.last_request == DAY.replace(hour=16, minute=30, second=42)
    assert (newest.avg_duration_ms, newest.min_duration_ms, newest.max_duration_ms) == (73, 40, 100)


@pytest.mark.parametrize("use_scan", [lambda limit, count: True, lambda limit, count: False])
def test_both_selection_algorithms_answer_the_same_query(use_scan) -> None:
    service = MetricsService(selector=WindowSelector(use_scan=use_scan))
    service.ingest_lines(_scenario_lines())

    buckets = [item.bucket.minute for item in service.get_aggregated_metrics("GET", "/test", 5)]
    assert buckets == [30, 22, 13, 11, 10]


@pytest.mark.parametrize("limit", [0, -1])
def test_non_positive_limit_returns_empty(limit: int) -> None:
    service = MetricsService()
    service.ingest_lines(_scenario_lines())
    assert service.get_aggregated_metrics("GET", "/test", limit) == []


def test_unknown_method_resource_returns_empty() -> None:
    service = MetricsService()
    service.ingest_lines(_scenario_lines())
    assert service.get_aggregated_metrics("POST", "/test", 3) == []
    assert service.get_aggregated_metrics("GET", "/missing", 3) == []


def test_limit_above_population_returns_every_bucket() -> None:
    service = MetricsService()
    service.ingest_lines(_scenario_lines())
    assert len(service.get_aggregated_metrics("GET", "/test", 100)) == 7


def test_identical_lines_are_not_deduplicated() -> None:
    service = MetricsService()
    line = _line("2023-02-02T16:30:35", 80)
    service.ingest(line)
    before = service.get_aggregated_metrics("GET", "/test", 1)[0].count

    service.ingest(line)
    service.ingest(line)

    assert service.get_aggregated_metrics("GET", "/test", 1)[0].count == before + 2


def test_counts_match_ingested_records_per_key_and_minute() -> None:
    rng = random.Random(42)
    service = MetricsService()
    expected_counts: Counter[tuple[str, str, int]] = Counter()
    expected_durations: dict[tuple[str, str, int], list[int]] = {}

    for _ in range(2000):
        method = rng.choice(["GET", "POST"])
        resource = rng.choice(["/a", "/b", "/c/d"])
        offset = rng.randrange(0, 90 * 60)
        duration = rng.randrange(0, 5000)
        timestamp = DAY + timedelta(hours=16, seconds=offset)
        service.ingest(_line(timestamp.isoformat(), duration, method=method, resource=resource))
        key = (method, resource, offset // 60)
        expected_counts[key] += 1
        expected_durations.setdefault(key, []).append(duration)

    for method in ("GET", "POST"):
        for resource in ("/a", "/b", "/c/d"):
            for item in service.get_aggregated_metrics(method, resource, 90):
                minute_index = int((item.bucket - (DAY + timedelta(hours=16))).total_seconds()) // 60
                key = (method, resource, minute_index)
                durations = expected_durations[key]
                assert item.count == expected_counts[key]
                assert item.avg_duration_ms == sum(durations) // len(durations)
                assert item.min_duration_ms == min(durations)
                assert item.max_duration_ms == max(durations)


def test_ingest_raises_and_counts_rejection() -> None:
    service = MetricsService()
    with pytest.raises(LogLineParseError):
        service.ingest("garbage")

    snapshot = service.stats.snapshot()
    assert snapshot["rejected"] == 1
    assert snapshot["rejected_by_reason"] == {"too_few_tokens": 1}
    assert service.store.stats().records == 0


def test_ingest_lines_continues_past_malformed_lines() -> None:
    service = MetricsService()
    summary = service.ingest_lines(
        [
            _line("2023-02-02T16:30:35", 80),
            "garbage",
            "",
            _line("2023-02-02T16:30:36", 90).replace(" 90", " ninety"),
            _line("2023-02-02T16:31:00", 10),
        ]
    )

    assert summary.accepted == 2
    assert summary.rejected == 2
    assert summary.errors == [IngestError(2, "too_few_tokens"), IngestError(4, "invalid_duration")]
    assert service.stats.snapshot()["accepted"] == 2
    assert len(service.get_aggregated_metrics("GET", "/test", 10)) == 2


def test_ingest_lines_caps_reported_errors_but_not_counts() -> None:
    service = MetricsService()
    summary = service.ingest_lines(["bad"] * 10, max_reported_errors=3)
    assert summary.rejected == 10
    assert [error.line_number for error in summary.errors] == [1, 2, 3]

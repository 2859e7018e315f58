"""Access-log line parsing into immutable request records."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone

MIN_TOKEN_COUNT = 6

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")
_TOKEN_SEPARATOR = re.compile(r"[ \t\r\n]+")


@dataclass(frozen=True, slots=True)
class RequestRecord:
    """One served request as read from the access log."""

    timestamp: datetime
    method: str
    resource: str
    status_code: int
    duration_ms: int


class LogLineParseError(ValueError):
    """Raised when a raw access-log line cannot be turned into a record."""

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, normalizing it to aware UTC."""

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise LogLineParseError("invalid_timestamp", f"Invalid timestamp: {value!r}") from exc

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_int(value: str, *, reason: str, field: str) -> int:
    if not _INTEGER_PATTERN.fullmatch(value):
        raise LogLineParseError(reason, f"Invalid {field}: {value!r}")
    return int(value)


def parse_log_line(line: str) -> RequestRecord:
    """
    Parse ``[<timestamp>] <marker><METHOD> <resource> <ignored> <status> <duration>``.

    The method token carries one leading marker character (usually a quote)
    which is dropped. Tokens after the duration are ignored.

    Raises:
        LogLineParseError: when the line is missing tokens or a field does not parse.
    """

    tokens = _TOKEN_SEPARATOR.split(line.strip(" \t\r\n"))
    if len(tokens) < MIN_TOKEN_COUNT:
        raise LogLineParseError(
            "too_few_tokens",
            f"Expected at least {MIN_TOKEN_COUNT} tokens, got {len(tokens)}",
        )

    timestamp = parse_timestamp(tokens[0].strip("[]"))

    method = tokens[1][1:]
    # Stricter than a plain marker strip: a bare marker would store an empty method.
    if not method:
        raise LogLineParseError("empty_method", f"Method token has no method: {tokens[1]!r}")

    return RequestRecord(
        timestamp=timestamp,
        method=method,
        resource=tokens[2],
        status_code=_parse_int(tokens[4], reason="invalid_status_code", field="status code"),
        duration_ms=_parse_int(tokens[5], reason="invalid_duration", field="duration"),
    )

#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from itertools import islice
from pathlib import Path

import httpx


def read_batches(path: Path, batch_size: int) -> list[list[str]]:
    with path.open(encoding="utf-8") as handle:
        lines = [line.rstrip("\r\n") for line in handle]
    iterator = iter(lines)
    batches: list[list[str]] = []
    while batch := list(islice(iterator, batch_size)):
        batches.append(batch)
    return batches


def post_batch(client: httpx.Client, base_url: str, lines: list[str]) -> tuple[str, str]:
    try:
        response = client.post(
            f"{base_url.rstrip('/')}/api/v1/ingest",
            json={"lines": lines},
        )
    except httpx.HTTPError as exc:
        return ("error", f"request_failed: {exc}")

    if response.status_code == 200:
        data = response.json()
        return ("ok", f"accepted={data['accepted']} rejected={data['rejected']}")

    detail = response.text
    try:
        detail = json.dumps(response.json(), indent=2)
    except ValueError:
        pass
    return ("error", f"status={response.status_code} detail={detail}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Replay an access log into a running rollup API")
    parser.add_argument("path", type=Path, help="Access log file to replay")
    parser.add_argument(
        "--base-url",
        default="http://localhost:8000",
        help="Rollup API base URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=1000,
        help="Lines per ingest request (default: 1000)",
    )
    args = parser.parse_args()

    if args.batch_size < 1:
        parser.error("--batch-size must be >= 1")

    batches = read_batches(args.path, args.batch_size)
    print(f"Replaying {sum(len(batch) for batch in batches)} lines into {args.base_url}...")

    failures = 0
    with httpx.Client(timeout=30) as client:
        for index, batch in enumerate(batches, start=1):
            outcome, info = post_batch(client, args.base_url, batch)
            if outcome != "ok":
                failures += 1
            print(f"- batch {index}/{len(batches)}: {outcome} ({info})")

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())

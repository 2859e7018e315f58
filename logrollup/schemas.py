"""Request and response models for the HTTP API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from logrollup.config import get_settings


class IngestRequest(BaseModel):
    """Batch of raw access-log lines."""

    lines: list[str] = Field(
        min_length=1,
        max_length=get_settings().max_ingest_lines,
    )


class IngestErrorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_number: int
    reason: str


class IngestSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    accepted: int
    rejected: int
    errors: list[IngestErrorOut] = Field(default_factory=list)


class AggregatedMetricsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    bucket: datetime
    first_request: datetime | None
    last_request: datetime | None
    count: int
    avg_duration_ms: int | None
    min_duration_ms: int | None
    max_duration_ms: int | None


class AggregatesResponse(BaseModel):
    method: str
    resource: str
    limit: int
    buckets: list[AggregatedMetricsOut]


class StoreKeyOut(BaseModel):
    method: str
    resource: str

"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models.records import INT64_MAX, INT64_MIN, ObservationOrder


class ReadingIn(BaseModel):
    """A single reading submitted for storage."""

    tag: str = Field(..., min_length=1, description="Sensor or source stream identifier.")
    timestamp_millis: int = Field(
        ..., ge=INT64_MIN, le=INT64_MAX, description="Observation time in epoch milliseconds."
    )
    value: float
    resolution_tier: int = Field(
        default=0,
        ge=INT64_MIN,
        le=INT64_MAX,
        description="0 for raw data, higher tiers for decimated views.",
    )


class DataPointOut(BaseModel):
    timestamp_millis: int
    value: float


class ReadingsResponse(BaseModel):
    """Readings for one tag, in the requested order."""

    tag: str
    resolution_tier: Optional[int] = Field(
        default=None, description="Tier filter applied, or null when all tiers matched."
    )
    order: ObservationOrder
    count: int = Field(..., ge=0)
    points: List[DataPointOut] = Field(default_factory=list)


class RangeSummaryOut(BaseModel):
    """Aggregate metrics computed over the readings of one range."""

    tag: str
    count: int = Field(..., ge=0)
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    mean_value: Optional[float] = None
    first_timestamp: Optional[int] = None
    last_timestamp: Optional[int] = None


class DeleteResponse(BaseModel):
    tag: str
    deleted: int = Field(..., ge=0)


class TagResponse(BaseModel):
    tag: str


class RowErrorOut(BaseModel):
    """Details about a CSV row that failed validation or parsing."""

    row_number: int = Field(..., ge=1)
    reason: str


class ImportResult(BaseModel):
    imported: int = Field(..., ge=0)
    per_tag_count: Dict[str, int] = Field(default_factory=dict)
    errors: List[RowErrorOut] = Field(default_factory=list)

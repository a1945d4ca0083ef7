"""HTTP route definitions for the service."""

from __future__ import annotations

import io
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

from app.schemas import (
    DataPointOut,
    DeleteResponse,
    ImportResult,
    RangeSummaryOut,
    ReadingIn,
    ReadingsResponse,
    RowErrorOut,
    TagResponse,
)
from datastore.sensor_db import ScalarReadingStore, build_default_store
from models.records import INT64_MAX, INT64_MIN, BoundType, ObservationOrder, TimeRange
from services.aggregator import Aggregator
from services.importer import ReadingImporter
from settings import get_settings

router = APIRouter()


def get_store() -> ScalarReadingStore:
    return build_default_store()


def get_time_range(
    start: Optional[int] = Query(
        None, ge=INT64_MIN, le=INT64_MAX, description="Lower bound in epoch milliseconds."
    ),
    end: Optional[int] = Query(
        None, ge=INT64_MIN, le=INT64_MAX, description="Upper bound in epoch milliseconds."
    ),
    start_inclusive: bool = Query(True, description="Whether the lower bound is closed."),
    end_inclusive: bool = Query(True, description="Whether the upper bound is closed."),
    order: ObservationOrder = Query(ObservationOrder.oldest_first),
) -> TimeRange:
    return TimeRange(
        lower=start,
        upper=end,
        lower_type=BoundType.closed if start_inclusive else BoundType.open,
        upper_type=BoundType.closed if end_inclusive else BoundType.open,
        order=order,
    )


@router.post(
    "/readings",
    status_code=status.HTTP_201_CREATED,
    summary="Store a single reading.",
)
def add_reading(
    reading: ReadingIn,
    store: ScalarReadingStore = Depends(get_store),
) -> ReadingIn:
    store.add_scalar_reading(
        reading.tag,
        reading.resolution_tier,
        reading.timestamp_millis,
        reading.value,
    )
    return reading


@router.post(
    "/readings/import",
    response_model=ImportResult,
    summary="Import readings from a CSV file.",
)
def import_readings(
    file: UploadFile = File(..., description="CSV with tag, timestamp and value columns."),
    store: ScalarReadingStore = Depends(get_store),
) -> ImportResult:
    file.file.seek(0)
    contents = file.file.read()
    if not contents:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty.",
        )
    try:
        text = contents.decode("utf-8-sig")
        summary = ReadingImporter(store).import_csv(io.StringIO(text, newline=""))
    except (UnicodeDecodeError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return ImportResult(
        imported=summary.imported,
        per_tag_count=summary.per_tag_count,
        errors=[RowErrorOut(row_number=e.row_number, reason=e.reason) for e in summary.errors],
    )


# Must precede the catch-all readings route; tags may contain "/".
@router.get(
    "/readings/{tag:path}/summary",
    response_model=RangeSummaryOut,
    summary="Summarize readings for a tag within a time range.",
)
def get_readings_summary(
    tag: str,
    time_range: TimeRange = Depends(get_time_range),
    tier: int = Query(
        0, ge=INT64_MIN, le=INT64_MAX, description="Resolution tier; negative matches every tier."
    ),
    store: ScalarReadingStore = Depends(get_store),
) -> RangeSummaryOut:
    summary = Aggregator().summarize(store.get_scalar_readings(tag, time_range, tier))
    return RangeSummaryOut(
        tag=tag,
        count=summary.count,
        min_value=summary.min_value,
        max_value=summary.max_value,
        mean_value=summary.mean_value,
        first_timestamp=summary.first_timestamp,
        last_timestamp=summary.last_timestamp,
    )


@router.get(
    "/readings/{tag:path}",
    response_model=ReadingsResponse,
    summary="Fetch readings for a tag within a time range.",
)
def get_readings(
    tag: str,
    time_range: TimeRange = Depends(get_time_range),
    tier: int = Query(
        0, ge=INT64_MIN, le=INT64_MAX, description="Resolution tier; negative matches every tier."
    ),
    max_records: Optional[int] = Query(
        None,
        ge=INT64_MIN,
        le=INT64_MAX,
        description="Row cap; 0 or less returns every matching row.",
    ),
    store: ScalarReadingStore = Depends(get_store),
) -> ReadingsResponse:
    limit = get_settings().default_max_records if max_records is None else max_records
    readings = store.get_scalar_readings(tag, time_range, tier, limit)
    return ReadingsResponse(
        tag=tag,
        resolution_tier=tier if tier >= 0 else None,
        order=time_range.order,
        count=readings.size(),
        points=[
            DataPointOut(timestamp_millis=point.timestamp_millis, value=point.value)
            for point in readings.as_pairs()
        ],
    )


@router.delete(
    "/readings/{tag:path}",
    response_model=DeleteResponse,
    summary="Delete readings of every resolution tier for a tag within a time range.",
)
def delete_readings(
    tag: str,
    time_range: TimeRange = Depends(get_time_range),
    store: ScalarReadingStore = Depends(get_store),
) -> DeleteResponse:
    deleted = store.delete_scalar_readings(tag, time_range)
    return DeleteResponse(tag=tag, deleted=deleted)


@router.get(
    "/tags/first-after",
    response_model=TagResponse,
    summary="Find the tag of the earliest reading after a timestamp.",
)
def first_tag_after(
    timestamp: int = Query(
        ...,
        ge=INT64_MIN,
        le=INT64_MAX,
        description="Exclusive lower bound in epoch milliseconds.",
    ),
    store: ScalarReadingStore = Depends(get_store),
) -> TagResponse:
    tag = store.get_first_tag_after(timestamp)
    if tag is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No reading found after timestamp {timestamp}.",
        )
    return TagResponse(tag=tag)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}

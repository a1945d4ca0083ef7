"""Bulk loading of readings from CSV into the store."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, TextIO

from datastore.sensor_db import ScalarReadingStore
from models.records import INT64_MAX, INT64_MIN, ScalarReading

logger = logging.getLogger(__name__)

_TAG_ALIASES = ("tag", "sensor_id")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MILLISECOND = timedelta(milliseconds=1)


@dataclass
class RowError:
    row_number: int
    reason: str


@dataclass
class ImportSummary:
    imported: int = 0
    per_tag_count: Dict[str, int] = field(default_factory=dict)
    errors: List[RowError] = field(default_factory=list)


class ReadingImporter:
    """Parses ``tag,timestamp,value[,resolution_tier]`` rows and stores them.

    Rows that fail to parse are skipped and reported; the remaining rows are
    written in a single transaction.
    """

    def __init__(self, store: ScalarReadingStore) -> None:
        self.store = store

    def import_csv(self, stream: TextIO) -> ImportSummary:
        reader = csv.DictReader(stream)
        if not reader.fieldnames:
            raise ValueError("CSV file is missing a header row.")

        normalized = {name.lower().strip(): name for name in reader.fieldnames}
        tag_col = next((normalized[a] for a in _TAG_ALIASES if a in normalized), None)
        missing = sorted({"timestamp", "value"} - normalized.keys())
        if tag_col is None:
            missing.insert(0, "tag")
        if missing:
            raise ValueError(f"CSV missing required columns: {', '.join(missing)}")

        timestamp_col = normalized["timestamp"]
        value_col = normalized["value"]
        tier_col = normalized.get("resolution_tier")

        summary = ImportSummary()
        readings: list[ScalarReading] = []
        for row_number, row in enumerate(reader, start=2):
            tag = (row.get(tag_col) or "").strip()
            timestamp_raw = (row.get(timestamp_col) or "").strip()
            value_raw = (row.get(value_col) or "").strip()
            tier_raw = (row.get(tier_col) or "").strip() if tier_col else ""

            if not tag:
                self._skip(summary, row_number, "missing tag")
                continue
            if not timestamp_raw:
                self._skip(summary, row_number, "missing timestamp")
                continue
            try:
                timestamp_millis = parse_timestamp_millis(timestamp_raw)
            except ValueError:
                self._skip(summary, row_number, "invalid timestamp")
                continue
            if not value_raw:
                self._skip(summary, row_number, "missing value")
                continue
            try:
                value = float(value_raw)
            except ValueError:
                self._skip(summary, row_number, "invalid numeric value")
                continue
            try:
                tier = int(tier_raw) if tier_raw else 0
            except ValueError:
                tier = None
            if tier is None or not INT64_MIN <= tier <= INT64_MAX:
                self._skip(summary, row_number, "invalid resolution tier")
                continue

            readings.append(
                ScalarReading(
                    tag=tag,
                    timestamp_millis=timestamp_millis,
                    value=value,
                    resolution_tier=tier,
                )
            )
            summary.per_tag_count[tag] = summary.per_tag_count.get(tag, 0) + 1

        summary.imported = self.store.add_scalar_readings(readings)
        logger.info("Imported readings", extra={"row_count": summary.imported})
        return summary

    @staticmethod
    def _skip(summary: ImportSummary, row_number: int, reason: str) -> None:
        summary.errors.append(RowError(row_number=row_number, reason=reason))
        logger.warning(
            "Skipping row %d: %s",
            row_number,
            reason,
            extra={"row_number": row_number, "reason": reason},
        )


def parse_timestamp_millis(value: str) -> int:
    """Accept epoch milliseconds or an ISO-8601 datetime (naive means UTC)."""
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    try:
        millis = int(candidate)
    except ValueError:
        millis = _parse_iso_millis(candidate)

    if not INT64_MIN <= millis <= INT64_MAX:
        raise ValueError(f"Timestamp {millis} is outside the 64-bit range.")
    return millis


def _parse_iso_millis(candidate: str) -> int:
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError("Invalid timestamp format") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return (parsed - _EPOCH) // _ONE_MILLISECOND

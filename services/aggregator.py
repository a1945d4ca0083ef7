"""Summary statistics over a materialized reading list."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from models.records import ScalarReadingList


@dataclass
class RangeSummary:
    """Computed statistics for the readings of one query."""

    count: int = 0
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    mean_value: Optional[float] = None
    first_timestamp: Optional[int] = None
    last_timestamp: Optional[int] = None


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def summarize(self, readings: ScalarReadingList) -> RangeSummary:
        summary = RangeSummary()
        total = 0.0
        finite = 0

        for timestamp, value in readings:
            summary.count += 1
            if summary.first_timestamp is None or timestamp < summary.first_timestamp:
                summary.first_timestamp = timestamp
            if summary.last_timestamp is None or timestamp > summary.last_timestamp:
                summary.last_timestamp = timestamp

            # NaN readings are counted but excluded from the value statistics.
            if math.isnan(value):
                continue
            finite += 1
            total += value
            if summary.min_value is None or value < summary.min_value:
                summary.min_value = value
            if summary.max_value is None or value > summary.max_value:
                summary.max_value = value

        if finite:
            summary.mean_value = total / finite

        return summary

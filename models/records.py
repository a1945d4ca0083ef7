"""Domain models shared across the store, services and API."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Iterator, NamedTuple, Optional, Protocol, Tuple

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
_NAN = float("nan")


@dataclass(frozen=True, slots=True)
class ScalarReading:
    """A single stored sensor reading."""

    tag: str
    timestamp_millis: int
    value: float
    resolution_tier: int = 0


class BoundType(str, Enum):
    closed = "closed"
    open = "open"


class ObservationOrder(str, Enum):
    oldest_first = "oldest_first"
    newest_first = "newest_first"


@dataclass(frozen=True, slots=True)
class TimeRange:
    """Interval over integer milliseconds plus the requested result order.

    ``None`` on either side means the range is unbounded there.
    """

    lower: Optional[int] = None
    upper: Optional[int] = None
    lower_type: BoundType = BoundType.closed
    upper_type: BoundType = BoundType.closed
    order: ObservationOrder = ObservationOrder.oldest_first

    @classmethod
    def all_time(cls, order: ObservationOrder = ObservationOrder.oldest_first) -> TimeRange:
        return cls(order=order)

    @classmethod
    def closed(
        cls, lower: int, upper: int, order: ObservationOrder = ObservationOrder.oldest_first
    ) -> TimeRange:
        return cls(lower=lower, upper=upper, order=order)

    @classmethod
    def closed_open(
        cls, lower: int, upper: int, order: ObservationOrder = ObservationOrder.oldest_first
    ) -> TimeRange:
        return cls(lower=lower, upper=upper, upper_type=BoundType.open, order=order)

    @classmethod
    def at_least(
        cls, lower: int, order: ObservationOrder = ObservationOrder.oldest_first
    ) -> TimeRange:
        return cls(lower=lower, order=order)

    @classmethod
    def greater_than(
        cls, lower: int, order: ObservationOrder = ObservationOrder.oldest_first
    ) -> TimeRange:
        return cls(lower=lower, lower_type=BoundType.open, order=order)

    @classmethod
    def at_most(
        cls, upper: int, order: ObservationOrder = ObservationOrder.oldest_first
    ) -> TimeRange:
        return cls(upper=upper, order=order)

    @classmethod
    def less_than(
        cls, upper: int, order: ObservationOrder = ObservationOrder.oldest_first
    ) -> TimeRange:
        return cls(upper=upper, upper_type=BoundType.open, order=order)

    def canonical(self) -> TimeRange:
        """Return the equivalent closed-open range over the int64 domain.

        A bound whose successor falls outside int64 keeps its original type.
        """
        lower, lower_type = self.lower, self.lower_type
        if lower is not None and lower_type is BoundType.open and lower < INT64_MAX:
            lower, lower_type = lower + 1, BoundType.closed

        upper, upper_type = self.upper, self.upper_type
        if upper is not None and upper_type is BoundType.closed and upper < INT64_MAX:
            upper, upper_type = upper + 1, BoundType.open

        return replace(
            self, lower=lower, lower_type=lower_type, upper=upper, upper_type=upper_type
        )

    @property
    def newest_first(self) -> bool:
        return self.order is ObservationOrder.newest_first


class DataPoint(NamedTuple):
    timestamp_millis: int
    value: float


class StreamConsumer(Protocol):
    """Receives delivered readings one pair at a time."""

    def add_data(self, timestamp_millis: int, value: float) -> None:
        ...


@dataclass(frozen=True, slots=True)
class ScalarReadingList:
    """Materialized query result, in the order it was requested.

    Every view (push delivery, pair list, iteration) reads the same tuple of
    points, so they cannot disagree, and none of them goes back to storage.
    """

    points: Tuple[DataPoint, ...] = ()

    @classmethod
    def from_rows(cls, rows: Iterable[Tuple[int, float]]) -> ScalarReadingList:
        # SQLite stores NaN as NULL.
        return cls(
            points=tuple(
                DataPoint(int(ts), _NAN if value is None else float(value)) for ts, value in rows
            )
        )

    def size(self) -> int:
        return len(self.points)

    def deliver(self, consumer: StreamConsumer) -> None:
        for point in self.points:
            consumer.add_data(point.timestamp_millis, point.value)

    def as_pairs(self) -> list[DataPoint]:
        return list(self.points)

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[DataPoint]:
        return iter(self.points)

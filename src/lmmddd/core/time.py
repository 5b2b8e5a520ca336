"""Time measures converting calendar instants into model times.

A time measure is the only piece of date handling the simulation core needs:
every model time is the elapsed time, in years, between the valuation instant
and a calendar instant. Day-count conventions and holiday calendars are left to
the curve collaborator.
"""
from __future__ import annotations

import datetime
from typing import Protocol, Union, runtime_checkable

DateLike = Union[datetime.date, datetime.datetime]

SECONDS_PER_YEAR = 31_536_000.0
DAYS_PER_YEAR = 365.0

__all__ = [
    "DAYS_PER_YEAR",
    "DateLike",
    "SECONDS_PER_YEAR",
    "ScaledSecondTime",
    "TimeMeasure",
]


@runtime_checkable
class TimeMeasure(Protocol):
    """Callable signature for elapsed-time measures."""

    def relative_time(self, start: datetime.datetime, end: DateLike) -> float:
        ...


class ScaledSecondTime:
    """Elapsed seconds scaled by a 365-day year.

    Instants are compared through their epoch seconds, so the zone of each
    argument is honoured. Plain dates are compared with the calendar date of
    ``start`` and measured in whole days.

    Raises
    ------
    ValueError
        If either instant is a naive datetime.
    """

    def relative_time(self, start: datetime.datetime, end: DateLike) -> float:
        if isinstance(end, datetime.datetime):
            if start.utcoffset() is None or end.utcoffset() is None:
                raise ValueError(
                    f"Instants must be timezone-aware, got start={start!r} and end={end!r}"
                )
            return (end.timestamp() - start.timestamp()) / SECONDS_PER_YEAR
        return (end - start.date()).days / DAYS_PER_YEAR

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self)

    def __hash__(self) -> int:
        return hash(type(self))

    def __repr__(self) -> str:
        return "ScaledSecondTime()"

"""Calendar period descriptors for weekly and monthly reporting."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

import pandas as pd

from wip_engine.models import Job


MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

DateLike = date | datetime | str | pd.Timestamp


@dataclass(frozen=True)
class WeekInfo:
    """ISO week number/year plus the Monday-Sunday window containing the date."""

    week_number: int
    year: int
    week_start: str
    week_end: str


@dataclass(frozen=True)
class MonthInfo:
    month: int
    year: int
    month_name: str
    month_start: str
    month_end: str


def to_day(value: DateLike) -> pd.Timestamp:
    """Timezone-naive midnight timestamp for a date, datetime or ISO string."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.normalize()


def _iso(ts: pd.Timestamp) -> str:
    return ts.strftime("%Y-%m-%d")


def get_week_info(value: DateLike) -> WeekInfo:
    day = to_day(value)
    # isocalendar anchors on the Thursday of the week, so late-December dates
    # can fall in week 1 of the next year and early-January dates in week 52/53.
    iso_year, iso_week, _ = day.isocalendar()
    # The window is taken from the date itself, not from the Thursday anchor.
    week_start = day - pd.Timedelta(days=day.weekday())
    week_end = week_start + pd.Timedelta(days=6)
    return WeekInfo(
        week_number=int(iso_week),
        year=int(iso_year),
        week_start=_iso(week_start),
        week_end=_iso(week_end),
    )


def get_month_info(value: DateLike) -> MonthInfo:
    day = to_day(value)
    month_start = day.replace(day=1)
    month_end = month_start + pd.offsets.MonthEnd(1)
    return MonthInfo(
        month=int(day.month),
        year=int(day.year),
        month_name=MONTH_NAMES[day.month - 1],
        month_start=_iso(month_start),
        month_end=_iso(month_end),
    )


def month_info_for(year: int, month: int) -> MonthInfo:
    if not 1 <= int(month) <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}.")
    return get_month_info(date(int(year), int(month), 1))


def get_job_effective_date(job: Job, default: DateLike) -> pd.Timestamp:
    """The date a job's figures represent: as_of_date, else last_updated, else default."""
    if job.as_of_date:
        return to_day(job.as_of_date)
    if job.last_updated:
        return to_day(job.last_updated)
    return to_day(default)


def filter_jobs_by_period(
    jobs: Iterable[Job],
    period_start: DateLike,
    period_end: DateLike,
    default: DateLike,
) -> list[Job]:
    """Jobs whose effective date falls inside the inclusive period window."""
    start = to_day(period_start)
    end = to_day(period_end)
    return [job for job in jobs if start <= get_job_effective_date(job, default) <= end]

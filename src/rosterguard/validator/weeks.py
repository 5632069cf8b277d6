# src/rosterguard/validator/weeks.py
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import date
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SATURDAY = 5  # date.weekday()
SUNDAY = 6


def iso_week_number(day: date) -> int:
    """
    @brief
    ISO-8601 week number (weeks start on Monday).

    @details
    The last days of December may belong to week 1 of the next year and the
    first days of January to week 52/53 of the previous one.
    """
    return day.isocalendar()[1]


def week_key(day: date) -> str:
    """Grouping key for the week containing `day`, e.g. 'S10'."""
    return f"S{iso_week_number(day)}"


def is_saturday(day: date) -> bool:
    return day.weekday() == SATURDAY


def is_sunday(day: date) -> bool:
    return day.weekday() == SUNDAY


def group_by_week(records: Iterable[T], key: Callable[[T], date]) -> dict[str, list[T]]:
    """
    @brief
    Partition dated records into ISO-week buckets.

    @details
    Buckets are keyed by `week_key()` and keep both the first-seen order of
    weeks and the input order of records inside each week. Every record lands
    in exactly one bucket. The key carries no year, so inputs are expected
    to cover a single scheduling period (see `iso_years_spanned`).

    @params
        records : Iterable[T]
            Dated records, typically assignments.
        key : Callable[[T], date]
            Extracts the calendar date of a record.

    @returns
        Mapping week key -> records of that week.
    """
    buckets: dict[str, list[T]] = {}
    for record in records:
        buckets.setdefault(week_key(key(record)), []).append(record)
    return buckets


def iso_years_spanned(days: Iterable[date]) -> set[int]:
    """ISO years touched by `days`; more than one means week keys may collide."""
    return {d.isocalendar()[0] for d in days}


def warn_if_multiple_iso_years(days: Iterable[date]) -> bool:
    """
    @brief
    Log a warning when the dates cross an ISO-year boundary.

    @returns
        True if more than one ISO year is present.
    """
    years = iso_years_spanned(days)
    if len(years) > 1:
        logger.warning(
            "Input spans ISO years %s; week keys carry no year and weeks from "
            "different years may be merged.",
            sorted(years),
        )
        return True
    return False

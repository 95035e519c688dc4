from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import replace
from datetime import timedelta
from fractions import Fraction
from operator import attrgetter
from typing import Iterable

from shiftbank.services.normalizer import DayRecord, EmployeeKey
from shiftbank.services.shift_codes import (
    HOLIDAY_CONDITIONED_CATEGORIES,
    NIGHT_HANDOFF_CODE,
    NIGHT_SHIFT_SMALL_CODE,
)

logger = logging.getLogger("shiftbank.adjacency")

HANDOFF_AFTER_SMALL_NIGHT_VALUE = Fraction(1, 2)
HOLIDAY_CONDITIONED_ON_HOLIDAY = Fraction(0)
HOLIDAY_CONDITIONED_ON_WORKDAY = Fraction(1)

FLAG_HANDOFF_AFTER_SMALL_NIGHT = "HANDOFF_AFTER_SMALL_NIGHT"
FLAG_HOLIDAY_CONDITIONED = "HOLIDAY_CONDITIONED"

_ADJUSTMENT_FLAGS = {FLAG_HANDOFF_AFTER_SMALL_NIGHT, FLAG_HOLIDAY_CONDITIONED}


def is_handoff_after_small_night(previous: DayRecord | None, current: DayRecord) -> bool:
    if previous is None:
        return False
    if previous.shift_code != NIGHT_SHIFT_SMALL_CODE or current.shift_code != NIGHT_HANDOFF_CODE:
        return False
    if previous.day_date + timedelta(days=1) != current.day_date:
        return False
    return previous.day_date.month == current.day_date.month


def _resolve(previous: DayRecord | None, current: DayRecord) -> tuple[Fraction, tuple[str, ...]]:
    flags = tuple(flag for flag in current.flags if flag not in _ADJUSTMENT_FLAGS)
    if current.category in HOLIDAY_CONDITIONED_CATEGORIES:
        value = HOLIDAY_CONDITIONED_ON_HOLIDAY if current.is_holiday else HOLIDAY_CONDITIONED_ON_WORKDAY
        return value, (*flags, FLAG_HOLIDAY_CONDITIONED)
    if is_handoff_after_small_night(previous, current):
        return HANDOFF_AFTER_SMALL_NIGHT_VALUE, (*flags, FLAG_HANDOFF_AFTER_SMALL_NIGHT)
    return current.base_work_value, flags


def adjust_employee_records(records: Iterable[DayRecord]) -> list[DayRecord]:
    """Apply the adjacency and holiday rules to one employee's records.

    Input order does not matter; the returned list is sorted by date. Every
    rule keys off codes, categories and dates, never off the current work
    value, so running the pass again yields the same values.
    """
    ordered = sorted(records, key=attrgetter("day_date"))
    if ordered:
        first_key = ordered[0].key
        if any(record.key != first_key for record in ordered):
            raise ValueError("adjust_employee_records expects records for a single employee")

    adjusted: list[DayRecord] = []
    previous: DayRecord | None = None
    for record in ordered:
        if previous is not None and previous.day_date == record.day_date:
            raise ValueError(
                f"Duplicate day record for {record.employee_name} on {record.day_date.isoformat()}"
            )
        value, flags = _resolve(previous, record)
        if value != record.work_value or flags != record.flags:
            logger.debug(
                "day_record_adjusted",
                extra={
                    "employee_id": record.employee_id,
                    "employee_name": record.employee_name,
                    "date": record.day_date.isoformat(),
                    "shift_code": record.shift_code,
                    "from_value": str(record.work_value),
                    "to_value": str(value),
                },
            )
            record = replace(record, work_value=value, flags=flags)
        adjusted.append(record)
        previous = record
    return adjusted


def group_by_employee(records: Iterable[DayRecord]) -> dict[EmployeeKey, list[DayRecord]]:
    grouped: dict[EmployeeKey, list[DayRecord]] = defaultdict(list)
    for record in records:
        grouped[record.key].append(record)
    return dict(grouped)


def adjust_records(records: Iterable[DayRecord]) -> list[DayRecord]:
    """Adjust a whole stream (any number of employees and months).

    Each employee's records are ordered globally by date before the handoff
    lookback runs. The result is ordered by date, then employee key.
    """
    adjusted: list[DayRecord] = []
    for employee_records in group_by_employee(records).values():
        adjusted.extend(adjust_employee_records(employee_records))
    adjusted.sort(key=lambda record: (record.day_date, record.key))
    return adjusted

from __future__ import annotations

import logging
from calendar import monthrange
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from fractions import Fraction
from types import MappingProxyType
from typing import Mapping, NamedTuple, Sequence

from shiftbank.services.shift_codes import (
    DAY_CATEGORIES,
    LEAVE_CATEGORIES,
    NIGHT_CATEGORIES,
    ShiftCategory,
    ShiftTable,
    UnknownShift,
    default_shift_table,
    is_on_duty,
)

logger = logging.getLogger("shiftbank.normalizer")

HEADER_ROW_COUNT = 3
FIRST_DAY_COLUMN = 2
HOLIDAY_FLAG = "Y"


class EmployeeKey(NamedTuple):
    """Composite employee identity.

    Two rows with the same name but different ids are different employees here,
    while offsets are still joined by name alone.
    """

    employee_id: int
    employee_name: str


class YearMonth(NamedTuple):
    year: int
    month: int

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @classmethod
    def parse(cls, value: str) -> "YearMonth":
        raw_year, sep, raw_month = (value or "").strip().partition("-")
        if not sep or not raw_year.isdecimal() or not raw_month.isdecimal():
            raise ValueError(f"Expected YYYY-MM, got {value!r}")
        year, month = int(raw_year), int(raw_month)
        if not 1 <= month <= 12:
            raise ValueError(f"Month out of range in {value!r}")
        return cls(year, month)

    @classmethod
    def of(cls, day_value: date) -> "YearMonth":
        return cls(day_value.year, day_value.month)

    def next(self) -> "YearMonth":
        if self.month == 12:
            return YearMonth(self.year + 1, 1)
        return YearMonth(self.year, self.month + 1)

    def days_in_month(self) -> int:
        return monthrange(self.year, self.month)[1]


class WeekdayInfo(NamedTuple):
    english: str
    number: int


UNKNOWN_WEEKDAY = WeekdayInfo("Unknown", -1)

WEEKDAY_TABLE: Mapping[str, WeekdayInfo] = MappingProxyType(
    {
        "星期一": WeekdayInfo("Monday", 1),
        "星期二": WeekdayInfo("Tuesday", 2),
        "星期三": WeekdayInfo("Wednesday", 3),
        "星期四": WeekdayInfo("Thursday", 4),
        "星期五": WeekdayInfo("Friday", 5),
        "星期六": WeekdayInfo("Saturday", 6),
        "星期日": WeekdayInfo("Sunday", 0),
    }
)


def resolve_weekday(weekday_text: str | None) -> WeekdayInfo:
    return WEEKDAY_TABLE.get((weekday_text or "").strip(), UNKNOWN_WEEKDAY)


def parse_holiday_flag(value: str | bool | None) -> bool:
    if isinstance(value, bool):
        return value
    return (value or "").strip() == HOLIDAY_FLAG


@dataclass(frozen=True, slots=True)
class DayRecord:
    employee_id: int
    employee_name: str
    day_date: date
    weekday_number: int
    weekday_name: str
    weekday_text: str
    is_holiday: bool
    shift_code: str
    category: ShiftCategory
    description: str
    base_work_value: Fraction
    work_value: Fraction
    flags: tuple[str, ...] = ()

    @property
    def key(self) -> EmployeeKey:
        return EmployeeKey(self.employee_id, self.employee_name)

    @property
    def year_month(self) -> YearMonth:
        return YearMonth.of(self.day_date)

    @property
    def year(self) -> int:
        return self.day_date.year

    @property
    def month(self) -> int:
        return self.day_date.month

    @property
    def day(self) -> int:
        return self.day_date.day

    @property
    def is_work_day(self) -> bool:
        return is_on_duty(self.category)

    @property
    def is_rest_day(self) -> bool:
        return not self.is_work_day

    @property
    def is_weekend(self) -> bool:
        return self.weekday_number in (0, 6)

    @property
    def is_night_shift(self) -> bool:
        return self.category in NIGHT_CATEGORIES

    @property
    def is_day_shift(self) -> bool:
        return self.category in DAY_CATEGORIES

    @property
    def is_leave(self) -> bool:
        return self.category in LEAVE_CATEGORIES

    @property
    def is_unknown(self) -> bool:
        return self.category == ShiftCategory.UNKNOWN


def normalize(
    raw_cell: str | None,
    *,
    employee: EmployeeKey,
    year: int,
    month: int,
    day: int,
    weekday_text: str | None,
    is_holiday: str | bool | None,
    table: ShiftTable | None = None,
) -> DayRecord | None:
    """Build one DayRecord from a roster cell.

    Returns ``None`` for blank cells and for days that do not exist in the
    month; neither case is an error.
    """
    shift_code = (raw_cell or "").strip()
    if not shift_code:
        return None

    try:
        day_date = date(year, month, day)
    except ValueError:
        logger.warning(
            "roster_cell_dropped_invalid_date",
            extra={
                "employee_id": employee.employee_id,
                "employee_name": employee.employee_name,
                "year": year,
                "month": month,
                "day": day,
            },
        )
        return None

    lookup = (table or default_shift_table()).classify(shift_code)
    weekday = resolve_weekday(weekday_text)
    return DayRecord(
        employee_id=employee.employee_id,
        employee_name=employee.employee_name,
        day_date=day_date,
        weekday_number=weekday.number,
        weekday_name=weekday.english,
        weekday_text=(weekday_text or "").strip(),
        is_holiday=parse_holiday_flag(is_holiday),
        shift_code=shift_code,
        category=lookup.category,
        description=lookup.description,
        base_work_value=lookup.work_value,
        work_value=lookup.work_value,
        flags=("UNKNOWN_SHIFT_CODE",) if isinstance(lookup, UnknownShift) else (),
    )


class RosterFormatError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class SkippedRow:
    row_index: int
    reason: str


@dataclass
class RosterParseResult:
    year_month: YearMonth
    records: list[DayRecord] = field(default_factory=list)
    skipped_rows: list[SkippedRow] = field(default_factory=list)
    dropped_cells: int = 0
    invalid_day_columns: int = 0
    header_day_count: int = 0
    unknown_codes: Counter[str] = field(default_factory=Counter)

    @property
    def days_in_month(self) -> int:
        return self.year_month.days_in_month()

    @property
    def day_count_mismatch(self) -> bool:
        return self.header_day_count != self.days_in_month

    @property
    def employee_count(self) -> int:
        return len({record.key for record in self.records})


def _cell(row: Sequence[str], index: int) -> str:
    if index < len(row):
        return str(row[index] if row[index] is not None else "")
    return ""


def _parse_employee(row: Sequence[str]) -> tuple[EmployeeKey | None, str | None]:
    if len(row) < FIRST_DAY_COLUMN + 1:
        return None, "TOO_FEW_COLUMNS"
    raw_id = _cell(row, 0).strip()
    if not raw_id.isdecimal() or int(raw_id) == 0:
        return None, "MISSING_EMPLOYEE_ID"
    name = _cell(row, 1).strip()
    if not name:
        return None, "MISSING_EMPLOYEE_NAME"
    return EmployeeKey(int(raw_id), name), None


def _parse_day_number(value: str) -> int | None:
    raw = (value or "").strip()
    if not raw.isdecimal():
        return None
    day = int(raw)
    if day < 1 or day > 31:
        return None
    return day


def normalize_roster(
    rows: Sequence[Sequence[str]],
    *,
    year: int,
    month: int,
    table: ShiftTable | None = None,
) -> RosterParseResult:
    """Turn one monthly sheet into DayRecords.

    ``rows[0..2]`` are the day-number, weekday and holiday header rows; every
    following row is ``[employee_id, employee_name, cell_day_1, ...]``.
    """
    if len(rows) < HEADER_ROW_COUNT + 1:
        raise RosterFormatError("Invalid roster format: insufficient rows")
    if not 1 <= month <= 12:
        raise RosterFormatError(f"Invalid roster month: {month}")

    shift_table = table or default_shift_table()
    result = RosterParseResult(year_month=YearMonth(year, month))

    day_cells = list(rows[0][FIRST_DAY_COLUMN:])
    weekday_cells = list(rows[1][FIRST_DAY_COLUMN:])
    holiday_cells = list(rows[2][FIRST_DAY_COLUMN:])
    result.header_day_count = len(day_cells)
    if result.day_count_mismatch:
        logger.warning(
            "roster_day_count_mismatch",
            extra={
                "year_month": str(result.year_month),
                "expected_days": result.days_in_month,
                "header_days": result.header_day_count,
            },
        )

    columns: list[tuple[int, int, str, str]] = []
    seen_days: set[int] = set()
    for offset, raw_day in enumerate(day_cells):
        day = _parse_day_number(str(raw_day or ""))
        if day is None or day in seen_days:
            result.invalid_day_columns += 1
            continue
        seen_days.add(day)
        weekday_text = str(weekday_cells[offset]) if offset < len(weekday_cells) else ""
        holiday_text = str(holiday_cells[offset]) if offset < len(holiday_cells) else ""
        columns.append((offset + FIRST_DAY_COLUMN, day, weekday_text, holiday_text))

    seen_employees: set[EmployeeKey] = set()
    for row_index in range(HEADER_ROW_COUNT, len(rows)):
        row = rows[row_index]
        employee, reason = _parse_employee(row)
        if employee is None:
            result.skipped_rows.append(SkippedRow(row_index=row_index, reason=reason or "MALFORMED_ROW"))
            continue
        if employee in seen_employees:
            result.skipped_rows.append(SkippedRow(row_index=row_index, reason="DUPLICATE_EMPLOYEE"))
            continue
        seen_employees.add(employee)

        for column_index, day, weekday_text, holiday_text in columns:
            raw_cell = _cell(row, column_index)
            if not raw_cell.strip():
                continue
            record = normalize(
                raw_cell,
                employee=employee,
                year=year,
                month=month,
                day=day,
                weekday_text=weekday_text,
                is_holiday=holiday_text,
                table=shift_table,
            )
            if record is None:
                result.dropped_cells += 1
                continue
            if record.is_unknown:
                result.unknown_codes[record.shift_code] += 1
            result.records.append(record)

    if result.skipped_rows:
        logger.info(
            "roster_rows_skipped",
            extra={
                "year_month": str(result.year_month),
                "skipped_rows": len(result.skipped_rows),
            },
        )
    logger.info(
        "roster_parsed",
        extra={
            "year_month": str(result.year_month),
            "records": len(result.records),
            "employees": result.employee_count,
            "dropped_cells": result.dropped_cells,
            "unknown_codes": sum(result.unknown_codes.values()),
        },
    )
    return result

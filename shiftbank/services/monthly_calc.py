from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date
from fractions import Fraction
from types import MappingProxyType
from typing import Iterable, Mapping

from shiftbank.services.normalizer import DayRecord, EmployeeKey, YearMonth
from shiftbank.services.shift_codes import ShiftCategory


@dataclass(frozen=True)
class MonthlyAggregate:
    employee_id: int
    employee_name: str
    year_month: YearMonth
    total_days_on_record: int
    legal_holiday_days_on_record: int
    legal_workday_count: int
    fulfilled_work_value: Fraction
    balance: Fraction
    first_date: date
    last_date: date
    work_days: int = 0
    rest_days: int = 0
    night_shifts: int = 0
    day_shifts: int = 0
    half_value_days: int = 0
    sick_leave_days: int = 0
    maternity_leave_days: int = 0
    leave_days: int = 0
    holiday_work_days: int = 0
    weekend_work_days: int = 0
    unknown_days: int = 0
    shift_counts: Mapping[str, int] = field(default_factory=dict)

    @property
    def key(self) -> EmployeeKey:
        return EmployeeKey(self.employee_id, self.employee_name)

    @property
    def year(self) -> int:
        return self.year_month.year

    @property
    def month(self) -> int:
        return self.year_month.month

    @property
    def work_rate(self) -> Fraction:
        if self.legal_workday_count <= 0:
            return Fraction(0)
        return self.fulfilled_work_value / self.legal_workday_count * 100


def aggregate_month(
    employee: EmployeeKey,
    year: int,
    month: int,
    records: Iterable[DayRecord],
) -> MonthlyAggregate | None:
    """Fold one employee's adjusted records for one month.

    Returns ``None`` when there are no records: "no data" and "zero balance"
    are different answers.
    """
    period = YearMonth(year, month)
    items = list(records)
    if not items:
        return None

    fulfilled = Fraction(0)
    holidays = 0
    work_days = 0
    night_shifts = 0
    day_shifts = 0
    half_value_days = 0
    sick_leave_days = 0
    maternity_leave_days = 0
    leave_days = 0
    holiday_work_days = 0
    weekend_work_days = 0
    unknown_days = 0
    shift_counts: Counter[str] = Counter()
    first_date = items[0].day_date
    last_date = items[0].day_date

    for record in items:
        if record.key != employee or record.year_month != period:
            raise ValueError(
                f"Record {record.key} {record.day_date.isoformat()} does not belong to {employee} {period}"
            )
        fulfilled += record.work_value
        first_date = min(first_date, record.day_date)
        last_date = max(last_date, record.day_date)
        shift_counts[record.shift_code] += 1

        if record.is_holiday:
            holidays += 1
        if record.is_work_day:
            work_days += 1
            if record.is_holiday:
                holiday_work_days += 1
            if record.is_weekend:
                weekend_work_days += 1
        if record.is_night_shift:
            night_shifts += 1
        elif record.is_day_shift:
            day_shifts += 1
        if record.work_value == Fraction(1, 2):
            half_value_days += 1
        if record.is_leave:
            leave_days += 1
        if record.category == ShiftCategory.SICK_LEAVE:
            sick_leave_days += 1
        elif record.category == ShiftCategory.MATERNITY_LEAVE:
            maternity_leave_days += 1
        if record.is_unknown:
            unknown_days += 1

    total_days = len(items)
    legal_workdays = total_days - holidays
    return MonthlyAggregate(
        employee_id=employee.employee_id,
        employee_name=employee.employee_name,
        year_month=period,
        total_days_on_record=total_days,
        legal_holiday_days_on_record=holidays,
        legal_workday_count=legal_workdays,
        fulfilled_work_value=fulfilled,
        balance=fulfilled - legal_workdays,
        first_date=first_date,
        last_date=last_date,
        work_days=work_days,
        rest_days=total_days - work_days,
        night_shifts=night_shifts,
        day_shifts=day_shifts,
        half_value_days=half_value_days,
        sick_leave_days=sick_leave_days,
        maternity_leave_days=maternity_leave_days,
        leave_days=leave_days,
        holiday_work_days=holiday_work_days,
        weekend_work_days=weekend_work_days,
        unknown_days=unknown_days,
        shift_counts=MappingProxyType(dict(shift_counts)),
    )


def aggregate_months(records: Iterable[DayRecord]) -> list[MonthlyAggregate]:
    """Group a record stream by (employee, month) and aggregate each group.

    Ordered by employee key, then chronologically.
    """
    grouped: dict[tuple[EmployeeKey, YearMonth], list[DayRecord]] = defaultdict(list)
    for record in records:
        grouped[(record.key, record.year_month)].append(record)

    aggregates: list[MonthlyAggregate] = []
    for (employee, period), items in sorted(grouped.items(), key=lambda item: item[0]):
        aggregate = aggregate_month(employee, period.year, period.month, items)
        if aggregate is not None:
            aggregates.append(aggregate)
    return aggregates


def aggregates_for_month(aggregates: Iterable[MonthlyAggregate], year: int, month: int) -> list[MonthlyAggregate]:
    period = YearMonth(year, month)
    return [aggregate for aggregate in aggregates if aggregate.year_month == period]

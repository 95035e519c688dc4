from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date
from fractions import Fraction
from operator import attrgetter
from typing import Iterable, Literal, Sequence

from shiftbank.services.ledger import Ledger
from shiftbank.services.normalizer import DayRecord, EmployeeKey
from shiftbank.services.shift_codes import ShiftCategory
from shiftbank.services.summary import EmployeeSummary

RankingMetric = Literal["balance", "workload"]

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
DAYS_PER_YEAR = Fraction(36525, 100)


@dataclass(frozen=True, slots=True)
class RankingEntry:
    rank: int
    employee_id: int
    employee_name: str
    value: Fraction
    months_on_record: int


@dataclass(frozen=True, slots=True)
class DistributionEntry:
    label: str
    count: int
    percentage: Fraction


@dataclass(frozen=True, slots=True)
class YearlyTrend:
    year: int
    records: int
    work_value: Fraction
    unique_employees: int
    avg_work_value_per_employee: Fraction
    avg_records_per_employee: Fraction


@dataclass(frozen=True, slots=True)
class SeasonalPattern:
    month: int
    month_name: str
    total_days: int
    work_days: int
    work_value: Fraction
    work_rate: Fraction
    avg_work_value_per_day: Fraction


@dataclass(frozen=True, slots=True)
class WorkPatterns:
    total_work_days: int
    total_rest_days: int
    night_shifts: int
    day_shifts: int
    weekend_work: int
    holiday_work: int

    @property
    def work_rate(self) -> Fraction:
        total = self.total_work_days + self.total_rest_days
        if total == 0:
            return Fraction(0)
        return Fraction(self.total_work_days * 100, total)


@dataclass(frozen=True, slots=True)
class WeekendHolidayWork:
    employee_id: int
    employee_name: str
    weekend_days: int
    weekend_work_value: Fraction
    holiday_days: int
    holiday_work_value: Fraction


@dataclass(frozen=True, slots=True)
class ShiftPattern:
    employee_id: int
    employee_name: str
    max_consecutive_work: int
    max_consecutive_rest: int
    category_changes: int


@dataclass(frozen=True, slots=True)
class CareerSpan:
    employee_id: int
    employee_name: str
    first_date: date
    last_date: date
    span_days: int
    span_years: Fraction
    total_days_on_record: int
    fulfilled_work_value: Fraction


@dataclass(frozen=True, slots=True)
class DatasetOverview:
    total_records: int
    unique_employees: int
    months: int
    total_work_value: Fraction
    first_date: date | None
    last_date: date | None
    unknown_code_records: int
    work_patterns: WorkPatterns


def _percentage(count: int, total: int) -> Fraction:
    if total == 0:
        return Fraction(0)
    return Fraction(count * 100, total)


def _average(total: Fraction | int, count: int) -> Fraction:
    if count == 0:
        return Fraction(0)
    return Fraction(total) / count


def top_by_balance(
    summaries: Iterable[EmployeeSummary],
    limit: int = 5,
    *,
    ascending: bool = False,
) -> list[RankingEntry]:
    """Rank by cumulative balance (offset included). ``ascending`` lists the largest debts first."""
    ordered = sorted(
        summaries,
        key=lambda item: (item.cumulative_balance if ascending else -item.cumulative_balance, item.key),
    )
    return [
        RankingEntry(
            rank=index,
            employee_id=summary.employee_id,
            employee_name=summary.employee_name,
            value=summary.cumulative_balance,
            months_on_record=summary.months_on_record,
        )
        for index, summary in enumerate(ordered[: max(0, limit)], start=1)
    ]


def top_by_workload(summaries: Iterable[EmployeeSummary], limit: int = 5) -> list[RankingEntry]:
    ordered = sorted(summaries, key=lambda item: (-item.total_fulfilled_work_value, item.key))
    return [
        RankingEntry(
            rank=index,
            employee_id=summary.employee_id,
            employee_name=summary.employee_name,
            value=summary.total_fulfilled_work_value,
            months_on_record=summary.months_on_record,
        )
        for index, summary in enumerate(ordered[: max(0, limit)], start=1)
    ]


def rank(summaries: Iterable[EmployeeSummary], metric: RankingMetric, limit: int = 5) -> list[RankingEntry]:
    if metric == "balance":
        return top_by_balance(summaries, limit)
    if metric == "workload":
        return top_by_workload(summaries, limit)
    raise ValueError(f"Unknown ranking metric: {metric}")


def _distribution(counter: Counter[str], limit: int | None) -> list[DistributionEntry]:
    total = sum(counter.values())
    ordered = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    if limit is not None:
        ordered = ordered[: max(0, limit)]
    return [
        DistributionEntry(label=label, count=count, percentage=_percentage(count, total))
        for label, count in ordered
    ]


def category_distribution(records: Iterable[DayRecord]) -> list[DistributionEntry]:
    return _distribution(Counter(record.category.value for record in records), None)


def shift_code_distribution(records: Iterable[DayRecord], limit: int | None = None) -> list[DistributionEntry]:
    return _distribution(Counter(record.shift_code for record in records), limit)


def unknown_code_audit(records: Iterable[DayRecord]) -> dict[str, int]:
    counter = Counter(record.shift_code for record in records if record.category == ShiftCategory.UNKNOWN)
    return dict(sorted(counter.items(), key=lambda item: (-item[1], item[0])))


def yearly_trends(records: Iterable[DayRecord]) -> list[YearlyTrend]:
    counts: Counter[int] = Counter()
    values: dict[int, Fraction] = defaultdict(Fraction)
    employees: dict[int, set[EmployeeKey]] = defaultdict(set)
    for record in records:
        counts[record.year] += 1
        values[record.year] += record.work_value
        employees[record.year].add(record.key)

    return [
        YearlyTrend(
            year=year,
            records=counts[year],
            work_value=values[year],
            unique_employees=len(employees[year]),
            avg_work_value_per_employee=_average(values[year], len(employees[year])),
            avg_records_per_employee=_average(counts[year], len(employees[year])),
        )
        for year in sorted(counts)
    ]


def seasonal_patterns(records: Iterable[DayRecord]) -> list[SeasonalPattern]:
    total_days: Counter[int] = Counter()
    work_days: Counter[int] = Counter()
    values: dict[int, Fraction] = defaultdict(Fraction)
    for record in records:
        total_days[record.month] += 1
        values[record.month] += record.work_value
        if record.is_work_day:
            work_days[record.month] += 1

    return [
        SeasonalPattern(
            month=month,
            month_name=MONTH_NAMES[month - 1],
            total_days=total_days[month],
            work_days=work_days[month],
            work_value=values[month],
            work_rate=_percentage(work_days[month], total_days[month]),
            avg_work_value_per_day=_average(values[month], total_days[month]),
        )
        for month in range(1, 13)
    ]


def work_patterns(records: Iterable[DayRecord]) -> WorkPatterns:
    work = rest = night = day = weekend = holiday = 0
    for record in records:
        if record.is_work_day:
            work += 1
            if record.is_weekend:
                weekend += 1
            if record.is_holiday:
                holiday += 1
        else:
            rest += 1
        if record.is_night_shift:
            night += 1
        if record.is_day_shift:
            day += 1
    return WorkPatterns(
        total_work_days=work,
        total_rest_days=rest,
        night_shifts=night,
        day_shifts=day,
        weekend_work=weekend,
        holiday_work=holiday,
    )


def weekend_holiday_work(records: Iterable[DayRecord]) -> list[WeekendHolidayWork]:
    weekend_days: Counter[EmployeeKey] = Counter()
    holiday_days: Counter[EmployeeKey] = Counter()
    weekend_values: dict[EmployeeKey, Fraction] = defaultdict(Fraction)
    holiday_values: dict[EmployeeKey, Fraction] = defaultdict(Fraction)
    for record in records:
        if not record.is_work_day:
            continue
        if record.is_weekend:
            weekend_days[record.key] += 1
            weekend_values[record.key] += record.work_value
        if record.is_holiday:
            holiday_days[record.key] += 1
            holiday_values[record.key] += record.work_value

    keys = sorted(set(weekend_days) | set(holiday_days))
    return [
        WeekendHolidayWork(
            employee_id=key.employee_id,
            employee_name=key.employee_name,
            weekend_days=weekend_days[key],
            weekend_work_value=weekend_values[key],
            holiday_days=holiday_days[key],
            holiday_work_value=holiday_values[key],
        )
        for key in keys
    ]


def shift_patterns(records: Iterable[DayRecord]) -> list[ShiftPattern]:
    by_employee: dict[EmployeeKey, list[DayRecord]] = defaultdict(list)
    for record in records:
        by_employee[record.key].append(record)

    patterns: list[ShiftPattern] = []
    for key in sorted(by_employee):
        work_streak = rest_streak = max_work = max_rest = changes = 0
        last_category: ShiftCategory | None = None
        for record in sorted(by_employee[key], key=attrgetter("day_date")):
            if record.is_work_day:
                work_streak += 1
                rest_streak = 0
            else:
                rest_streak += 1
                work_streak = 0
            max_work = max(max_work, work_streak)
            max_rest = max(max_rest, rest_streak)
            if last_category is not None and last_category != record.category:
                changes += 1
            last_category = record.category
        patterns.append(
            ShiftPattern(
                employee_id=key.employee_id,
                employee_name=key.employee_name,
                max_consecutive_work=max_work,
                max_consecutive_rest=max_rest,
                category_changes=changes,
            )
        )
    return patterns


def career_spans(summaries: Iterable[EmployeeSummary], limit: int | None = None) -> list[CareerSpan]:
    spans = [
        CareerSpan(
            employee_id=summary.employee_id,
            employee_name=summary.employee_name,
            first_date=summary.career_first_date,
            last_date=summary.career_last_date,
            span_days=summary.career_span_days,
            span_years=Fraction(summary.career_span_days) / DAYS_PER_YEAR,
            total_days_on_record=summary.total_days_on_record,
            fulfilled_work_value=summary.total_fulfilled_work_value,
        )
        for summary in summaries
    ]
    spans.sort(key=lambda item: (-item.span_days, item.employee_id, item.employee_name))
    if limit is not None:
        spans = spans[: max(0, limit)]
    return spans


def dataset_overview(ledger: Ledger) -> DatasetOverview:
    records: Sequence[DayRecord] = ledger.records
    date_range = ledger.date_range
    return DatasetOverview(
        total_records=len(records),
        unique_employees=len({record.key for record in records}),
        months=len(ledger.months),
        total_work_value=sum((record.work_value for record in records), Fraction(0)),
        first_date=date_range[0] if date_range else None,
        last_date=date_range[1] if date_range else None,
        unknown_code_records=sum(1 for record in records if record.is_unknown),
        work_patterns=work_patterns(records),
    )

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from fractions import Fraction
from types import MappingProxyType
from typing import Iterable, Mapping, Sequence

from shiftbank.services.monthly_calc import MonthlyAggregate
from shiftbank.services.normalizer import EmployeeKey, YearMonth

logger = logging.getLogger("shiftbank.summary")


class OrderingError(ValueError):
    """Monthly aggregates were not handed over in strict chronological order."""


@dataclass(frozen=True, slots=True)
class YearTotals:
    year: int
    months: int
    total_days_on_record: int
    legal_holiday_days_on_record: int
    legal_workday_count: int
    fulfilled_work_value: Fraction
    balance: Fraction


@dataclass(frozen=True)
class EmployeeSummary:
    employee_id: int
    employee_name: str
    initial_offset: Fraction
    per_month: Mapping[YearMonth, MonthlyAggregate]
    per_year: Mapping[int, YearTotals]
    running_balances: Mapping[YearMonth, Fraction]
    cumulative_balance: Fraction
    career_first_date: date
    career_last_date: date
    total_days_on_record: int = 0
    total_legal_workdays: int = 0
    total_fulfilled_work_value: Fraction = field(default_factory=Fraction)
    total_balance: Fraction = field(default_factory=Fraction)

    @property
    def key(self) -> EmployeeKey:
        return EmployeeKey(self.employee_id, self.employee_name)

    @property
    def months_on_record(self) -> int:
        return len(self.per_month)

    @property
    def years_active(self) -> list[int]:
        return sorted(self.per_year)

    @property
    def career_span_days(self) -> int:
        return (self.career_last_date - self.career_first_date).days

    def cumulative_through(self, period: YearMonth) -> Fraction:
        """Cumulative balance after ``period``, inclusive.

        Months after the last one on record keep the final value; months before
        the first return the initial offset.
        """
        result = self.initial_offset
        for year_month, running in self.running_balances.items():
            if year_month > period:
                break
            result = running
        return result

    def average_balance_per_month(self) -> Fraction:
        if not self.per_month:
            return Fraction(0)
        return self.total_balance / len(self.per_month)

    def average_fulfilled_per_month(self) -> Fraction:
        if not self.per_month:
            return Fraction(0)
        return self.total_fulfilled_work_value / len(self.per_month)


def _check_order(employee: EmployeeKey, monthly_aggregates: Sequence[MonthlyAggregate]) -> None:
    previous: YearMonth | None = None
    for aggregate in monthly_aggregates:
        if aggregate.key != employee:
            raise OrderingError(f"Aggregate for {aggregate.key} passed while building {employee}")
        if previous is not None and aggregate.year_month <= previous:
            raise OrderingError(
                f"Monthly aggregates for {employee.employee_name} must be strictly ascending: "
                f"{aggregate.year_month} follows {previous}"
            )
        previous = aggregate.year_month


def build_employee_summary(
    employee: EmployeeKey,
    monthly_aggregates: Sequence[MonthlyAggregate],
    initial_offset: Fraction | int = 0,
) -> EmployeeSummary | None:
    """Fold one employee's months, oldest first, into an EmployeeSummary.

    ``monthly_aggregates`` must already be in ascending month order; the
    precondition is checked and a violation raises ``OrderingError``.
    """
    _check_order(employee, monthly_aggregates)
    if not monthly_aggregates:
        return None

    offset = Fraction(initial_offset)
    per_month: dict[YearMonth, MonthlyAggregate] = {}
    running_balances: dict[YearMonth, Fraction] = {}
    year_buckets: dict[int, list[MonthlyAggregate]] = defaultdict(list)
    cumulative = offset
    total_days = 0
    total_legal = 0
    total_fulfilled = Fraction(0)
    total_balance = Fraction(0)

    for aggregate in monthly_aggregates:
        cumulative += aggregate.balance
        per_month[aggregate.year_month] = aggregate
        running_balances[aggregate.year_month] = cumulative
        year_buckets[aggregate.year].append(aggregate)
        total_days += aggregate.total_days_on_record
        total_legal += aggregate.legal_workday_count
        total_fulfilled += aggregate.fulfilled_work_value
        total_balance += aggregate.balance

    per_year = {
        year: YearTotals(
            year=year,
            months=len(items),
            total_days_on_record=sum(item.total_days_on_record for item in items),
            legal_holiday_days_on_record=sum(item.legal_holiday_days_on_record for item in items),
            legal_workday_count=sum(item.legal_workday_count for item in items),
            fulfilled_work_value=sum((item.fulfilled_work_value for item in items), Fraction(0)),
            balance=sum((item.balance for item in items), Fraction(0)),
        )
        for year, items in year_buckets.items()
    }

    return EmployeeSummary(
        employee_id=employee.employee_id,
        employee_name=employee.employee_name,
        initial_offset=offset,
        per_month=MappingProxyType(per_month),
        per_year=MappingProxyType(per_year),
        running_balances=MappingProxyType(running_balances),
        cumulative_balance=cumulative,
        career_first_date=min(item.first_date for item in monthly_aggregates),
        career_last_date=max(item.last_date for item in monthly_aggregates),
        total_days_on_record=total_days,
        total_legal_workdays=total_legal,
        total_fulfilled_work_value=total_fulfilled,
        total_balance=total_balance,
    )


def resolve_initial_offset(offsets: Mapping[str, Fraction] | None, employee_name: str) -> Fraction:
    # Offsets are joined by display name; two employees sharing a name share the seed.
    if not offsets:
        return Fraction(0)
    return Fraction(offsets.get(employee_name, 0))


def build_employee_summaries(
    monthly_aggregates: Iterable[MonthlyAggregate],
    offsets: Mapping[str, Fraction] | None = None,
) -> list[EmployeeSummary]:
    grouped: dict[EmployeeKey, list[MonthlyAggregate]] = defaultdict(list)
    for aggregate in monthly_aggregates:
        grouped[aggregate.key].append(aggregate)

    ids_by_name: dict[str, set[int]] = defaultdict(set)
    summaries: list[EmployeeSummary] = []
    for employee in sorted(grouped):
        items = sorted(grouped[employee], key=lambda item: item.year_month)
        summary = build_employee_summary(
            employee,
            items,
            initial_offset=resolve_initial_offset(offsets, employee.employee_name),
        )
        if summary is not None:
            summaries.append(summary)
            ids_by_name[employee.employee_name].add(employee.employee_id)

    shared_names = sorted(name for name, ids in ids_by_name.items() if len(ids) > 1)
    if shared_names and offsets:
        logger.warning("initial_offset_name_shared_by_ids", extra={"employee_names": shared_names})
    return summaries

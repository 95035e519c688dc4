from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from fractions import Fraction
from typing import Iterable, Mapping, Sequence

from shiftbank.services.adjacency import adjust_records
from shiftbank.services.monthly_calc import MonthlyAggregate, aggregate_months, aggregates_for_month
from shiftbank.services.normalizer import (
    DayRecord,
    EmployeeKey,
    RosterParseResult,
    YearMonth,
    normalize_roster,
)
from shiftbank.services.shift_codes import ShiftTable, default_shift_table
from shiftbank.services.summary import EmployeeSummary, build_employee_summaries

logger = logging.getLogger("shiftbank.ledger")


@dataclass(frozen=True)
class RosterSheet:
    year_month: YearMonth
    rows: Sequence[Sequence[str]]
    source_name: str | None = None


@dataclass(frozen=True)
class Ledger:
    records: tuple[DayRecord, ...] = ()
    monthly: tuple[MonthlyAggregate, ...] = ()
    summaries: tuple[EmployeeSummary, ...] = ()
    parse_results: tuple[RosterParseResult, ...] = field(default=())

    @property
    def employee_count(self) -> int:
        return len(self.summaries)

    @property
    def months(self) -> list[YearMonth]:
        return sorted({aggregate.year_month for aggregate in self.monthly})

    @property
    def date_range(self) -> tuple[date, date] | None:
        if not self.records:
            return None
        return (
            min(record.day_date for record in self.records),
            max(record.day_date for record in self.records),
        )

    def monthly_for(self, year: int, month: int) -> list[MonthlyAggregate]:
        return aggregates_for_month(self.monthly, year, month)

    def summary_for(self, employee: EmployeeKey) -> EmployeeSummary | None:
        for summary in self.summaries:
            if summary.key == employee:
                return summary
        return None

    def summaries_for_id(self, employee_id: int) -> list[EmployeeSummary]:
        return [summary for summary in self.summaries if summary.employee_id == employee_id]


def build_ledger_from_records(
    records: Iterable[DayRecord],
    *,
    offsets: Mapping[str, Fraction] | None = None,
    parse_results: Sequence[RosterParseResult] = (),
) -> Ledger:
    """Run adjust-all, aggregate and summarise over already normalized records."""
    adjusted = adjust_records(records)
    monthly = aggregate_months(adjusted)
    summaries = build_employee_summaries(monthly, offsets)
    return Ledger(
        records=tuple(adjusted),
        monthly=tuple(monthly),
        summaries=tuple(summaries),
        parse_results=tuple(parse_results),
    )


def build_ledger(
    sheets: Iterable[RosterSheet],
    *,
    offsets: Mapping[str, Fraction] | None = None,
    table: ShiftTable | None = None,
) -> Ledger:
    """Normalize every sheet first, then adjust the combined stream.

    The handoff lookback needs every month present before it runs, so the two
    passes are never interleaved per sheet.
    """
    shift_table = table or default_shift_table()
    ordered_sheets = sorted(sheets, key=lambda sheet: sheet.year_month)
    seen: set[YearMonth] = set()
    for sheet in ordered_sheets:
        if sheet.year_month in seen:
            raise ValueError(f"More than one roster sheet for {sheet.year_month}")
        seen.add(sheet.year_month)

    parse_results: list[RosterParseResult] = []
    normalized: list[DayRecord] = []
    for sheet in ordered_sheets:
        result = normalize_roster(
            sheet.rows,
            year=sheet.year_month.year,
            month=sheet.year_month.month,
            table=shift_table,
        )
        parse_results.append(result)
        normalized.extend(result.records)

    ledger = build_ledger_from_records(normalized, offsets=offsets, parse_results=parse_results)
    logger.info(
        "ledger_built",
        extra={
            "sheets": len(parse_results),
            "records": len(ledger.records),
            "employees": ledger.employee_count,
            "months": len(ledger.months),
        },
    )
    return ledger

from datetime import date
from fractions import Fraction
import unittest

from shiftbank.services.adjacency import adjust_records
from shiftbank.services.monthly_calc import MonthlyAggregate, aggregate_months
from shiftbank.services.normalizer import DayRecord, EmployeeKey, YearMonth, normalize
from shiftbank.services.summary import (
    EmployeeSummary,
    OrderingError,
    build_employee_summaries,
    build_employee_summary,
    resolve_initial_offset,
)

ALICE = EmployeeKey(1, "Alice")


def _record(code: str, day_value: date, *, employee: EmployeeKey = ALICE, holiday: bool = False) -> DayRecord:
    record = normalize(
        code,
        employee=employee,
        year=day_value.year,
        month=day_value.month,
        day=day_value.day,
        weekday_text="",
        is_holiday=holiday,
    )
    assert record is not None
    return record


def _three_months(employee: EmployeeKey = ALICE) -> list[MonthlyAggregate]:
    # Balances +0.5, -1 and +2, spanning a year boundary.
    records = [
        _record("半", date(2023, 12, 25), employee=employee, holiday=True),
        _record("休", date(2024, 1, 3), employee=employee),
        _record("白", date(2024, 2, 10), employee=employee, holiday=True),
        _record("白", date(2024, 2, 11), employee=employee, holiday=True),
    ]
    return aggregate_months(adjust_records(records))


class EmployeeSummaryTests(unittest.TestCase):
    def test_cumulative_fold_with_initial_offset(self) -> None:
        aggregates = _three_months()
        self.assertEqual([item.balance for item in aggregates], [Fraction(1, 2), Fraction(-1), Fraction(2)])

        summary = build_employee_summary(ALICE, aggregates, initial_offset=2)

        assert summary is not None
        self.assertEqual(
            list(summary.running_balances.values()),
            [Fraction(5, 2), Fraction(3, 2), Fraction(7, 2)],
        )
        self.assertEqual(summary.cumulative_balance, Fraction(7, 2))
        self.assertEqual(summary.total_balance, Fraction(3, 2))
        self.assertEqual(summary.initial_offset, Fraction(2))

    def test_monthly_averages(self) -> None:
        summary = build_employee_summary(ALICE, _three_months())

        assert summary is not None
        self.assertEqual(summary.average_balance_per_month(), Fraction(1, 2))
        self.assertEqual(summary.average_fulfilled_per_month(), Fraction(5, 6))

    def test_monthly_averages_without_months_are_zero(self) -> None:
        summary = EmployeeSummary(
            employee_id=1,
            employee_name="Alice",
            initial_offset=Fraction(3),
            per_month={},
            per_year={},
            running_balances={},
            cumulative_balance=Fraction(3),
            career_first_date=date(2024, 1, 1),
            career_last_date=date(2024, 1, 1),
        )

        self.assertEqual(summary.average_balance_per_month(), Fraction(0))
        self.assertEqual(summary.average_fulfilled_per_month(), Fraction(0))

    def test_per_year_totals_are_sums_of_months(self) -> None:
        summary = build_employee_summary(ALICE, _three_months())

        assert summary is not None
        self.assertEqual(summary.years_active, [2023, 2024])
        self.assertEqual(summary.per_year[2023].balance, Fraction(1, 2))
        self.assertEqual(summary.per_year[2024].balance, Fraction(1))
        self.assertEqual(summary.per_year[2024].months, 2)
        self.assertEqual(summary.per_year[2024].legal_workday_count, 1)
        self.assertEqual(summary.per_year[2024].fulfilled_work_value, Fraction(2))

    def test_career_dates_and_month_order(self) -> None:
        summary = build_employee_summary(ALICE, _three_months())

        assert summary is not None
        self.assertEqual(summary.career_first_date, date(2023, 12, 25))
        self.assertEqual(summary.career_last_date, date(2024, 2, 11))
        self.assertEqual(
            list(summary.per_month),
            [YearMonth(2023, 12), YearMonth(2024, 1), YearMonth(2024, 2)],
        )
        self.assertEqual(summary.months_on_record, 3)

    def test_cumulative_through(self) -> None:
        summary = build_employee_summary(ALICE, _three_months(), initial_offset=2)

        assert summary is not None
        self.assertEqual(summary.cumulative_through(YearMonth(2023, 11)), Fraction(2))
        self.assertEqual(summary.cumulative_through(YearMonth(2024, 1)), Fraction(3, 2))
        self.assertEqual(summary.cumulative_through(YearMonth(2025, 1)), Fraction(7, 2))

    def test_out_of_order_months_rejected(self) -> None:
        aggregates = _three_months()

        with self.assertRaises(OrderingError):
            build_employee_summary(ALICE, [aggregates[1], aggregates[0], aggregates[2]])

        with self.assertRaises(OrderingError):
            build_employee_summary(ALICE, [aggregates[0], aggregates[0]])

    def test_aggregate_for_other_employee_rejected(self) -> None:
        with self.assertRaises(OrderingError):
            build_employee_summary(EmployeeKey(9, "Zed"), _three_months())

    def test_no_months_means_no_summary(self) -> None:
        self.assertIsNone(build_employee_summary(ALICE, []))


class EmployeeSummariesTests(unittest.TestCase):
    def test_offsets_join_by_name(self) -> None:
        aggregates = _three_months() + _three_months(EmployeeKey(2, "Bob"))

        summaries = build_employee_summaries(aggregates, {"Alice": Fraction(2)})

        by_name = {summary.employee_name: summary for summary in summaries}
        self.assertEqual(by_name["Alice"].cumulative_balance, Fraction(7, 2))
        self.assertEqual(by_name["Bob"].cumulative_balance, Fraction(3, 2))

    def test_shared_name_warns_and_shares_offset(self) -> None:
        aggregates = _three_months() + _three_months(EmployeeKey(7, "Alice"))

        with self.assertLogs("shiftbank.summary", level="WARNING"):
            summaries = build_employee_summaries(aggregates, {"Alice": Fraction(1)})

        self.assertEqual(len(summaries), 2)
        self.assertTrue(all(summary.initial_offset == Fraction(1) for summary in summaries))

    def test_missing_offset_defaults_to_zero(self) -> None:
        self.assertEqual(resolve_initial_offset(None, "Alice"), Fraction(0))
        self.assertEqual(resolve_initial_offset({"Bob": Fraction(3)}, "Alice"), Fraction(0))


if __name__ == "__main__":
    unittest.main()

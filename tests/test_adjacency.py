from datetime import date, timedelta
from fractions import Fraction
import unittest

from shiftbank.services.adjacency import (
    FLAG_HANDOFF_AFTER_SMALL_NIGHT,
    FLAG_HOLIDAY_CONDITIONED,
    adjust_employee_records,
    adjust_records,
    is_handoff_after_small_night,
)
from shiftbank.services.normalizer import DayRecord, EmployeeKey, normalize

ALICE = EmployeeKey(1, "Alice")
BOB = EmployeeKey(2, "Bob")


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


def _week(codes: list[str], start: date, *, employee: EmployeeKey = ALICE) -> list[DayRecord]:
    return [_record(code, start + timedelta(days=index), employee=employee) for index, code in enumerate(codes)]


class HandoffRuleTests(unittest.TestCase):
    def test_handoff_after_small_night_is_half(self) -> None:
        records = _week(["白", "白", "白", "白", "小", "下"], date(2024, 3, 1))

        adjusted = adjust_employee_records(records)

        self.assertEqual(adjusted[4].work_value, Fraction(1))
        self.assertEqual(adjusted[5].work_value, Fraction(1, 2))
        self.assertIn(FLAG_HANDOFF_AFTER_SMALL_NIGHT, adjusted[5].flags)
        self.assertEqual(adjusted[5].base_work_value, Fraction(1))

    def test_handoff_without_small_night_keeps_base_value(self) -> None:
        adjusted = adjust_employee_records(_week(["大", "下"], date(2024, 3, 1)))

        self.assertEqual(adjusted[1].work_value, Fraction(1))
        self.assertEqual(adjusted[1].flags, ())

    def test_handoff_needs_consecutive_days(self) -> None:
        records = [_record("小", date(2024, 3, 1)), _record("下", date(2024, 3, 3))]

        adjusted = adjust_employee_records(records)

        self.assertEqual(adjusted[1].work_value, Fraction(1))

    def test_handoff_does_not_cross_month_boundary(self) -> None:
        records = [_record("小", date(2024, 1, 31)), _record("下", date(2024, 2, 1))]

        adjusted = adjust_employee_records(records)

        self.assertEqual(adjusted[1].work_value, Fraction(1))
        self.assertFalse(is_handoff_after_small_night(records[0], records[1]))

    def test_input_order_does_not_matter(self) -> None:
        records = _week(["小", "下"], date(2024, 3, 10))

        adjusted = adjust_employee_records(list(reversed(records)))

        self.assertEqual([record.day_date.day for record in adjusted], [10, 11])
        self.assertEqual(adjusted[1].work_value, Fraction(1, 2))

    def test_previous_is_other_employees_record_is_ignored(self) -> None:
        records = [
            _record("小", date(2024, 3, 1), employee=BOB),
            _record("下", date(2024, 3, 2), employee=ALICE),
        ]

        adjusted = adjust_records(records)

        alice = [record for record in adjusted if record.key == ALICE]
        self.assertEqual(alice[0].work_value, Fraction(1))


class HolidayRuleTests(unittest.TestCase):
    def test_leave_and_support_depend_on_holiday_flag(self) -> None:
        for code in ("病假", "产假", "婚假", "群力", "ICU"):
            on_holiday = adjust_employee_records([_record(code, date(2024, 5, 1), holiday=True)])[0]
            on_workday = adjust_employee_records([_record(code, date(2024, 5, 2), holiday=False)])[0]

            self.assertEqual(on_holiday.work_value, Fraction(0), code)
            self.assertEqual(on_workday.work_value, Fraction(1), code)
            self.assertIn(FLAG_HOLIDAY_CONDITIONED, on_workday.flags)

    def test_other_codes_ignore_holiday_flag(self) -> None:
        adjusted = adjust_employee_records(
            [_record("白", date(2024, 5, 1), holiday=True), _record("休", date(2024, 5, 2), holiday=False)]
        )

        self.assertEqual(adjusted[0].work_value, Fraction(1))
        self.assertEqual(adjusted[1].work_value, Fraction(0))


class AdjustmentContractTests(unittest.TestCase):
    def test_pass_is_idempotent(self) -> None:
        records = _week(["小", "下", "病假", "白", "小", "下", "休"], date(2024, 6, 3))
        records.append(_record("群力", date(2024, 6, 10), holiday=True))

        once = adjust_records(records)
        twice = adjust_records(once)

        self.assertEqual(once, twice)

    def test_mixed_employees_rejected(self) -> None:
        records = [_record("白", date(2024, 3, 1)), _record("白", date(2024, 3, 2), employee=BOB)]

        with self.assertRaises(ValueError):
            adjust_employee_records(records)

    def test_duplicate_date_rejected(self) -> None:
        with self.assertRaises(ValueError):
            adjust_employee_records([_record("白", date(2024, 3, 1)), _record("休", date(2024, 3, 1))])

    def test_stream_is_sorted_by_date_then_employee(self) -> None:
        records = [
            _record("白", date(2024, 3, 2), employee=BOB),
            _record("白", date(2024, 3, 1), employee=BOB),
            _record("白", date(2024, 3, 1), employee=ALICE),
        ]

        adjusted = adjust_records(records)

        self.assertEqual(
            [(record.day_date.day, record.employee_name) for record in adjusted],
            [(1, "Alice"), (1, "Bob"), (2, "Bob")],
        )


if __name__ == "__main__":
    unittest.main()

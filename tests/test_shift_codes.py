from fractions import Fraction
import unittest

from shiftbank.services.shift_codes import (
    ShiftCategory,
    ShiftDefinition,
    ShiftTable,
    KnownShift,
    UnknownShift,
    build_shift_table,
    classify,
    default_shift_table,
    is_on_duty,
)


class ShiftCodeTests(unittest.TestCase):
    def test_core_codes_have_expected_values(self) -> None:
        table = default_shift_table()
        expected = {
            "休": (Fraction(0), ShiftCategory.REST),
            "小": (Fraction(1), ShiftCategory.NIGHT_SMALL),
            "大": (Fraction(1), ShiftCategory.NIGHT_BIG),
            "夜": (Fraction(1), ShiftCategory.NIGHT_WHOLE),
            "白": (Fraction(1), ShiftCategory.DAY),
            "半": (Fraction(1, 2), ShiftCategory.DAY_HALF),
            "下": (Fraction(1), ShiftCategory.NIGHT_HANDOFF),
            "病假": (Fraction(0), ShiftCategory.SICK_LEAVE),
            "产假": (Fraction(0), ShiftCategory.MATERNITY_LEAVE),
            "公休日": (Fraction(0), ShiftCategory.LEGAL_HOLIDAY_MARKER),
            "群力": (Fraction(0), ShiftCategory.SUPPORT_GROUP_WORK),
            "哺乳休": (Fraction(1, 4), ShiftCategory.NURSING_REST),
        }
        for code, (value, category) in expected.items():
            result = table.classify(code)
            self.assertIsInstance(result, KnownShift, code)
            self.assertEqual(result.work_value, value, code)
            self.assertEqual(result.category, category, code)

    def test_unknown_code_is_tagged_not_raised(self) -> None:
        result = classify("XYZ")

        self.assertIsInstance(result, UnknownShift)
        self.assertEqual(result.category, ShiftCategory.UNKNOWN)
        self.assertEqual(result.work_value, Fraction(0))
        self.assertEqual(result.description, "Unknown shift type: XYZ")

    def test_codes_are_matched_after_trimming(self) -> None:
        result = classify("  白 ")

        self.assertIsInstance(result, KnownShift)
        self.assertEqual(result.code, "白")
        self.assertIn(" 小", default_shift_table())

    def test_nursing_half_value_is_configurable(self) -> None:
        self.assertEqual(default_shift_table().classify("哺乳半").work_value, Fraction(1, 2))

        table = build_shift_table(nursing_half_value=Fraction(3, 4))
        self.assertEqual(table.classify("哺乳半").work_value, Fraction(3, 4))
        self.assertEqual(default_shift_table().classify("哺乳半").work_value, Fraction(1, 2))

    def test_every_value_is_a_quarter_step(self) -> None:
        for definition in default_shift_table().definitions.values():
            self.assertIn(definition.work_value * 4, {0, 1, 2, 3, 4}, definition.code)

    def test_table_rejects_duplicate_codes_and_invalid_values(self) -> None:
        rest = ShiftDefinition(code="休", work_value=Fraction(0), category=ShiftCategory.REST, description="Rest")
        with self.assertRaises(ValueError):
            ShiftTable([rest, rest])

        odd = ShiftDefinition(code="X", work_value=Fraction(1, 3), category=ShiftCategory.DAY, description="Odd")
        with self.assertRaises(ValueError):
            ShiftTable([odd])

    def test_on_duty_categories(self) -> None:
        self.assertTrue(is_on_duty(ShiftCategory.NIGHT_HANDOFF))
        self.assertTrue(is_on_duty(ShiftCategory.SUPPORT_ICU))
        self.assertTrue(is_on_duty(ShiftCategory.NURSING_REST))
        self.assertFalse(is_on_duty(ShiftCategory.REST))
        self.assertFalse(is_on_duty(ShiftCategory.SICK_LEAVE))
        self.assertFalse(is_on_duty(ShiftCategory.LEGAL_HOLIDAY_MARKER))
        self.assertFalse(is_on_duty(ShiftCategory.UNKNOWN))


if __name__ == "__main__":
    unittest.main()

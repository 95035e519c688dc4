import os
import unittest
from fractions import Fraction
from unittest.mock import patch

from pydantic import ValidationError

from shiftbank.settings import Settings, get_nursing_half_value, get_settings


class SettingsTests(unittest.TestCase):
    def tearDown(self) -> None:
        get_settings.cache_clear()

    def test_nursing_half_value_accepts_known_generations(self) -> None:
        self.assertEqual(Settings(nursing_half_work_value=0.75).nursing_half_work_value, 0.75)
        self.assertEqual(Settings().nursing_half_work_value, 0.5)

    def test_nursing_half_value_rejects_other_values(self) -> None:
        for value in (0.6, 1.0, 0.0):
            with self.assertRaises(ValidationError, msg=str(value)):
                Settings(nursing_half_work_value=value)

    def test_nursing_half_value_from_environment(self) -> None:
        get_settings.cache_clear()
        with patch.dict(os.environ, {"NURSING_HALF_WORK_VALUE": "0.75"}):
            self.assertEqual(get_nursing_half_value(), Fraction(3, 4))

        get_settings.cache_clear()
        with patch.dict(os.environ, {"NURSING_HALF_WORK_VALUE": "0.6"}):
            with self.assertRaises(ValidationError):
                get_settings()


if __name__ == "__main__":
    unittest.main()

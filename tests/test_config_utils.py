from __future__ import annotations

import os
import unittest
from unittest.mock import patch

from config_utils import (
    read_bool_env,
    read_float_env,
    read_int_env,
    read_language_env,
    read_str_env,
    read_threshold_map_env,
)


class ConfigUtilsTests(unittest.TestCase):
    def test_numeric_values_fall_back_when_invalid_or_non_positive(self) -> None:
        with patch.dict(os.environ, {"A": "2.5", "B": "abc", "C": "-1", "D": "7"}):
            self.assertEqual(read_float_env("A", 1.0), 2.5)
            self.assertEqual(read_float_env("B", 1.0), 1.0)
            self.assertEqual(read_float_env("C", 1.0), 1.0)
            self.assertEqual(read_int_env("D", 3), 7)
            self.assertEqual(read_int_env("A", 3), 3)

    def test_zero_is_accepted_only_when_allowed(self) -> None:
        with patch.dict(os.environ, {"ZERO_F": "0", "ZERO_I": "0"}):
            self.assertEqual(read_float_env("ZERO_F", 0.5), 0.5)
            self.assertEqual(read_float_env("ZERO_F", 0.5, allow_zero=True), 0.0)
            self.assertEqual(read_int_env("ZERO_I", 3), 3)
            self.assertEqual(read_int_env("ZERO_I", 3, allow_zero=True), 0)

    def test_bool_values(self) -> None:
        with patch.dict(os.environ, {"ON": "yes", "OFF": "0", "ODD": "maybe"}):
            self.assertTrue(read_bool_env("ON", False))
            self.assertFalse(read_bool_env("OFF", True))
            self.assertTrue(read_bool_env("ODD", True))

    def test_strings_and_languages(self) -> None:
        with patch.dict(os.environ, {"BLANK": "  ", "MODEL": " gpt-x ", "LANG": "es-ES"}):
            self.assertIsNone(read_str_env("BLANK"))
            self.assertEqual(read_str_env("MODEL", "fallback"), "gpt-x")
            self.assertEqual(read_language_env("LANG", "en"), "es")
            self.assertEqual(read_language_env("BLANK", "en"), "en")

    def test_threshold_map_merges_valid_entries(self) -> None:
        with patch.dict(os.environ, {"GATE": "it=0.6, FR=0.8,de=1.5,bogus,pt=x"}):
            merged = read_threshold_map_env("GATE", {"en": 0.75, "it": 0.75})
        self.assertEqual(merged, {"en": 0.75, "it": 0.6, "fr": 0.8})


if __name__ == "__main__":
    unittest.main()

import unittest
from datetime import time

from agenda.shared.validators import parse_duration_minutes, parse_wall_clock_time


class DurationParsingTests(unittest.TestCase):
    def test_accepts_numbers_and_numeric_strings(self) -> None:
        self.assertEqual(parse_duration_minutes(60), 60)
        self.assertEqual(parse_duration_minutes("45"), 45)
        self.assertEqual(parse_duration_minutes(" 90 min "), 90)
        self.assertEqual(parse_duration_minutes("30minutes"), 30)
        self.assertEqual(parse_duration_minutes(30.0), 30)

    def test_rejects_unreadable_values(self) -> None:
        for value in (None, "", "abc", "-5", -5, True, [60]):
            with self.subTest(value=value):
                self.assertIsNone(parse_duration_minutes(value))


class WallClockTimeTests(unittest.TestCase):
    def test_24h_formats(self) -> None:
        self.assertEqual(parse_wall_clock_time("09:00"), time(9, 0))
        self.assertEqual(parse_wall_clock_time("17:45:30"), time(17, 45))

    def test_12h_format(self) -> None:
        self.assertEqual(parse_wall_clock_time("2:30 PM"), time(14, 30))
        self.assertEqual(parse_wall_clock_time("12:00am"), time(0, 0))

    def test_time_objects_are_normalized(self) -> None:
        self.assertEqual(parse_wall_clock_time(time(8, 15, 59)), time(8, 15))

    def test_invalid_times_raise(self) -> None:
        for value in ("", "25:00", "noon", "9", None):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    parse_wall_clock_time(value)


if __name__ == "__main__":
    unittest.main()

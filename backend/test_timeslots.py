"""
Unit tests for time-of-day arithmetic
"""

import unittest

from errors import EndTimeOverflowError
from timeslots import end_time, format_time, normalize_time, overlaps, parse_duration, to_minutes


class TestTimeslots(unittest.TestCase):

    def test_to_minutes_accepts_seconds_and_h_separator(self):
        self.assertEqual(to_minutes("09:30"), 570)
        self.assertEqual(to_minutes("09:30:00"), 570)
        self.assertEqual(to_minutes("9h30"), 570)

    def test_to_minutes_rejects_garbage(self):
        for bad in ("", None, "25:00", "10:60", "ten"):
            with self.assertRaises(ValueError):
                to_minutes(bad)

    def test_normalize_time(self):
        self.assertEqual(normalize_time("8:00"), "08:00")
        self.assertEqual(normalize_time("14:00:00"), "14:00")
        self.assertIsNone(normalize_time("amanhã"))

    def test_format_time(self):
        self.assertEqual(format_time(615), "10:15:00")
        self.assertEqual(format_time(615, seconds=False), "10:15")

    def test_end_time_adds_duration_with_hour_rollover(self):
        self.assertEqual(end_time("09:00", 60), "10:00:00")
        self.assertEqual(end_time("09:45", 30), "10:15:00")
        self.assertEqual(end_time("10:30", 150), "13:00:00")

    def test_end_time_past_midnight_is_rejected(self):
        with self.assertRaises(EndTimeOverflowError):
            end_time("23:30", 45)

    def test_end_time_past_midnight_wraps_when_allowed(self):
        self.assertEqual(end_time("23:30", 45, allow_rollover=True), "00:15:00")

    def test_end_time_requires_positive_duration(self):
        with self.assertRaises(ValueError):
            end_time("10:00", 0)

    def test_overlaps_is_half_open(self):
        self.assertTrue(overlaps(540, 600, 570, 630))
        self.assertFalse(overlaps(540, 600, 600, 660))
        self.assertFalse(overlaps(600, 660, 540, 600))
        self.assertTrue(overlaps(540, 660, 570, 600))

    def test_parse_duration(self):
        self.assertEqual(parse_duration(45), 45)
        self.assertEqual(parse_duration(" 90 "), 90)
        for bad in (None, "", "abc", "4.5", 0, -10):
            self.assertIsNone(parse_duration(bad))


if __name__ == '__main__':
    unittest.main(verbosity=2)

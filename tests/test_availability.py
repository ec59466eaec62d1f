import unittest
from datetime import date, time
from types import SimpleNamespace

from agenda.domain.scheduling.availability import available_slots, generate_time_slots

MONDAY = date(2024, 6, 10)
SATURDAY = date(2024, 6, 15)


def booked(at, duration):
    return SimpleNamespace(id=str(at), date=MONDAY, time=at, service_details=SimpleNamespace(duration=duration))


class AvailabilityTests(unittest.TestCase):
    def test_slots_fit_before_closing(self) -> None:
        slots = generate_time_slots(time(9, 0), time(11, 0), 60)

        self.assertEqual(slots, [time(9, 0), time(9, 30), time(10, 0)])

    def test_booked_time_is_removed(self) -> None:
        existing = [booked(time(10, 0), 60)]

        slots = available_slots(MONDAY, existing, 60)

        self.assertIn("09:00", slots)
        self.assertNotIn("09:30", slots)
        self.assertNotIn("10:00", slots)
        self.assertNotIn("10:30", slots)
        self.assertIn("11:00", slots)
        self.assertEqual(slots[-1], "17:00")

    def test_disabled_day_has_no_slots(self) -> None:
        self.assertEqual(available_slots(SATURDAY, [], 30), [])

    def test_custom_business_hours(self) -> None:
        hours = {day: {"start": "08:00", "end": "09:00", "enabled": True} for day in (
            "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"
        )}

        self.assertEqual(available_slots(SATURDAY, [], 30, business_hours=hours, interval_minutes=15),
                         ["08:00", "08:15", "08:30"])

    def test_interval_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            available_slots(MONDAY, [], 30, interval_minutes=0)


if __name__ == "__main__":
    unittest.main()

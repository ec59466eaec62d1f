import unittest
from datetime import date, time
from types import SimpleNamespace

from agenda.domain.scheduling.overlap import (
    SlotCandidate,
    find_conflicts,
    has_conflict,
    intervals_overlap,
)

DAY = date(2024, 6, 10)


def booked(appointment_id, at, duration, day=DAY):
    service = SimpleNamespace(duration=duration) if duration is not None else None
    return SimpleNamespace(id=appointment_id, date=day, time=at, service_details=service)


def candidate_for(appointment):
    return SlotCandidate(appointment.date, appointment.time, int(appointment.service_details.duration))


class OverlapCheckerTests(unittest.TestCase):
    def test_overlapping_start_conflicts(self) -> None:
        existing = [booked("a", time(9, 0), 60)]

        self.assertTrue(has_conflict(SlotCandidate(DAY, time(9, 30), 30), existing))

    def test_adjacent_appointments_do_not_conflict(self) -> None:
        existing = [booked("a", time(9, 0), 60)]

        self.assertFalse(has_conflict(SlotCandidate(DAY, time(10, 0), 60), existing))
        self.assertFalse(has_conflict(SlotCandidate(DAY, time(8, 0), 60), existing))

    def test_candidate_spanning_existing_conflicts(self) -> None:
        existing = [booked("a", time(10, 0), 15)]

        self.assertTrue(has_conflict(SlotCandidate(DAY, time(9, 0), 120), existing))

    def test_conflict_is_symmetric(self) -> None:
        pairs = [
            (booked("a", time(9, 0), 60), booked("b", time(9, 30), 60)),
            (booked("a", time(9, 0), 60), booked("b", time(10, 0), 30)),
            (booked("a", time(9, 0), 180), booked("b", time(10, 0), 15)),
            (booked("a", time(14, 0), 45), booked("b", time(9, 0), 45)),
        ]
        for first, second in pairs:
            with self.subTest(first=first.time, second=second.time):
                self.assertEqual(
                    has_conflict(candidate_for(first), [second]),
                    has_conflict(candidate_for(second), [first]),
                )

    def test_excluded_appointment_is_ignored(self) -> None:
        existing = [booked("a", time(9, 0), 60)]

        self.assertFalse(has_conflict(SlotCandidate(DAY, time(9, 0), 60), existing, exclude_id="a"))
        self.assertTrue(has_conflict(SlotCandidate(DAY, time(9, 0), 60), existing, exclude_id="other"))

    def test_other_dates_are_ignored(self) -> None:
        existing = [booked("a", time(9, 0), 60, day=date(2024, 6, 11))]

        self.assertFalse(has_conflict(SlotCandidate(DAY, time(9, 0), 60), existing))

    def test_missing_service_is_skipped(self) -> None:
        existing = [booked("a", time(9, 0), None), booked("b", time(9, 0), "not a number")]

        self.assertFalse(has_conflict(SlotCandidate(DAY, time(9, 0), 60), existing))

    def test_string_durations_are_parsed(self) -> None:
        existing = [booked("a", time(9, 0), "90")]

        self.assertTrue(has_conflict(SlotCandidate(DAY, time(10, 15), 30), existing))

    def test_string_times_are_accepted(self) -> None:
        existing = [booked("a", "09:00", 60)]

        self.assertTrue(has_conflict(SlotCandidate(DAY, "09:45", 30), existing))

    def test_find_conflicts_returns_every_clash(self) -> None:
        existing = [
            booked("a", time(9, 0), 30),
            booked("b", time(9, 30), 30),
            booked("c", time(11, 0), 30),
        ]

        conflicts = find_conflicts(SlotCandidate(DAY, time(9, 15), 30), existing)

        self.assertEqual([a.id for a in conflicts], ["a", "b"])

    def test_interval_inequality(self) -> None:
        a_start, a_end = date(2024, 1, 1), date(2024, 1, 3)
        self.assertTrue(intervals_overlap(a_start, a_end, date(2024, 1, 2), date(2024, 1, 4)))
        self.assertFalse(intervals_overlap(a_start, a_end, date(2024, 1, 3), date(2024, 1, 4)))


if __name__ == "__main__":
    unittest.main()

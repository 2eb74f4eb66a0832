import unittest
from datetime import date, datetime, time

from medx.models.notification import NotificationKind
from medx.models.preferences import NotificationPreferences
from medx.services.classifier import DoseStatus, classify, dose_events, firing_kinds, minutes_until
from reminder_fakes import med


PREFS = NotificationPreferences(reminderNotifications=True, missedDoseAlerts=True, reminderTiming="15")


class TestMinutesUntil(unittest.TestCase):
    def test_wraps_to_previous_day(self):
        self.assertEqual(minutes_until(time(23, 50), datetime(2024, 3, 2, 0, 5)), -15)

    def test_wraps_to_next_day(self):
        self.assertEqual(minutes_until(time(0, 10), datetime(2024, 3, 1, 23, 55)), 15)

    def test_same_day(self):
        self.assertEqual(minutes_until(time(8, 0), datetime(2024, 3, 1, 7, 50)), 10)
        self.assertEqual(minutes_until(time(8, 0), datetime(2024, 3, 1, 8, 30, 45)), -30)


class TestClassify(unittest.TestCase):
    def test_instant_equal_to_now_fires_reminder(self):
        now = datetime(2024, 3, 1, 8, 0)
        self.assertEqual(classify(time(8, 0), now, 15), DoseStatus.DUE)
        self.assertIn(NotificationKind.REMINDER, firing_kinds(0, PREFS))

    def test_reminder_timing_boundary(self):
        self.assertEqual(classify(time(8, 15), datetime(2024, 3, 1, 8, 0), 15), DoseStatus.UPCOMING)
        self.assertEqual(firing_kinds(15, PREFS), frozenset({NotificationKind.REMINDER}))
        self.assertEqual(classify(time(8, 16), datetime(2024, 3, 1, 8, 0), 15), DoseStatus.INACTIVE)
        self.assertEqual(firing_kinds(16, PREFS), frozenset())

    def test_missed_window_edges(self):
        now = datetime(2024, 3, 1, 9, 0)
        self.assertEqual(classify(time(8, 0), now, 15), DoseStatus.MISSED)
        self.assertEqual(firing_kinds(-60, PREFS), frozenset({NotificationKind.MISSED}))
        self.assertEqual(classify(time(7, 59), now, 15), DoseStatus.INACTIVE)
        self.assertEqual(firing_kinds(-61, PREFS), frozenset())

    def test_taken_is_inactive(self):
        self.assertEqual(classify(time(8, 0), datetime(2024, 3, 1, 8, 0), 15, taken=True), DoseStatus.INACTIVE)

    def test_preferences_gate_kinds(self):
        reminders_only = NotificationPreferences(missedDoseAlerts=False)
        self.assertEqual(firing_kinds(-30, reminders_only), frozenset({NotificationKind.REMINDER}))
        missed_only = NotificationPreferences(reminderNotifications=False)
        self.assertEqual(firing_kinds(-30, missed_only), frozenset({NotificationKind.MISSED}))
        self.assertEqual(firing_kinds(5, missed_only), frozenset())


class TestScenarios(unittest.TestCase):
    def test_scenario_a(self):
        m = med(frequency="OnceDaily", time="08:00")

        (upcoming,) = dose_events(m, datetime(2024, 3, 1, 7, 50), PREFS)
        self.assertEqual(upcoming.status, DoseStatus.UPCOMING)
        self.assertEqual(upcoming.kinds, frozenset({NotificationKind.REMINDER}))

        (missed,) = dose_events(m, datetime(2024, 3, 1, 8, 30), PREFS)
        self.assertEqual(missed.status, DoseStatus.MISSED)
        self.assertIn(NotificationKind.MISSED, missed.kinds)
        # the reminder window still covers the first hour after the dose
        self.assertIn(NotificationKind.REMINDER, missed.kinds)

        (late,) = dose_events(m, datetime(2024, 3, 1, 10, 0), PREFS)
        self.assertEqual(late.status, DoseStatus.INACTIVE)
        self.assertEqual(late.kinds, frozenset())

    def test_taken_medication_has_no_events(self):
        self.assertEqual(dose_events(med(taken=True), datetime(2024, 3, 1, 8, 0), PREFS), [])

    def test_late_night_dose_belongs_to_previous_day(self):
        m = med(time="23:50")
        events = [e for e in dose_events(m, datetime(2024, 3, 2, 0, 5), PREFS) if e.kinds]
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].dose_day, date(2024, 3, 1))
        self.assertEqual(events[0].diff, -15)

    def test_wraparound_respects_schedule_of_previous_day(self):
        started_today = med(time="23:50", startDate="2024-03-02")
        self.assertEqual(dose_events(started_today, datetime(2024, 3, 2, 0, 5), PREFS), [])

        alternate = med(frequency="Every other day", time="23:50", startDate="2024-03-01")
        (event,) = dose_events(alternate, datetime(2024, 3, 2, 0, 5), PREFS)
        self.assertEqual(event.dose_day, date(2024, 3, 1))

    def test_each_dose_of_twice_daily_is_separate(self):
        m = med(frequency="Twice daily", time="08:00")
        events = dose_events(m, datetime(2024, 3, 1, 19, 50), PREFS)
        firing = [e for e in events if e.kinds]
        self.assertEqual([e.slot for e in firing], ["20:00"])


if __name__ == "__main__":
    unittest.main(verbosity=2)

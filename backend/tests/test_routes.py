import unittest
from datetime import datetime

from fastapi.testclient import TestClient

from medx.core.firebase import get_current_user_uid
from medx.main import app
from medx.models.preferences import NotificationPreferences
from medx.services.container import ReminderServices, get_services
from medx.services.channels import FallbackChannel, NativeChannel, ToastSurface
from medx.services.dispatcher import NotificationDispatcher
from medx.services.notification_log import InMemoryNotificationLog
from medx.services.profile_source import StaticProfileSource
from medx.services.scheduler import ReminderScheduler, SchedulerRegistry
from reminder_fakes import FakeClock, FakeSurface, _run


def _services():
    profiles = StaticProfileSource()
    profiles.set_profile(
        "u1",
        medications=[
            {"id": "a", "name": "Aspirin", "dosage": "100mg", "time": "08:00"},
            {"id": "b", "name": "", "time": "09:00"},
        ],
        preferences=NotificationPreferences(),
    )
    log = InMemoryNotificationLog()
    toasts = ToastSurface(max_size=10)
    dispatcher = NotificationDispatcher(
        log=log,
        fallback=FallbackChannel(toasts),
        native=NativeChannel(FakeSurface(granted=False)),
    )
    clock = FakeClock(datetime(2024, 3, 1, 8, 0))
    registry = SchedulerRegistry(lambda uid: ReminderScheduler(uid, profiles, dispatcher, clock=clock))
    return ReminderServices(profiles=profiles, log=log, toasts=toasts, dispatcher=dispatcher, schedulers=registry)


class TestNotificationRoutes(unittest.TestCase):
    def setUp(self):
        self.services = _services()
        app.dependency_overrides[get_current_user_uid] = lambda: "u1"
        app.dependency_overrides[get_services] = lambda: self.services
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def test_check_then_list_and_mark_read(self):
        response = self.client.post("/notifications/check")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["processed"], 1)
        self.assertEqual(response.json()["dispatched"], 1)
        self.assertEqual(len(self.services.schedulers), 0)

        unread = self.client.get("/notifications/", params={"unread": True}).json()
        self.assertEqual(len(unread), 1)
        self.assertEqual(unread[0]["title"], "Medication Reminder: Aspirin")
        self.assertEqual(unread[0]["channel"], "toast")

        response = self.client.post(f"/notifications/{unread[0]['id']}/read")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get("/notifications/", params={"unread": True}).json(), [])
        self.assertEqual(len(self.client.get("/notifications/").json()), 1)

    def test_mark_read_unknown(self):
        self.assertEqual(self.client.post("/notifications/missing/read").status_code, 404)

    def test_toasts_are_drained(self):
        self.client.post("/notifications/test")
        toasts = self.client.get("/notifications/toasts").json()
        self.assertEqual(toasts[0]["title"], "Test Notification")
        self.assertEqual(self.client.get("/notifications/toasts").json(), [])

    def test_clear(self):
        self.client.post("/notifications/test")
        response = self.client.delete("/notifications/")
        self.assertEqual(response.json(), {"status": "ok", "removed": 1})
        self.assertEqual(_run(self.services.log.list_recent("u1")), [])

    def test_taken_confirmation(self):
        response = self.client.post("/notifications/taken/a")
        self.assertEqual(response.json(), {"status": "delivered", "channel": "toast"})
        self.assertEqual(self.client.post("/notifications/taken/zzz").status_code, 404)

    def test_scheduler_status(self):
        status = self.client.get("/notifications/scheduler").json()
        self.assertEqual(status["state"], "stopped")
        self.assertIsNone(status["last_tick"])


class TestSettingsRoutes(unittest.TestCase):
    def setUp(self):
        self.services = _services()
        app.dependency_overrides[get_current_user_uid] = lambda: "u1"
        app.dependency_overrides[get_services] = lambda: self.services
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def test_get_preferences(self):
        body = self.client.get("/settings/notifications").json()
        self.assertEqual(body, {"reminderNotifications": True, "missedDoseAlerts": True, "reminderTiming": 15})

    def test_patch_preferences(self):
        response = self.client.patch(
            "/settings/notifications",
            json={"reminderNotifications": False, "missedDoseAlerts": False, "reminderTiming": 30},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["scheduler"], "stopped")
        prefs = _run(self.services.profiles.get_preferences("u1"))
        self.assertEqual(prefs.reminder_timing, 30)
        self.assertFalse(prefs.reminder_notifications)

    def test_patch_rejects_negative_timing(self):
        response = self.client.patch("/settings/notifications", json={"reminderTiming": -1})
        self.assertEqual(response.status_code, 400)


class TestHealth(unittest.TestCase):
    def test_health(self):
        response = TestClient(app).get("/health")
        self.assertEqual(response.json()["status"], "alive")


if __name__ == "__main__":
    unittest.main(verbosity=2)

import unittest

from fastapi.testclient import TestClient
from jose import jwt

from agenda.config import JWT_ALGORITHM, JWT_SECRET
from agenda.database import get_db
from agenda.domain.scheduling.errors import (
    AppointmentNotFound,
    MissingServiceDuration,
    NotConnected,
    RefreshFailed,
    SchedulingConflict,
)
from agenda.domain.scheduling.router import get_appointment_service
from agenda.domain.scheduling.service import AppointmentService
from agenda.main import app, status_code_for
from agenda.routes.google_calendar import get_token_manager
from agenda.services.google_calendar_service import GoogleCalendarSyncEngine, GoogleCalendarTokenManager
from factories import FakeGoogle, MemoryCache, connect_calendar, make_session, seed_practitioner


def bearer(user_id: str = "user-1") -> dict:
    token = jwt.encode({"sub": user_id, "email": f"{user_id}@example.com"}, JWT_SECRET, algorithm=JWT_ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


class RouteTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.user, self.client_row, self.service, _ = seed_practitioner(self.db)
        connect_calendar(self.db, access_token="access-0")
        self.google = FakeGoogle()
        self.cache = MemoryCache()

        app.dependency_overrides[get_db] = lambda: self.db
        app.dependency_overrides[get_appointment_service] = lambda: AppointmentService(
            self.db,
            sync_engine=GoogleCalendarSyncEngine.for_session(self.db, transport=self.google.transport),
            cache_backend=self.cache,
        )
        app.dependency_overrides[get_token_manager] = lambda: GoogleCalendarTokenManager(
            self.db, transport=self.google.transport
        )
        self.http = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.db.close()

    def booking(self, at: str = "09:00", **extra) -> dict:
        body = {
            "client_id": self.client_row.id,
            "service_id": self.service.id,
            "date": "2024-06-10",
            "time": at,
        }
        body.update(extra)
        return body


class AppointmentRouteTests(RouteTestCase):
    def test_create_returns_synced_appointment(self) -> None:
        response = self.http.post("/appointments", json=self.booking(), headers=bearer())

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["synced"])
        self.assertIsNone(body["warning"])
        self.assertEqual(body["appointment"]["time"], "09:00")
        self.assertEqual(body["appointment"]["status"], "pending")
        self.assertEqual(body["appointment"]["google_event_id"], "evt-1")

    def test_twelve_hour_time_is_accepted(self) -> None:
        response = self.http.post("/appointments", json=self.booking("2:30 PM"), headers=bearer())

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["appointment"]["time"], "14:30")

    def test_conflict_returns_409_with_ids(self) -> None:
        first = self.http.post("/appointments", json=self.booking(), headers=bearer()).json()

        response = self.http.post("/appointments", json=self.booking("09:30"), headers=bearer())

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"], "SchedulingConflict")
        self.assertEqual(response.json()["conflicting_ids"], [first["appointment"]["id"]])

    def test_sync_failure_is_reported_as_warning(self) -> None:
        self.google.calendar_error = 500

        response = self.http.post("/appointments", json=self.booking(), headers=bearer())

        self.assertEqual(response.status_code, 201)
        self.assertFalse(response.json()["synced"])
        self.assertIn("not synced to Google Calendar", response.json()["warning"])

    def test_unknown_service_is_404(self) -> None:
        response = self.http.post("/appointments", json=self.booking(service_id="nope"), headers=bearer())

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"], "Service not found")

    def test_invalid_time_is_422(self) -> None:
        response = self.http.post("/appointments", json=self.booking("25:00"), headers=bearer())

        self.assertEqual(response.status_code, 422)

    def test_invalid_token_is_401(self) -> None:
        response = self.http.post(
            "/appointments", json=self.booking(), headers={"Authorization": "Bearer not-a-token"}
        )

        self.assertEqual(response.status_code, 401)

    def test_update_cancel_and_delete(self) -> None:
        created = self.http.post("/appointments", json=self.booking(), headers=bearer()).json()
        appointment_id = created["appointment"]["id"]

        moved = self.http.patch(f"/appointments/{appointment_id}", json={"time": "11:00"}, headers=bearer())
        self.assertEqual(moved.status_code, 200)
        self.assertEqual(moved.json()["appointment"]["time"], "11:00")

        cancelled = self.http.post(f"/appointments/{appointment_id}/cancel", headers=bearer())
        self.assertEqual(cancelled.json()["appointment"]["status"], "cancelled")

        deleted = self.http.delete(f"/appointments/{appointment_id}", headers=bearer())
        self.assertEqual(deleted.status_code, 200)
        self.assertIsNone(deleted.json()["warning"])
        self.assertTrue(deleted.json()["remote_deleted"])

        missing = self.http.get(f"/appointments/{appointment_id}", headers=bearer())
        self.assertEqual(missing.status_code, 404)

    def test_list_is_scoped_to_practitioner(self) -> None:
        self.http.post("/appointments", json=self.booking(), headers=bearer())
        seed_practitioner(self.db, user_id="user-2")

        window = {"start_date": "2024-06-01", "end_date": "2024-06-30"}
        own = self.http.get("/appointments", params=window, headers=bearer())
        other = self.http.get("/appointments", params=window, headers=bearer("user-2"))
        filtered = self.http.get("/appointments", params={**window, "client_name": "nobody"}, headers=bearer())

        self.assertEqual(len(own.json()), 1)
        self.assertEqual(other.json(), [])
        self.assertEqual(filtered.json(), [])

    def test_available_slots(self) -> None:
        self.http.post("/appointments", json=self.booking("10:00"), headers=bearer())

        response = self.http.get(
            "/appointments/available-slots",
            params={"date": "2024-06-10", "service_id": self.service.id},
            headers=bearer(),
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["service_duration"], 60)
        self.assertNotIn("10:00", body["slots"]["2024-06-10"])

    def test_sync_all(self) -> None:
        self.google.calendar_error = 500
        self.http.post("/appointments", json=self.booking(), headers=bearer())
        self.google.calendar_error = None

        response = self.http.post("/appointments/sync-all", headers=bearer())

        self.assertEqual(response.json(), {"total": 1, "synced": 1, "failed": 0, "errors": []})


class GoogleCalendarRouteTests(RouteTestCase):
    def test_status_and_disconnect(self) -> None:
        status = self.http.get("/google-calendar/status", headers=bearer())
        self.assertTrue(status.json()["connected"])

        disconnected = self.http.post("/google-calendar/disconnect", headers=bearer())
        self.assertEqual(disconnected.status_code, 200)

        status = self.http.get("/google-calendar/status", headers=bearer())
        self.assertFalse(status.json()["connected"])

        again = self.http.post("/google-calendar/disconnect", headers=bearer())
        self.assertEqual(again.status_code, 404)


class StatusMappingTests(unittest.TestCase):
    def test_errors_map_to_http_statuses(self) -> None:
        cases = [
            (SchedulingConflict(), 409),
            (AppointmentNotFound("x"), 404),
            (NotConnected(), 404),
            (MissingServiceDuration(), 422),
            (RefreshFailed("invalid_grant"), 502),
        ]
        for exc, expected in cases:
            with self.subTest(error=exc.__class__.__name__):
                self.assertEqual(status_code_for(exc), expected)


if __name__ == "__main__":
    unittest.main()

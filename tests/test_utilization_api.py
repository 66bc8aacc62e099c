"""
Test Utilization API - /api/utilization

Tests for:
- POST /api/utilization - 201, 409 duplicate day, 422 monotonic errors, 404 aircraft
- GET /api/utilization/{id} - 404 when missing
- PUT /api/utilization/{id} - 422 with every offending field
- DELETE /api/utilization/{id} - Admin only, 204 / 404
- GET /api/utilization/deltas/{aircraft_id}
- GET /api/utilization/aggregations?period=month
- Role checks (Viewer cannot write)

The MongoDB repositories and the authenticated user are replaced through
FastAPI dependency overrides.
"""

import pytest
from datetime import datetime, timezone
from fastapi.testclient import TestClient

from models.user import User, UserRole
from routes.utilization import get_utilization_service
from server import app
from services.auth_deps import get_current_user
from services.utilization_service import UtilizationService

from conftest import counter_payload

BASE_URL = "/api/utilization"
USER_ID = "65a0f1e2c3d4b5a6978877aa"


def make_user(role: UserRole) -> User:
    return User(
        id=USER_ID,
        email="ops@fleetops.com",
        name="Ops Controller",
        role=role,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc)
    )


class TestUtilizationAPI:
    """Tests for Utilization API endpoints"""

    @pytest.fixture
    def role(self):
        return UserRole.ADMIN

    @pytest.fixture
    def client(self, counter_repository, aircraft_repository, role):
        service = UtilizationService(counter_repository, aircraft_repository)
        app.dependency_overrides[get_utilization_service] = lambda: service
        app.dependency_overrides[get_current_user] = lambda: make_user(role)
        yield TestClient(app)
        app.dependency_overrides.clear()

    def post_counter(self, client, aircraft_id, day, hours, **overrides):
        return client.post(BASE_URL, json=counter_payload(aircraft_id, day, hours, **overrides))

    # ============================================================
    # POST /api/utilization
    # ============================================================

    def test_create_counter(self, client, twin):
        response = self.post_counter(client, twin.id, "2024-01-01", 100, last_flight_date="2023-12-31")

        assert response.status_code == 201, response.text
        data = response.json()
        assert data["_id"]
        assert data["aircraft_id"] == twin.id
        assert data["date"].startswith("2024-01-01")
        assert data["airframe_hours_ttsn"] == 100
        assert data["updated_by"] == USER_ID
        assert data["last_flight_date"].startswith("2023-12-31")

    def test_create_duplicate_day_conflict(self, client, twin):
        assert self.post_counter(client, twin.id, "2024-01-01", 100).status_code == 201

        response = self.post_counter(client, twin.id, "2024-01-01", 120)

        assert response.status_code == 409
        assert "already exists" in response.json()["detail"]

    def test_create_decreasing_counter_unprocessable(self, client, twin):
        assert self.post_counter(client, twin.id, "2024-01-01", 100).status_code == 201

        response = self.post_counter(client, twin.id, "2024-01-02", 90)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["message"] == "Monotonic validation error"
        assert len(detail["errors"]) == 7
        assert detail["errors"][0] == "Airframe hours (90) cannot be less than previous value (100)"

    def test_create_unknown_aircraft(self, client):
        response = self.post_counter(client, "65a0f1e2c3d4b5a6978877ff", "2024-01-01", 100)
        assert response.status_code == 404

    def test_create_negative_counter_rejected_by_validation(self, client, twin):
        response = self.post_counter(client, twin.id, "2024-01-01", 100, apu_hours=-1)
        assert response.status_code == 422

    def test_create_missing_required_counter(self, client, twin):
        payload = counter_payload(twin.id, "2024-01-01", 100)
        del payload["engine2_cycles"]
        assert client.post(BASE_URL, json=payload).status_code == 422

    @pytest.mark.parametrize("role", [UserRole.VIEWER])
    def test_viewer_cannot_create(self, client, twin, role):
        response = self.post_counter(client, twin.id, "2024-01-01", 100)
        assert response.status_code == 403

    # ============================================================
    # GET / PUT / DELETE /api/utilization/{id}
    # ============================================================

    def test_get_counter(self, client, twin):
        counter_id = self.post_counter(client, twin.id, "2024-01-01", 100).json()["_id"]

        response = client.get(f"{BASE_URL}/{counter_id}")

        assert response.status_code == 200
        assert response.json()["_id"] == counter_id

    def test_get_missing_counter(self, client):
        assert client.get(f"{BASE_URL}/65a0f1e2c3d4b5a6978877ff").status_code == 404

    def test_update_reports_all_violations(self, client, twin):
        self.post_counter(client, twin.id, "2024-01-01", 100)
        counter_id = self.post_counter(client, twin.id, "2024-01-02", 110).json()["_id"]

        response = client.put(f"{BASE_URL}/{counter_id}", json={
            "airframe_hours_ttsn": 99,
            "apu_hours": 10
        })

        assert response.status_code == 422
        assert response.json()["detail"]["errors"] == [
            "Airframe hours (99) cannot be less than previous value (100)",
            "APU hours (10) cannot be less than previous value (25)",
        ]

    def test_update_counter(self, client, twin):
        counter_id = self.post_counter(client, twin.id, "2024-01-01", 100).json()["_id"]

        response = client.put(f"{BASE_URL}/{counter_id}", json={"apu_cycles": 1200})

        assert response.status_code == 200
        assert response.json()["apu_cycles"] == 1200

    def test_update_cannot_move_counter(self, client, twin):
        counter_id = self.post_counter(client, twin.id, "2024-01-01", 100).json()["_id"]

        response = client.put(f"{BASE_URL}/{counter_id}", json={"date": "2024-01-03", "apu_hours": 30})

        assert response.status_code == 422
        assert client.get(f"{BASE_URL}/{counter_id}").json()["apu_hours"] == 25

    def test_update_missing_counter(self, client):
        response = client.put(f"{BASE_URL}/65a0f1e2c3d4b5a6978877ff", json={"apu_hours": 1})
        assert response.status_code == 404

    def test_delete_counter(self, client, twin):
        counter_id = self.post_counter(client, twin.id, "2024-01-01", 100).json()["_id"]

        assert client.delete(f"{BASE_URL}/{counter_id}").status_code == 204
        assert client.delete(f"{BASE_URL}/{counter_id}").status_code == 404

    @pytest.mark.parametrize("role", [UserRole.EDITOR])
    def test_editor_cannot_delete(self, client, twin, role):
        counter_id = self.post_counter(client, twin.id, "2024-01-01", 100).json()["_id"]
        assert client.delete(f"{BASE_URL}/{counter_id}").status_code == 403

    # ============================================================
    # Listing, deltas, aggregations
    # ============================================================

    def test_list_counters_filtered(self, client, twin):
        for day, hours in [("2024-01-01", 100), ("2024-01-02", 104), ("2024-01-03", 107)]:
            self.post_counter(client, twin.id, day, hours)

        response = client.get(BASE_URL, params={
            "aircraft_id": twin.id,
            "start_date": "2024-01-02",
            "end_date": "2024-01-03"
        })

        assert response.status_code == 200
        assert [c["airframe_hours_ttsn"] for c in response.json()] == [107, 104]

    def test_daily_deltas(self, client, twin):
        self.post_counter(client, twin.id, "2024-01-01", 100)
        self.post_counter(client, twin.id, "2024-01-05", 108)

        response = client.get(f"{BASE_URL}/deltas/{twin.id}")

        assert response.status_code == 200
        deltas = response.json()
        assert len(deltas) == 1
        assert deltas[0]["date"].startswith("2024-01-05")
        assert deltas[0]["flight_hours"] == 8
        # Not computable for a twin: omitted, not zero
        assert "engine3_hours" not in deltas[0]

    def test_monthly_aggregations(self, client, twin):
        for day, hours in [("2024-01-10", 100), ("2024-02-10", 120), ("2024-03-10", 135)]:
            self.post_counter(client, twin.id, day, hours)

        response = client.get(f"{BASE_URL}/aggregations", params={
            "period": "month",
            "aircraft_id": twin.id,
            "start_date": "2024-01-01",
            "end_date": "2024-03-31"
        })

        assert response.status_code == 200
        data = response.json()
        assert [a["period"] for a in data] == ["2024-01", "2024-02", "2024-03"]
        assert [a["flight_hours"] for a in data] == [0, 20, 15]

    def test_aggregations_invalid_period(self, client):
        response = client.get(f"{BASE_URL}/aggregations", params={"period": "week"})
        assert response.status_code == 422


def test_health():
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}

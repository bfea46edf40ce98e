"""
HTTP API tests

Exercise the routers end to end through TestClient. Dates on these
paths come from the server clock, so assertions avoid fixed dates.
"""

from datetime import date, timedelta
from unittest.mock import patch


CHALLENGE = {
    "name": "Reading Habit",
    "description": "Read every evening",
    "duration_in_days": 21,
    "tasks": [
        {"name": "Read 10 pages", "description": "Any book", "type": "Reading", "target_value": 10, "target_unit": "pages"},
        {"name": "Journal", "description": "Three lines", "type": "Journal", "frequency": "Daily"},
    ],
}


def _create(client, **overrides):
    response = client.post("/v1/challenges", json={**CHALLENGE, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


class TestHealth:
    def test_ping(self, client):
        assert client.get("/ping").json() == {"pong": True}

    def test_health_reports_unavailable_store(self, client):
        with patch("ultimate.main.check_db_connection", return_value=False):
            response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_health_ok(self, client):
        with patch("ultimate.main.check_db_connection", return_value=True):
            response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestChallengeEndpoints:
    def test_create_returns_detail_with_tasks(self, client):
        body = _create(client)
        assert body["status"] == "NotStarted"
        assert [t["name"] for t in body["tasks"]] == ["Read 10 pages", "Journal"]

    def test_create_invalid_returns_every_issue(self, client):
        response = client.post("/v1/challenges", json={**CHALLENGE, "name": "", "duration_in_days": 400})
        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert {(e["field"], e["rule"]) for e in body["errors"]} >= {
            ("name", "required"),
            ("duration_in_days", "range"),
        }

    def test_validate_does_not_save(self, client):
        response = client.post("/v1/challenges/validate", json={**CHALLENGE, "duration_in_days": 0})
        assert response.status_code == 200
        assert response.json()["valid"] is False
        assert client.get("/v1/challenges").json()["total_count"] == 0

    def test_get_unknown_is_404(self, client):
        response = client.get("/v1/challenges/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_templates(self, client):
        templates = client.get("/v1/challenges/templates").json()
        hard = next(t for t in templates if t["type"] == "75Hard")
        assert hard["duration_in_days"] == 75
        assert len(hard["tasks"]) == 5

    def test_create_from_template(self, client):
        response = client.post("/v1/challenges/templates/WaterFasting", json={"duration_in_days": 3})
        assert response.status_code == 201
        body = response.json()
        assert body["type"] == "WaterFasting"
        assert body["duration_in_days"] == 3
        assert len(body["tasks"]) == 3

    def test_patch(self, client):
        created = _create(client)
        response = client.patch(f"/v1/challenges/{created['id']}", json={"name": "Reading Habit II"})
        assert response.status_code == 200
        assert response.json()["name"] == "Reading Habit II"

    def test_start_then_second_start_conflicts(self, client):
        first = _create(client)
        second = _create(client, name="Another")

        started = client.post(f"/v1/challenges/{first['id']}/start").json()
        assert started["status"] == "InProgress"
        assert started["start_date"] == date.today().isoformat()
        assert client.get("/v1/challenges/active").json()["id"] == first["id"]

        response = client.post(f"/v1/challenges/{second['id']}/start")
        assert response.status_code == 409
        assert response.json()["error_code"] == "CONFLICT"

    def test_stop_and_delete(self, client):
        created = _create(client)
        client.post(f"/v1/challenges/{created['id']}/start")

        assert client.delete(f"/v1/challenges/{created['id']}").status_code == 409
        stopped = client.post(f"/v1/challenges/{created['id']}/stop").json()
        assert stopped["status"] == "Failed"
        assert client.get("/v1/daily-tasks").json() == []

        assert client.delete(f"/v1/challenges/{created['id']}").status_code == 200
        assert client.get(f"/v1/challenges/{created['id']}").status_code == 404

    def test_search_filters_and_pages(self, client):
        for name in ["Run A", "Run B", "Swim"]:
            _create(client, name=name)
        page = client.get("/v1/challenges", params={"q": "run", "sort_by": "name", "order": "asc", "limit": 1}).json()
        assert page["total_count"] == 2
        assert page["has_next"] is True
        assert [c["name"] for c in page["items"]] == ["Run A"]

    def test_add_task_before_start(self, client):
        created = _create(client)
        response = client.post(
            f"/v1/challenges/{created['id']}/tasks",
            json={"name": "Stretch", "description": "Five minutes"},
        )
        assert response.status_code == 201
        assert response.json()["position"] == 2


class TestDailyTaskEndpoints:
    def test_today_checklist_and_completion(self, client):
        created = _create(client)
        client.post(f"/v1/challenges/{created['id']}/start")

        tasks = client.get("/v1/daily-tasks").json()
        assert len(tasks) == 2
        assert all(t["status"] == "NotStarted" for t in tasks)

        done = client.post(f"/v1/daily-tasks/{tasks[0]['id']}/complete", json={"actual_value": 12}).json()
        assert done["status"] == "Completed"
        assert done["actual_value"] == 12

        progress = client.get(f"/v1/progress/{created['id']}").json()
        assert progress["progress"] == 0.5
        assert progress["total_due"] == 2

        reset = client.post(f"/v1/daily-tasks/{tasks[0]['id']}/reset").json()
        assert reset["status"] == "NotStarted"

    def test_generate_is_idempotent(self, client):
        created = _create(client)
        client.post(f"/v1/challenges/{created['id']}/start")

        response = client.post("/v1/daily-tasks/generate")
        assert response.status_code == 200
        assert response.json()[0]["created_count"] == 0

    def test_generate_range(self, client):
        created = _create(client)
        client.post(f"/v1/challenges/{created['id']}/start")
        today = date.today()

        body = client.post("/v1/daily-tasks/generate", json={
            "start": today.isoformat(),
            "end": (today + timedelta(days=2)).isoformat(),
        }).json()

        assert [r["created_count"] for r in body] == [0, 2, 2]

    def test_generate_range_is_capped(self, client):
        today = date.today()
        response = client.post("/v1/daily-tasks/generate", json={
            "start": (today - timedelta(days=365)).isoformat(),
        })
        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "start"

        within = client.post("/v1/daily-tasks/generate", json={
            "start": (today - timedelta(days=364)).isoformat(),
        })
        assert within.status_code == 200
        assert len(within.json()) == 365

    def test_negative_value_is_rejected(self, client):
        created = _create(client)
        client.post(f"/v1/challenges/{created['id']}/start")
        task_id = client.get("/v1/daily-tasks").json()[0]["id"]

        response = client.post(f"/v1/daily-tasks/{task_id}/complete", json={"actual_value": -5})
        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "actual_value"


class TestProgressEndpoints:
    def test_analytics(self, client):
        created = _create(client)
        client.post(f"/v1/challenges/{created['id']}/start")
        task_id = client.get("/v1/daily-tasks").json()[0]["id"]
        client.post(f"/v1/daily-tasks/{task_id}/complete")

        body = client.get(f"/v1/progress/{created['id']}/analytics").json()
        assert body["total_days"] == 21
        assert body["current_day"] == 1
        assert body["daily_progress"][0]["completion_rate"] == 50.0

    def test_refresh(self, client):
        created = _create(client)
        client.post(f"/v1/challenges/{created['id']}/start")
        assert client.post("/v1/progress/refresh").json() == {"refreshed": 1, "closed": 0}


class TestUsersAndPhotos:
    def test_user_crud(self, client):
        user = client.post("/v1/users", json={"name": "Robin", "email": "robin@example.com"}).json()
        assert client.patch(f"/v1/users/{user['id']}", json={"has_completed_onboarding": True}).json()[
            "has_completed_onboarding"
        ] is True
        assert client.delete(f"/v1/users/{user['id']}").status_code == 200
        assert client.get("/v1/users").json() == []

    def test_photo_requires_existing_challenge(self, client):
        response = client.post("/v1/photos", json={
            "challenge_id": "00000000-0000-0000-0000-000000000000",
            "date": date.today().isoformat(),
            "file_path": "p.jpg",
        })
        assert response.status_code == 404

    def test_photo_for_challenge(self, client):
        created = _create(client)
        response = client.post("/v1/photos", json={
            "challenge_id": created["id"],
            "date": date.today().isoformat(),
            "angle": "Left Side",
            "file_path": "photos/left.jpg",
        })
        assert response.status_code == 201
        listed = client.get("/v1/photos", params={"challenge_id": created["id"]}).json()
        assert [p["angle"] for p in listed] == ["Left Side"]

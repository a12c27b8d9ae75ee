"""Tests for the FastAPI app (app.py) routes."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from store import StoreError


@pytest.fixture()
def checkbox(store, person, section):
    return store.create_question(person["id"], section["id"], prompt="Meditate")


# ── Health check ──────────────────────────────


class TestHealthCheck:
    def test_healthz_returns_200(self, anon_client):
        response = anon_client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_health_alias(self, anon_client):
        assert anon_client.get("/health").status_code == 200


# ── Session ───────────────────────────────────


class TestNoActivePerson:
    @pytest.mark.parametrize("path", ["/api/insights", "/api/daily", "/api/questions"])
    def test_get_routes_require_cookie(self, anon_client, path):
        response = anon_client.get(path)
        assert response.status_code == 401

    def test_upsert_requires_cookie(self, anon_client):
        response = anon_client.post("/api/answers/upsert", json={"date": "2024-03-06"})
        assert response.status_code == 401


class TestSession:
    def test_sets_cookie(self, anon_client, person):
        response = anon_client.post("/api/session", json={"person_id": person["id"]})
        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert anon_client.cookies.get("active_person_id") == person["id"]
        assert "httponly" in response.headers["set-cookie"].lower()

    def test_unknown_person(self, anon_client):
        response = anon_client.post("/api/session", json={"person_id": "ghost"})
        assert response.status_code == 400

    def test_missing_person_id(self, anon_client):
        response = anon_client.post("/api/session", json={})
        assert response.status_code == 400

    def test_clear_expires_cookie(self, client):
        response = client.post("/api/session/clear")
        assert response.status_code == 200
        assert "active_person_id" in response.headers["set-cookie"]
        assert "max-age=0" in response.headers["set-cookie"].lower()


class TestPeople:
    def test_lists_people(self, anon_client, person):
        data = anon_client.get("/api/people").json()
        assert data == {"people": [person]}


# ── Insights ──────────────────────────────────


class TestInsights:
    def test_week_window(self, client):
        data = client.get("/api/insights?range=week&anchor=2024-03-06").json()
        assert data["window"] == {"start": "2024-03-04", "end": "2024-03-10"}
        assert data["range"] == "week"
        assert data["person"]["display_name"] == "Alex"

    def test_defaults_to_week(self, client):
        data = client.get("/api/insights?anchor=2024-03-06").json()
        assert data["range"] == "week"

    def test_checkbox_scenario(self, client, store, person, checkbox):
        for day in ("2024-03-04", "2024-03-05", "2024-03-06"):
            store.upsert_answer(person["id"], checkbox, day, True)
        data = client.get("/api/insights?range=week&anchor=2024-03-06").json()
        stats = data["questions"][0]
        assert stats["completion_rate"] == 43
        assert stats["current_streak"] == 3

    def test_payload_keys(self, client):
        data = client.get("/api/insights?range=month&anchor=2024-03-06").json()
        assert set(data) == {
            "person", "range", "anchor", "window", "waterTrend", "questions", "tasks",
        }

    def test_invalid_anchor(self, client):
        response = client.get("/api/insights?anchor=not-a-date")
        assert response.status_code == 400

    def test_invalid_range(self, client):
        response = client.get("/api/insights?range=decade&anchor=2024-03-06")
        assert response.status_code == 422

    def test_unknown_person_cookie(self, anon_client):
        anon_client.cookies.set("active_person_id", "ghost")
        response = anon_client.get("/api/insights?anchor=2024-03-06")
        assert response.status_code == 400

    def test_store_failure_is_500(self, client):
        with patch("app.build_insights_payload", side_effect=StoreError("disk I/O error")):
            response = client.get("/api/insights?anchor=2024-03-06")
        assert response.status_code == 500
        assert response.json() == {"error": "disk I/O error"}


# ── Daily and answers ─────────────────────────


class TestDaily:
    def test_returns_answers(self, client, store, person, checkbox):
        store.upsert_answer(person["id"], checkbox, "2024-03-06", True)
        data = client.get("/api/daily?date=2024-03-06").json()
        assert data["answers"] == {checkbox["id"]: True}
        assert data["tomorrow_date"] == "2024-03-07"

    def test_invalid_date(self, client):
        assert client.get("/api/daily?date=2024-13-01").status_code == 400


class TestUpsertAnswer:
    def test_upsert(self, client, store, person, checkbox):
        response = client.post(
            "/api/answers/upsert",
            json={"date": "2024-03-06", "question_id": checkbox["id"], "value": True},
        )
        assert response.status_code == 200
        answers = store.list_answers_on(person["id"], "2024-03-06")
        assert answers[0]["value_bool"] is True

    def test_missing_fields(self, client):
        response = client.post("/api/answers/upsert", json={"date": "2024-03-06"})
        assert response.status_code == 400

    def test_unknown_question(self, client):
        response = client.post(
            "/api/answers/upsert",
            json={"date": "2024-03-06", "question_id": "missing", "value": 1},
        )
        assert response.status_code == 404

    def test_bad_number(self, client, store, person, section):
        q = store.create_question(person["id"], section["id"], type="number")
        response = client.post(
            "/api/answers/upsert",
            json={"date": "2024-03-06", "question_id": q["id"], "value": "lots"},
        )
        assert response.status_code == 400


# ── Questions ─────────────────────────────────


class TestQuestions:
    def test_create_and_list(self, client, section):
        response = client.post(
            "/api/questions",
            json={"section_id": section["id"], "prompt": "Steps", "type": "number"},
        )
        assert response.status_code == 200
        created = response.json()["question"]
        assert created["type"] == "number"
        listed = client.get("/api/questions").json()["questions"]
        assert [q["id"] for q in listed] == [created["id"]]

    def test_create_requires_section(self, client):
        assert client.post("/api/questions", json={"prompt": "x"}).status_code == 400

    def test_patch_and_include_inactive(self, client, checkbox):
        response = client.patch(
            "/api/questions", json={"id": checkbox["id"], "is_active": False}
        )
        assert response.json()["question"]["is_active"] is False
        assert client.get("/api/questions").json()["questions"] == []
        inactive = client.get("/api/questions?include_inactive=1").json()["questions"]
        assert len(inactive) == 1

    def test_patch_unknown(self, client):
        response = client.patch("/api/questions", json={"id": "missing", "prompt": "x"})
        assert response.status_code == 404

    def test_delete(self, client, checkbox):
        response = client.request("DELETE", "/api/questions", json={"id": checkbox["id"]})
        assert response.status_code == 200
        assert client.get("/api/questions").json()["questions"] == []

    def test_reorder(self, client, store, person, section, checkbox):
        second = store.create_question(person["id"], section["id"], prompt="Read")
        response = client.post(
            "/api/questions/reorder",
            json={"question_id": second["id"], "direction": "up"},
        )
        assert response.status_code == 200
        prompts = [q["prompt"] for q in client.get("/api/questions").json()["questions"]]
        assert prompts == ["Read", "Meditate"]

    def test_reorder_bad_direction(self, client, checkbox):
        response = client.post(
            "/api/questions/reorder",
            json={"question_id": checkbox["id"], "direction": "sideways"},
        )
        assert response.status_code == 400

    def test_reorder_unknown(self, client):
        response = client.post(
            "/api/questions/reorder", json={"question_id": "missing", "direction": "up"}
        )
        assert response.status_code == 404


# ── Tasks ─────────────────────────────────────


class TestTasks:
    def test_create_and_toggle(self, client, store, person):
        created = client.post(
            "/api/tasks/create", json={"title": "Pay rent", "due_date": "2024-03-06"}
        ).json()
        assert created["ok"] is True

        response = client.post(
            "/api/tasks/toggle", json={"task_id": created["task"]["id"], "status": "done"}
        )
        assert response.status_code == 200
        data = client.get("/api/insights?anchor=2024-03-06").json()
        assert data["tasks"] == {"completed": 1, "total": 1, "rate": 100}

    def test_create_missing_fields(self, client):
        assert client.post("/api/tasks/create", json={"title": "x"}).status_code == 400

    def test_toggle_unknown_status(self, client):
        response = client.post("/api/tasks/toggle", json={"task_id": "t", "status": "maybe"})
        assert response.status_code == 400

    def test_toggle_unknown_task(self, client):
        response = client.post("/api/tasks/toggle", json={"task_id": "t", "status": "done"})
        assert response.status_code == 404


# ── 404 for unknown routes ───────────────────


class TestNotFound:
    def test_unknown_api_route_returns_404(self, anon_client):
        response = anon_client.get("/api/nonexistent")
        assert response.status_code == 404


# ── Malformed input ───────────────────────────


class TestMalformedInput:
    def test_task_due_date_not_a_string(self, client):
        response = client.post("/api/tasks/create", json={"title": "x", "due_date": 20240306})
        assert response.status_code == 400

    def test_answer_date_not_a_string(self, client, checkbox):
        response = client.post(
            "/api/answers/upsert",
            json={"date": 20240306, "question_id": checkbox["id"], "value": True},
        )
        assert response.status_code == 400

    def test_insights_survive_list_options(self, client, store, person, section):
        q = store.create_question(
            person["id"], section["id"], prompt="Where", type="select",
            options={"choices": ["Home"]},
        )
        response = client.patch("/api/questions", json={"id": q["id"], "options": ["Home", "Office"]})
        assert response.status_code == 200

        response = client.get("/api/insights?anchor=2024-03-06")
        assert response.status_code == 200
        assert response.json()["questions"][0]["distribution"] == []

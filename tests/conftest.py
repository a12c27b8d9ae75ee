"""Shared fixtures for habit tracker tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from store import HabitStore


@pytest.fixture()
def store(tmp_path):
    """A fresh HabitStore on a temporary SQLite file."""
    habit_store = HabitStore(tmp_path / "habits.db")
    habit_store.init_schema()
    return habit_store


@pytest.fixture()
def person(store):
    return store.create_person("Alex")


@pytest.fixture()
def section(store):
    return store.create_section("routine", "Routine", sort_order=1)


@pytest.fixture()
def anon_client(store):
    """TestClient for app.py backed by the temporary store, no session cookie.

    Overrides the get_store dependency so no habits.db is touched.
    """
    import app as app_module

    app_module.app.dependency_overrides[app_module.get_store] = lambda: store
    try:
        with TestClient(app_module.app) as tc:
            yield tc
    finally:
        app_module.app.dependency_overrides.clear()


@pytest.fixture()
def client(anon_client, person):
    """TestClient with the active-person cookie already set."""
    anon_client.cookies.set("active_person_id", person["id"])
    return anon_client

"""FastAPI service for the daily habit tracker.

Serves the JSON API behind the check-in and insights pages: the active
person is chosen with a session cookie, answers and tasks are written
through the SQLite store, and insights are recomputed on every request.

Deployment: uvicorn app:app --host 127.0.0.1 --port 8204
"""

from __future__ import annotations

import os
import threading
from datetime import date
from pathlib import Path
from typing import Any, Literal

from fastapi import Body, Cookie, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse

from daily import build_daily_payload
from insights import build_insights_payload, parse_anchor
from store import HabitStore, StoreError

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
DB_PATH = Path(os.environ.get("HABITS_DB_PATH", Path(__file__).parent / "habits.db"))
SESSION_COOKIE = "active_person_id"
SESSION_MAX_AGE = 60 * 60 * 24 * 365  # 1 year
TASK_STATUSES = ("todo", "done")

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="Daily Habits")


@app.exception_handler(StoreError)
def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc)})


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
_store_lock = threading.Lock()


def get_store() -> HabitStore:
    """Return the process-wide store, creating it on first use."""
    with _store_lock:
        store = getattr(app.state, "store", None)
        if store is None:
            store = HabitStore(DB_PATH)
            store.init_schema()
            app.state.store = store
    return store


def get_person_id(active_person_id: str | None = Cookie(default=None)) -> str:
    if not active_person_id:
        raise HTTPException(status_code=401, detail="No active person")
    return active_person_id


def _parse_day(value: str | None) -> date:
    try:
        return parse_anchor(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"Invalid date: {value}")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health")
@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/api/insights")
def api_insights(
    range_kind: Literal["week", "month", "year"] = Query("week", alias="range"),
    anchor: str | None = None,
    person_id: str = Depends(get_person_id),
    store: HabitStore = Depends(get_store),
):
    """Return aggregated insights for the active person's window."""
    anchor_date = _parse_day(anchor)
    try:
        return build_insights_payload(store, person_id, range_kind, anchor_date)
    except LookupError:
        raise HTTPException(status_code=400, detail="Invalid person")


@app.get("/api/daily")
def api_daily(
    day: str | None = Query(None, alias="date"),
    person_id: str = Depends(get_person_id),
    store: HabitStore = Depends(get_store),
):
    """Return the check-in view for one day (today by default)."""
    day_date = _parse_day(day)
    try:
        return build_daily_payload(store, person_id, day_date)
    except LookupError:
        raise HTTPException(status_code=400, detail="Invalid person")


@app.post("/api/answers/upsert")
def api_upsert_answer(
    body: dict[str, Any] = Body(...),
    person_id: str = Depends(get_person_id),
    store: HabitStore = Depends(get_store),
):
    day = body.get("date")
    question_id = body.get("question_id")
    if not day or not question_id:
        raise HTTPException(status_code=400, detail="Missing fields")

    question = store.get_question(person_id, question_id)
    if question is None:
        raise HTTPException(status_code=404, detail="Question not found")

    try:
        store.upsert_answer(person_id, question, _parse_day(day), body.get("value"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"ok": True}


@app.get("/api/people")
def api_people(store: HabitStore = Depends(get_store)):
    return {"people": store.list_people()}


@app.post("/api/session")
def api_set_session(
    response: Response,
    body: dict[str, Any] = Body(...),
    store: HabitStore = Depends(get_store),
):
    """Make *person_id* the active person for this browser."""
    person_id = body.get("person_id")
    if not person_id:
        raise HTTPException(status_code=400, detail="person_id required")
    if store.get_person(person_id) is None:
        raise HTTPException(status_code=400, detail="Invalid person")

    response.set_cookie(
        SESSION_COOKIE,
        person_id,
        max_age=SESSION_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
    )
    return {"ok": True}


@app.post("/api/session/clear")
def api_clear_session(response: Response):
    response.delete_cookie(SESSION_COOKIE, path="/", httponly=True, samesite="lax")
    return {"ok": True}


@app.get("/api/questions")
def api_list_questions(
    include_inactive: str | None = None,
    person_id: str = Depends(get_person_id),
    store: HabitStore = Depends(get_store),
):
    questions = store.list_questions(person_id, include_inactive=include_inactive == "1")
    return {"questions": questions}


@app.post("/api/questions")
def api_create_question(
    body: dict[str, Any] = Body(...),
    person_id: str = Depends(get_person_id),
    store: HabitStore = Depends(get_store),
):
    section_id = body.get("section_id")
    if not section_id:
        raise HTTPException(status_code=400, detail="section_id required")

    question = store.create_question(
        person_id,
        section_id,
        prompt=body.get("prompt") or "New question",
        type=body.get("type") or "checkbox",
        options=body.get("options") or {},
        sort_order=body.get("sort_order"),
    )
    return {"question": question}


@app.patch("/api/questions")
def api_update_question(
    body: dict[str, Any] = Body(...),
    person_id: str = Depends(get_person_id),
    store: HabitStore = Depends(get_store),
):
    question_id = body.get("id")
    if not question_id:
        raise HTTPException(status_code=400, detail="id required")

    updates: dict[str, Any] = {}
    for field in ("prompt", "type", "section_id"):
        if isinstance(body.get(field), str):
            updates[field] = body[field]
    if "options" in body:
        updates["options"] = body["options"]
    if isinstance(body.get("is_active"), bool):
        updates["is_active"] = body["is_active"]
    if isinstance(body.get("sort_order"), int) and not isinstance(body["sort_order"], bool):
        updates["sort_order"] = body["sort_order"]

    question = store.update_question(person_id, question_id, **updates)
    if question is None:
        raise HTTPException(status_code=404, detail="Question not found")
    return {"question": question}


@app.delete("/api/questions")
def api_delete_question(
    body: dict[str, Any] = Body(...),
    person_id: str = Depends(get_person_id),
    store: HabitStore = Depends(get_store),
):
    question_id = body.get("id")
    if not question_id:
        raise HTTPException(status_code=400, detail="id required")
    store.delete_question(person_id, question_id)
    return {"ok": True}


@app.post("/api/questions/reorder")
def api_reorder_question(
    body: dict[str, Any] = Body(...),
    person_id: str = Depends(get_person_id),
    store: HabitStore = Depends(get_store),
):
    question_id = body.get("question_id")
    direction = body.get("direction")
    if not question_id or direction not in ("up", "down"):
        raise HTTPException(status_code=400, detail="question_id and direction required")

    if not store.move_question(person_id, question_id, direction):
        raise HTTPException(status_code=404, detail="Question not found")
    return {"ok": True}


@app.post("/api/tasks/create")
def api_create_task(
    body: dict[str, Any] = Body(...),
    person_id: str = Depends(get_person_id),
    store: HabitStore = Depends(get_store),
):
    title = body.get("title")
    due_date = body.get("due_date")
    if not title or not due_date:
        raise HTTPException(status_code=400, detail="Missing fields")

    task = store.create_task(person_id, title, _parse_day(due_date))
    return {"ok": True, "task": task}


@app.post("/api/tasks/toggle")
def api_toggle_task(
    body: dict[str, Any] = Body(...),
    person_id: str = Depends(get_person_id),
    store: HabitStore = Depends(get_store),
):
    task_id = body.get("task_id")
    status = body.get("status")
    if not task_id or not status:
        raise HTTPException(status_code=400, detail="Missing fields")
    if status not in TASK_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status}")

    if not store.set_task_status(person_id, task_id, status):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"ok": True}

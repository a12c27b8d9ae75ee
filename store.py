"""SQLite storage for people, sections, questions, answers and tasks.

A ``HabitStore`` is a lightweight handle around a database path.  It is
built once per process and passed to whoever needs it; every operation
opens its own connection, commits on success and always closes.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from answers import answer_slots

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS people (
    id TEXT PRIMARY KEY,
    display_name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sections (
    id TEXT PRIMARY KEY,
    key TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL,
    sort_order INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS questions (
    id TEXT PRIMARY KEY,
    person_id TEXT NOT NULL,
    section_id TEXT NOT NULL,
    prompt TEXT NOT NULL,
    type TEXT NOT NULL,
    options TEXT NOT NULL DEFAULT '{}',
    sort_order INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS answers (
    person_id TEXT NOT NULL,
    question_id TEXT NOT NULL,
    answer_date TEXT NOT NULL,
    value_bool INTEGER,
    value_num REAL,
    value_text TEXT,
    value_json TEXT,
    updated_at TEXT NOT NULL,
    UNIQUE (person_id, question_id, answer_date)
);

CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    person_id TEXT NOT NULL,
    title TEXT NOT NULL,
    due_date TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'todo',
    created_at TEXT NOT NULL
);
"""

QUESTION_FIELDS = ("prompt", "type", "options", "is_active", "sort_order", "section_id")


class StoreError(Exception):
    """Raised when the underlying database operation fails."""


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _iso(value: date | str) -> str:
    return value.isoformat() if isinstance(value, date) else value


def _load_json(raw: str | None, default: Any = None) -> Any:
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring unreadable JSON column value: %r", raw[:80])
        return default


def _question_row(row: sqlite3.Row) -> dict:
    question = dict(row)
    question["options"] = _load_json(question.get("options"), {}) or {}
    question["is_active"] = bool(question["is_active"])
    return question


def _answer_row(row: sqlite3.Row) -> dict:
    answer = dict(row)
    if answer.get("value_bool") is not None:
        answer["value_bool"] = bool(answer["value_bool"])
    answer["value_json"] = _load_json(answer.get("value_json"))
    return answer


class HabitStore:
    """Datastore handle bound to one SQLite database file."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreError(str(exc)) from exc
        finally:
            conn.close()

    def init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA)
        logger.info("Habit store ready at %s", self.db_path)

    # -- people ---------------------------------------------------------

    def create_person(self, display_name: str) -> dict:
        person = {"id": _new_id(), "display_name": display_name}
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO people (id, display_name) VALUES (?, ?)",
                (person["id"], person["display_name"]),
            )
        return person

    def list_people(self) -> list[dict]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, display_name FROM people ORDER BY display_name"
            ).fetchall()
        return [dict(r) for r in rows]

    def get_person(self, person_id: str) -> dict | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, display_name FROM people WHERE id = ?", (person_id,)
            ).fetchone()
        return dict(row) if row else None

    # -- sections -------------------------------------------------------

    def create_section(self, key: str, title: str, sort_order: int = 0) -> dict:
        section = {"id": _new_id(), "key": key, "title": title, "sort_order": sort_order}
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO sections (id, key, title, sort_order) VALUES (?, ?, ?, ?)",
                (section["id"], key, title, sort_order),
            )
        return section

    def list_sections(self) -> list[dict]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM sections ORDER BY sort_order").fetchall()
        return [dict(r) for r in rows]

    # -- questions ------------------------------------------------------

    def list_questions(self, person_id: str, include_inactive: bool = False) -> list[dict]:
        """Questions for a person ordered by sort_order; active ones only by default."""
        query = "SELECT * FROM questions WHERE person_id = ?"
        if not include_inactive:
            query += " AND is_active = 1"
        query += " ORDER BY sort_order"
        with self._connect() as conn:
            rows = conn.execute(query, (person_id,)).fetchall()
        return [_question_row(r) for r in rows]

    def get_question(self, person_id: str, question_id: str) -> dict | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM questions WHERE id = ? AND person_id = ?",
                (question_id, person_id),
            ).fetchone()
        return _question_row(row) if row else None

    def create_question(
        self,
        person_id: str,
        section_id: str,
        prompt: str = "New question",
        type: str = "checkbox",
        options: dict | None = None,
        sort_order: int | None = None,
    ) -> dict:
        """Insert a question, appending it to the end of its section by default."""
        prompt = (prompt or "").strip() or "New question"
        with self._connect() as conn:
            if sort_order is None:
                row = conn.execute(
                    "SELECT MAX(sort_order) AS top FROM questions "
                    "WHERE person_id = ? AND section_id = ?",
                    (person_id, section_id),
                ).fetchone()
                sort_order = (row["top"] or 0) + 1
            question_id = _new_id()
            conn.execute(
                "INSERT INTO questions "
                "(id, person_id, section_id, prompt, type, options, sort_order, is_active) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, 1)",
                (
                    question_id,
                    person_id,
                    section_id,
                    prompt,
                    type,
                    json.dumps(options or {}),
                    sort_order,
                ),
            )
            row = conn.execute("SELECT * FROM questions WHERE id = ?", (question_id,)).fetchone()
        return _question_row(row)

    def update_question(self, person_id: str, question_id: str, **fields: Any) -> dict | None:
        """Apply a partial update; unknown field names are ignored.

        Returns the updated question, or None if it does not belong to
        *person_id*.
        """
        updates = {k: v for k, v in fields.items() if k in QUESTION_FIELDS}
        if "prompt" in updates:
            updates["prompt"] = (updates["prompt"] or "").strip() or "Untitled question"
        if "options" in updates:
            updates["options"] = json.dumps(updates["options"] or {})
        if "is_active" in updates:
            updates["is_active"] = int(bool(updates["is_active"]))

        with self._connect() as conn:
            if updates:
                assignments = ", ".join(f"{column} = ?" for column in updates)
                conn.execute(
                    f"UPDATE questions SET {assignments} WHERE id = ? AND person_id = ?",
                    (*updates.values(), question_id, person_id),
                )
            row = conn.execute(
                "SELECT * FROM questions WHERE id = ? AND person_id = ?",
                (question_id, person_id),
            ).fetchone()
        return _question_row(row) if row else None

    def delete_question(self, person_id: str, question_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM answers WHERE question_id = ? AND person_id = ?",
                (question_id, person_id),
            )
            conn.execute(
                "DELETE FROM questions WHERE id = ? AND person_id = ?",
                (question_id, person_id),
            )

    def move_question(self, person_id: str, question_id: str, direction: str) -> bool:
        """Swap a question's sort_order with its neighbour in the same section.

        Moving past either end of the section is a no-op.

        Args:
            person_id: Owner of the question.
            question_id: Question to move.
            direction: "up" (earlier) or "down" (later).

        Returns:
            False if the question does not exist for this person, else True.
        """
        with self._connect() as conn:
            current = conn.execute(
                "SELECT id, section_id FROM questions WHERE id = ? AND person_id = ?",
                (question_id, person_id),
            ).fetchone()
            if current is None:
                return False

            siblings = conn.execute(
                "SELECT id, sort_order FROM questions "
                "WHERE person_id = ? AND section_id = ? ORDER BY sort_order",
                (person_id, current["section_id"]),
            ).fetchall()
            index = next(i for i, row in enumerate(siblings) if row["id"] == question_id)
            target = index - 1 if direction == "up" else index + 1
            if target < 0 or target >= len(siblings):
                return True

            mine, theirs = siblings[index], siblings[target]
            conn.execute(
                "UPDATE questions SET sort_order = ? WHERE id = ?",
                (theirs["sort_order"], mine["id"]),
            )
            conn.execute(
                "UPDATE questions SET sort_order = ? WHERE id = ?",
                (mine["sort_order"], theirs["id"]),
            )
        return True

    # -- answers --------------------------------------------------------

    def list_answers(
        self,
        person_id: str,
        start: date | str,
        end: date | str,
        question_id: str | None = None,
    ) -> list[dict]:
        """Answers with answer_date in [start, end], oldest first."""
        query = (
            "SELECT * FROM answers WHERE person_id = ? "
            "AND answer_date >= ? AND answer_date <= ?"
        )
        params: list[Any] = [person_id, _iso(start), _iso(end)]
        if question_id is not None:
            query += " AND question_id = ?"
            params.append(question_id)
        query += " ORDER BY answer_date"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_answer_row(r) for r in rows]

    def list_answers_on(self, person_id: str, day: date | str) -> list[dict]:
        return self.list_answers(person_id, day, day)

    def upsert_answer(self, person_id: str, question: dict, day: date | str, value: Any) -> None:
        """Store *value* in the slot matching the question's type.

        Raises:
            ValueError: If the value does not fit the question's type.
        """
        slots = answer_slots(question["type"], value)
        if slots["value_bool"] is not None:
            slots["value_bool"] = int(slots["value_bool"])
        if slots["value_json"] is not None:
            slots["value_json"] = json.dumps(slots["value_json"])

        with self._connect() as conn:
            conn.execute(
                "INSERT INTO answers (person_id, question_id, answer_date, "
                "value_bool, value_num, value_text, value_json, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT (person_id, question_id, answer_date) DO UPDATE SET "
                "value_bool = excluded.value_bool, value_num = excluded.value_num, "
                "value_text = excluded.value_text, value_json = excluded.value_json, "
                "updated_at = excluded.updated_at",
                (
                    person_id,
                    question["id"],
                    _iso(day),
                    slots["value_bool"],
                    slots["value_num"],
                    slots["value_text"],
                    slots["value_json"],
                    _now(),
                ),
            )

    # -- tasks ----------------------------------------------------------

    def create_task(self, person_id: str, title: str, due_date: date | str) -> dict:
        task = {
            "id": _new_id(),
            "person_id": person_id,
            "title": title,
            "due_date": _iso(due_date),
            "status": "todo",
            "created_at": _now(),
        }
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO tasks (id, person_id, title, due_date, status, created_at) "
                "VALUES (:id, :person_id, :title, :due_date, :status, :created_at)",
                task,
            )
        return task

    def list_tasks(self, person_id: str, start: date | str, end: date | str) -> list[dict]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE person_id = ? "
                "AND due_date >= ? AND due_date <= ? ORDER BY due_date, created_at",
                (person_id, _iso(start), _iso(end)),
            ).fetchall()
        return [dict(r) for r in rows]

    def set_task_status(self, person_id: str, task_id: str, status: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE tasks SET status = ? WHERE id = ? AND person_id = ?",
                (status, task_id, person_id),
            )
        return cur.rowcount > 0

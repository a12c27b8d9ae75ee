"""Shared test helpers for habit tracker tests.

Regular functions (not fixtures) that can be imported by any test module.
"""

from __future__ import annotations

from datetime import date, timedelta


def make_question(
    qid: str,
    qtype: str,
    prompt: str | None = None,
    options: dict | None = None,
    sort_order: int = 0,
) -> dict:
    """Build a question row as returned by HabitStore.list_questions."""
    return {
        "id": qid,
        "person_id": "p1",
        "section_id": "s1",
        "prompt": prompt or qid,
        "type": qtype,
        "options": options or {},
        "sort_order": sort_order,
        "is_active": True,
    }


def make_answer(question_id: str, day: str, **slots) -> dict:
    """Build a stored answer row; pass value_bool/value_num/value_text/value_json."""
    row = {
        "person_id": "p1",
        "question_id": question_id,
        "answer_date": day,
        "value_bool": None,
        "value_num": None,
        "value_text": None,
        "value_json": None,
    }
    row.update(slots)
    return row


def iso_days(start: str, count: int) -> list[str]:
    """*count* consecutive ISO dates starting at *start*."""
    first = date.fromisoformat(start)
    return [(first + timedelta(days=i)).isoformat() for i in range(count)]

"""Daily check-in view: one person's questions, answers and tasks for a day."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from answers import CHECKBOX, NUMBER, RATING, SELECT, TEXT_LONG, TEXT_SHORT, project_answer

ROUTINE_SECTION_KEY = "routine"

_TYPE_RANK = {
    CHECKBOX: 0,
    NUMBER: 1,
    RATING: 1,
    SELECT: 2,
    TEXT_SHORT: 3,
    TEXT_LONG: 4,
}


def sort_questions_by_type(questions: list[dict]) -> list[dict]:
    """Order questions by type group, then by their own sort_order.

    Unknown types sort after every known type.
    """
    return sorted(
        questions,
        key=lambda q: (_TYPE_RANK.get(q.get("type"), 99), q.get("sort_order", 0)),
    )


def group_questions_by_type(questions: list[dict]) -> dict[str, list[dict]]:
    """Split questions into the four groups the check-in page renders."""
    groups: dict[str, list[dict]] = {
        "checkbox": [],
        "number_rating": [],
        "select": [],
        "text": [],
    }
    for question in questions:
        qtype = question.get("type")
        if qtype == CHECKBOX:
            groups["checkbox"].append(question)
        elif qtype in (NUMBER, RATING):
            groups["number_rating"].append(question)
        elif qtype == SELECT:
            groups["select"].append(question)
        else:
            groups["text"].append(question)
    return {name: sort_questions_by_type(items) for name, items in groups.items()}


def project_answer_map(questions: list[dict], answers: list[dict]) -> dict[str, Any]:
    """Map question id -> projected value for the answers given on one day.

    Answers whose question is not in *questions* (inactive or deleted) are
    projected through the opaque fallback slot.
    """
    types = {q["id"]: q.get("type") for q in questions}
    return {
        a["question_id"]: project_answer(types.get(a["question_id"]), a)
        for a in answers
    }


def compute_routine_completion(
    sections: list[dict], questions: list[dict], answer_map: dict[str, Any]
) -> dict[str, int]:
    """Done/total over checkbox questions in the routine section."""
    routine = next((s for s in sections if s.get("key") == ROUTINE_SECTION_KEY), None)
    if routine is None:
        return {"done": 0, "total": 0}
    routine_questions = [
        q for q in questions
        if q.get("section_id") == routine["id"] and q.get("type") == CHECKBOX
    ]
    done = sum(1 for q in routine_questions if answer_map.get(q["id"]))
    return {"done": done, "total": len(routine_questions)}


def build_daily_payload(store, person_id: str, day: date) -> dict[str, Any]:
    """Everything the check-in page needs for *day*.

    Args:
        store: A ``HabitStore``.
        person_id: Active person's id.
        day: The day being filled in.

    Returns:
        Dict with keys: person, sections, questions, answers (question id
        -> value), tasks_today, tasks_tomorrow, tomorrow_date,
        routine_completion and groups (question ids per type group).

    Raises:
        LookupError: If the person does not exist.
    """
    person = store.get_person(person_id)
    if person is None:
        raise LookupError(f"Unknown person: {person_id}")

    tomorrow = day + timedelta(days=1)
    sections = store.list_sections()
    questions = store.list_questions(person_id)
    answers = store.list_answers_on(person_id, day)
    tasks_today = store.list_tasks(person_id, day, day)
    tasks_tomorrow = store.list_tasks(person_id, tomorrow, tomorrow)

    answer_map = project_answer_map(questions, answers)
    groups = group_questions_by_type(questions)

    return {
        "person": person,
        "sections": sections,
        "questions": questions,
        "answers": answer_map,
        "tasks_today": tasks_today,
        "tasks_tomorrow": tasks_tomorrow,
        "tomorrow_date": tomorrow.isoformat(),
        "routine_completion": compute_routine_completion(sections, questions, answer_map),
        "groups": {name: [q["id"] for q in items] for name, items in groups.items()},
    }

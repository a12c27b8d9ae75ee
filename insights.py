"""Insights aggregation for daily habit answers.

Resolves a reporting window, projects stored answers to logical values and
computes per-question statistics, trend series and task completion.
Used by both the CLI (habit_summary.py) and the web API (app.py).

Everything below the "Payload" section is pure: it works on in-memory rows
and never touches the store.
"""

from __future__ import annotations

import calendar
import csv
import json
import logging
import math
import os
from datetime import date, timedelta
from typing import Any, Callable

from answers import (
    CHECKBOX,
    NUMBER,
    RATING,
    SELECT,
    TEXT_LONG,
    TEXT_SHORT,
    finite_number,
    project_answer,
)

logger = logging.getLogger(__name__)

RANGE_KINDS = ("week", "month", "year")

LATEST_TEXT_LIMIT = 10
WATER_TREND_DAYS = 10
WATER_KEYWORD = "water"


# ---------------------------------------------------------------------------
# Date window
# ---------------------------------------------------------------------------

def resolve_window(range_kind: str, anchor: date) -> dict[str, Any]:
    """Resolve a reporting window around *anchor*.

    Args:
        range_kind: One of "week" (ISO week, Monday to Sunday), "month"
            or "year".
        anchor: Reference calendar date.

    Returns:
        Dict with keys: start, end (inclusive ``date`` objects) and days
        (every date from start to end, ascending).

    Raises:
        ValueError: If *range_kind* is not a known range.
    """
    if range_kind == "week":
        start = anchor - timedelta(days=anchor.weekday())
        end = start + timedelta(days=6)
    elif range_kind == "month":
        last_day = calendar.monthrange(anchor.year, anchor.month)[1]
        start = anchor.replace(day=1)
        end = anchor.replace(day=last_day)
    elif range_kind == "year":
        start = date(anchor.year, 1, 1)
        end = date(anchor.year, 12, 31)
    else:
        raise ValueError(f"Unknown range: {range_kind!r}")

    return {"start": start, "end": end, "days": days_between(start, end)}


def days_between(start: date, end: date) -> list[date]:
    """Return every calendar date from *start* to *end* inclusive."""
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def parse_anchor(value: str | None, default: date | None = None) -> date:
    """Parse an ISO ``YYYY-MM-DD`` anchor string.

    Falls back to *default* (today when not given) for empty input.

    Raises:
        ValueError: If *value* is not a valid calendar date.
    """
    if not value:
        return default or date.today()
    if not isinstance(value, str):
        raise ValueError(f"Not an ISO date string: {value!r}")
    return date.fromisoformat(value)


# ---------------------------------------------------------------------------
# Small numeric helpers
# ---------------------------------------------------------------------------

def _percent(part: int, whole: int) -> int:
    """Whole-number percentage, rounding halves up; 0 for an empty whole."""
    if not whole:
        return 0
    return math.floor(part / whole * 100 + 0.5)


def _plain_number(value: float | int) -> float | int:
    """Integral floats as ints, so 2.0 serializes as 2."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _number_label(value: float | int) -> str:
    """Stringify a number the way it is shown to users ("3", not "3.0")."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _answer_date(answer: dict) -> str:
    value = answer.get("answer_date")
    return value.isoformat() if isinstance(value, date) else str(value)


def _answers_by_date(question_type: str, answers: list[dict]) -> dict[str, Any]:
    """Map ISO date -> projected value, one entry per answered day."""
    return {_answer_date(a): project_answer(question_type, a) for a in answers}


# ---------------------------------------------------------------------------
# Per-type statistics
# ---------------------------------------------------------------------------

def compute_checkbox_stats(
    question: dict, answers: list[dict], days: list[date], anchor: date
) -> dict[str, Any]:
    """Completion rate and current streak for a checkbox question.

    The streak walks the window from its last day backwards, skipping any
    day after *anchor*, and stops at the first day not answered True.
    """
    by_date = _answers_by_date(CHECKBOX, answers)
    true_count = sum(1 for value in by_date.values() if value)

    streak = 0
    for day in reversed(days):
        if day > anchor:
            continue
        if by_date.get(day.isoformat()):
            streak += 1
        else:
            break

    return {
        "completion_rate": _percent(true_count, len(days)),
        "current_streak": streak,
    }


def compute_number_stats(
    question: dict, answers: list[dict], days: list[date], anchor: date
) -> dict[str, Any]:
    """Sum, average, minimum and maximum over finite numeric answers.

    Returns all zeros when there are no usable values.
    """
    nums = [n for n in (project_answer(NUMBER, a) for a in answers) if n is not None]
    if not nums:
        return {"stats": {"sum": 0, "avg": 0, "min": 0, "max": 0}}

    total = sum(nums)
    return {
        "stats": {
            "sum": round(total, 2),
            "avg": round(total / len(nums), 2),
            "min": _plain_number(min(nums)),
            "max": _plain_number(max(nums)),
        }
    }


def _options(question: dict) -> dict:
    """The question's options bag; anything but a dict reads as empty."""
    options = question.get("options")
    return options if isinstance(options, dict) else {}


def _list_option(options: dict, key: str) -> list:
    value = options.get(key)
    return value if isinstance(value, list) else []


def _scale_bound(value: Any, default: int) -> int:
    number = finite_number(value)
    if number is None or not float(number).is_integer():
        return default
    return int(number)


def _rating_scale(question: dict) -> tuple[int, int, list]:
    """(min, max, labels) for a rating question, defaulting to a 1-5 scale."""
    options = _options(question)
    low = _scale_bound(options.get("min"), 1)
    high = _scale_bound(options.get("max"), 5)
    return low, high, _list_option(options, "labels")


def _rating_label(value: float | int, low: int, labels: list) -> str:
    """Label for a rating value: the configured label, else the number itself."""
    offset = value - low
    if float(offset).is_integer() and 0 <= offset < len(labels):
        label = labels[int(offset)]
        if label is not None:
            return str(label)
    return _number_label(value)


def _rating_distribution(question: dict, answers: list[dict]) -> dict[str, int]:
    low, high, labels = _rating_scale(question)
    distribution = {_rating_label(i, low, labels): 0 for i in range(low, high + 1)}

    for answer in answers:
        value = project_answer(RATING, answer)
        if value is None:
            continue
        label = _rating_label(value, low, labels)
        if label not in distribution:
            logger.warning(
                "Rating %s for question %s is outside its %s-%s scale; not counted",
                _number_label(value),
                question.get("id"),
                low,
                high,
            )
            continue
        distribution[label] += 1
    return distribution


def _select_distribution(question: dict, answers: list[dict]) -> dict[str, int]:
    choices = _list_option(_options(question), "choices")
    distribution = {str(choice): 0 for choice in choices}

    for answer in sorted(answers, key=_answer_date):
        label = project_answer(SELECT, answer)
        if not label:
            continue
        distribution[label] = distribution.get(label, 0) + 1
    return distribution


def _distribution_items(distribution: dict[str, int]) -> list[dict]:
    return [{"label": label, "count": count} for label, count in distribution.items()]


def compute_rating_stats(
    question: dict, answers: list[dict], days: list[date], anchor: date
) -> dict[str, Any]:
    """Bucket counts for every point on the rating scale, zeros included."""
    return {"distribution": _distribution_items(_rating_distribution(question, answers))}


def compute_select_stats(
    question: dict, answers: list[dict], days: list[date], anchor: date
) -> dict[str, Any]:
    """Counts per declared choice, plus any undeclared answers seen."""
    return {"distribution": _distribution_items(_select_distribution(question, answers))}


def compute_text_stats(
    question: dict, answers: list[dict], days: list[date], anchor: date
) -> dict[str, Any]:
    """Count of non-empty entries and the latest ten, newest first."""
    qtype = question.get("type")
    entries = []
    for answer in answers:
        text = project_answer(qtype, answer)
        if text:
            entries.append({"date": _answer_date(answer), "value": text})
    entries.sort(key=lambda e: e["date"], reverse=True)
    return {"count": len(entries), "latest": entries[:LATEST_TEXT_LIMIT]}


StatsFn = Callable[[dict, list, list, date], dict]

_STATS_BY_TYPE: dict[str, StatsFn] = {
    CHECKBOX: compute_checkbox_stats,
    NUMBER: compute_number_stats,
    RATING: compute_rating_stats,
    SELECT: compute_select_stats,
    TEXT_SHORT: compute_text_stats,
    TEXT_LONG: compute_text_stats,
}


# ---------------------------------------------------------------------------
# Trend series
# ---------------------------------------------------------------------------

def build_day_series(
    question_type: str, answers: list[dict], days: list[date]
) -> list[dict]:
    """One ``{date, value}`` point per day, ``None`` where unanswered.

    Checkbox values are reported as 1/0 so they chart on a numeric axis.
    """
    by_date = _answers_by_date(question_type, answers)
    points = []
    for day in days:
        key = day.isoformat()
        if key not in by_date:
            value = None
        elif question_type == CHECKBOX:
            value = 1 if by_date[key] else 0
        else:
            value = by_date[key]
        points.append({"date": key, "value": value})
    return points


def build_option_trend(
    question: dict, answers: list[dict], days: list[date], labels: list[str]
) -> dict[str, Any]:
    """Per-option daily indicator series for rating and select questions.

    Args:
        question: The rating or select question.
        answers: Its answers inside the window.
        days: Window days, ascending.
        labels: Series keys, normally the distribution labels.

    Returns:
        Dict with keys: labels, and points (one per day) where ``counts``
        maps every label to 1 or 0 on answered days and to None on days
        without an answer.
    """
    qtype = question.get("type")
    if qtype == RATING:
        low, _, rating_labels = _rating_scale(question)

    chosen: dict[str, str] = {}
    for answer in answers:
        value = project_answer(qtype, answer)
        if qtype == RATING:
            if value is None:
                continue
            label = _rating_label(value, low, rating_labels)
        else:
            if not value:
                continue
            label = value
        chosen[_answer_date(answer)] = label

    points = []
    for day in days:
        key = day.isoformat()
        if key in chosen:
            counts = {label: int(chosen[key] == label) for label in labels}
        else:
            counts = dict.fromkeys(labels)
        points.append({"date": key, "counts": counts})
    return {"labels": list(labels), "points": points}


def find_water_question(questions: list[dict]) -> dict | None:
    """First number question whose prompt mentions water, if any."""
    for question in questions:
        prompt = question.get("prompt") or ""
        if question.get("type") == NUMBER and WATER_KEYWORD in prompt.lower():
            return question
    return None


def water_trend_window(anchor: date) -> tuple[date, date]:
    """The fixed ten-day window ending on *anchor*."""
    return anchor - timedelta(days=WATER_TREND_DAYS - 1), anchor


def build_water_trend(
    question: dict | None, answers: list[dict], anchor: date
) -> dict[str, Any] | None:
    """Ten-day water intake series ending at *anchor*, or None without a question."""
    if question is None:
        return None
    start, end = water_trend_window(anchor)
    own = [a for a in answers if a.get("question_id") == question.get("id")]
    return {
        "id": question.get("id"),
        "prompt": question.get("prompt"),
        "points": build_day_series(NUMBER, own, days_between(start, end)),
    }


# ---------------------------------------------------------------------------
# Question and task summaries
# ---------------------------------------------------------------------------

def compute_question_insight(
    question: dict, answers: list[dict], days: list[date], anchor: date
) -> dict[str, Any]:
    """Statistics and trend for one question.

    Args:
        question: Question row with id, prompt, type and options.
        answers: Stored answer rows for this question inside the window.
        days: Window days, ascending.
        anchor: Anchor date of the request.

    Returns:
        Dict with id, prompt and type plus the type's statistics.  Unknown
        types get no statistics.
    """
    qtype = question.get("type")
    result: dict[str, Any] = {
        "id": question.get("id"),
        "prompt": question.get("prompt"),
        "type": qtype,
    }

    stats_fn = _STATS_BY_TYPE.get(qtype)
    if stats_fn is None:
        return result
    result.update(stats_fn(question, answers, days, anchor))

    if qtype in (CHECKBOX, NUMBER):
        result["trend"] = build_day_series(qtype, answers, days)
    elif qtype in (RATING, SELECT):
        labels = [item["label"] for item in result["distribution"]]
        result["option_trend"] = build_option_trend(question, answers, days, labels)
    return result


def compute_task_summary(tasks: list[dict]) -> dict[str, int]:
    """Completed/total counts and completion percentage for *tasks*."""
    completed = sum(1 for task in tasks if task.get("status") == "done")
    total = len(tasks)
    return {"completed": completed, "total": total, "rate": _percent(completed, total)}


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------

def assemble_insights(
    person: dict | None,
    range_kind: str,
    anchor: date,
    questions: list[dict],
    answers: list[dict],
    tasks: list[dict],
    water_answers: list[dict] | None = None,
) -> dict[str, Any]:
    """Build the insights payload from an already-fetched snapshot.

    Args:
        person: Person row (id, display_name) or None.
        range_kind: "week", "month" or "year".
        anchor: Anchor date.
        questions: Active questions for the person, in display order.
        answers: All of the person's answers inside the window.
        tasks: The person's tasks due inside the window.
        water_answers: Answers for the water question over its fixed
            ten-day window.  Ignored when there is no water question.

    Returns:
        Dict with keys: person, range, anchor, window (start/end ISO
        strings), waterTrend, questions and tasks.
    """
    window = resolve_window(range_kind, anchor)
    days = window["days"]

    by_question: dict[Any, list[dict]] = {}
    for answer in sorted(answers, key=_answer_date):
        by_question.setdefault(answer.get("question_id"), []).append(answer)

    question_stats = [
        compute_question_insight(q, by_question.get(q.get("id"), []), days, anchor)
        for q in questions
    ]

    return {
        "person": person,
        "range": range_kind,
        "anchor": anchor.isoformat(),
        "window": {
            "start": window["start"].isoformat(),
            "end": window["end"].isoformat(),
        },
        "waterTrend": build_water_trend(
            find_water_question(questions), water_answers or [], anchor
        ),
        "questions": question_stats,
        "tasks": compute_task_summary(tasks),
    }


def build_insights_payload(
    store, person_id: str, range_kind: str, anchor: date
) -> dict[str, Any]:
    """One-call entry point: read the person's snapshot and assemble insights.

    Every read happens before any computation, so a store failure aborts
    the whole request without a partial payload.

    Args:
        store: A ``HabitStore`` (or anything with the same read methods).
        person_id: Active person's id.
        range_kind: "week", "month" or "year".
        anchor: Anchor date.

    Returns:
        The payload from ``assemble_insights``.

    Raises:
        LookupError: If the person does not exist.
        store.StoreError: If any read fails.
    """
    window = resolve_window(range_kind, anchor)
    start, end = window["start"], window["end"]

    person = store.get_person(person_id)
    if person is None:
        raise LookupError(f"Unknown person: {person_id}")
    questions = store.list_questions(person_id)
    answers = store.list_answers(person_id, start, end)
    tasks = store.list_tasks(person_id, start, end)

    water_answers: list[dict] = []
    water = find_water_question(questions)
    if water is not None:
        water_start, water_end = water_trend_window(anchor)
        water_answers = store.list_answers(
            person_id, water_start, water_end, question_id=water["id"]
        )

    return assemble_insights(
        person, range_kind, anchor, questions, answers, tasks, water_answers
    )


# ---------------------------------------------------------------------------
# CLI helpers (used by habit_summary.py)
# ---------------------------------------------------------------------------

_STATS_CSV_FIELDS = [
    "id",
    "prompt",
    "type",
    "completion_rate",
    "current_streak",
    "sum",
    "avg",
    "min",
    "max",
    "count",
]


def _stats_row(question: dict) -> dict[str, Any]:
    row = {field: question.get(field, "") for field in _STATS_CSV_FIELDS}
    for key, value in (question.get("stats") or {}).items():
        row[key] = value
    return row


def save_insights_files(payload: dict[str, Any], output_dir: str = "habit_insights") -> None:
    """Write insights.json and question_stats.csv to *output_dir*.

    Args:
        payload: Insights payload from ``assemble_insights``.
        output_dir: Directory for output files.  Created if it doesn't
            exist.  Defaults to "habit_insights".
    """
    os.makedirs(output_dir, exist_ok=True)

    with open(f"{output_dir}/insights.json", "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)

    with open(f"{output_dir}/question_stats.csv", "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=_STATS_CSV_FIELDS)
        writer.writeheader()
        writer.writerows(_stats_row(q) for q in payload["questions"])


def print_insights_report(payload: dict[str, Any]) -> None:
    """Print a human-readable insights report to stdout.

    Args:
        payload: Insights payload from ``assemble_insights``.
    """
    person = payload.get("person") or {}
    window = payload["window"]
    tasks = payload["tasks"]

    print(f"\n{'=' * 60}")
    print(f"Habit Insights: {person.get('display_name', 'unknown')}")
    print(f"{'=' * 60}")
    print(f"Range: {payload['range']} ({window['start']} to {window['end']})")
    print(f"Anchor: {payload['anchor']}")
    print(f"Tasks: {tasks['completed']}/{tasks['total']} completed ({tasks['rate']}%)")

    if payload["questions"]:
        print(f"\n{'-' * 60}")
        for q in payload["questions"]:
            qtype = q["type"]
            if qtype == CHECKBOX:
                detail = f"{q['completion_rate']}% done, streak {q['current_streak']}"
            elif qtype == NUMBER:
                s = q["stats"]
                detail = f"sum {s['sum']}, avg {s['avg']}, min {s['min']}, max {s['max']}"
            elif qtype in (RATING, SELECT):
                detail = ", ".join(f"{d['label']}: {d['count']}" for d in q["distribution"])
            elif qtype in (TEXT_SHORT, TEXT_LONG):
                detail = f"{q['count']} entries"
            else:
                detail = "no statistics"
            print(f"  {q['prompt']} [{qtype}]: {detail}")

    water = payload.get("waterTrend")
    if water:
        logged = [p for p in water["points"] if p["value"] is not None]
        print(f"\nWater (last {WATER_TREND_DAYS} days): {len(logged)} days logged")
        for point in logged:
            print(f"  {point['date']}: {_number_label(point['value'])}")

    print(f"{'=' * 60}")

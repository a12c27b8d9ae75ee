"""Typed value slots for stored answers.

Every answer row carries four value slots (value_bool, value_num,
value_text, value_json).  Which slot holds the real value is decided by the
owning question's type; this module is the single place that knows the
mapping, in both directions:

* ``project_answer`` reads a stored row back into one logical value.
* ``answer_slots`` turns an incoming request value into the slot columns
  to write.
"""

from __future__ import annotations

import math
from typing import Any

CHECKBOX = "checkbox"
NUMBER = "number"
RATING = "rating"
SELECT = "select"
TEXT_SHORT = "text_short"
TEXT_LONG = "text_long"

QUESTION_TYPES = (CHECKBOX, NUMBER, RATING, SELECT, TEXT_SHORT, TEXT_LONG)

SLOT_COLUMNS = ("value_bool", "value_num", "value_text", "value_json")

_SLOT_BY_TYPE = {
    CHECKBOX: "value_bool",
    NUMBER: "value_num",
    RATING: "value_num",
    SELECT: "value_text",
    TEXT_SHORT: "value_text",
    TEXT_LONG: "value_text",
}


def slot_for(question_type: str) -> str:
    """Return the slot column that holds values for *question_type*.

    Unknown (custom) types fall back to the opaque ``value_json`` slot.
    """
    return _SLOT_BY_TYPE.get(question_type, "value_json")


def finite_number(value: Any) -> float | int | None:
    """Return *value* if it is a finite real number, else None.

    Booleans are not numbers here even though ``bool`` subclasses ``int``.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def project_answer(question_type: str, answer: dict | None) -> Any:
    """Map a stored answer row to the logical value for *question_type*.

    Args:
        question_type: The owning question's declared type.
        answer: Stored answer row with any of the four slot keys, or None
            when the day has no row.

    Returns:
        ``bool`` for checkbox (False when empty), a finite number or None
        for number/rating, ``str`` for select and text types ("" when
        empty), and the raw ``value_json`` for any other type.
    """
    answer = answer or {}
    slot = slot_for(question_type)
    raw = answer.get(slot)

    if slot == "value_bool":
        return bool(raw) if raw is not None else False
    if slot == "value_num":
        return finite_number(raw)
    if slot == "value_text":
        return raw if isinstance(raw, str) else ""
    return raw


def answer_slots(question_type: str, value: Any) -> dict[str, Any]:
    """Build the slot columns to store *value* for a question of *question_type*.

    Exactly one slot is populated; the remaining three are set to None so
    an upsert overwrites stale values from a previous type.

    Raises:
        ValueError: If a number/rating value cannot be read as a finite
            number.
    """
    slots: dict[str, Any] = dict.fromkeys(SLOT_COLUMNS)
    slot = slot_for(question_type)

    if slot == "value_bool":
        slots[slot] = bool(value)
    elif slot == "value_num":
        if value is None or value == "":
            slots[slot] = None
        else:
            try:
                number = float(value)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Not a number: {value!r}") from exc
            if not math.isfinite(number):
                raise ValueError(f"Not a finite number: {value!r}")
            slots[slot] = number
    elif slot == "value_text":
        slots[slot] = "" if value is None else str(value)
    else:
        slots[slot] = value
    return slots

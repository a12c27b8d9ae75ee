"""Tests for answers.py value-slot projection."""

import math

import pytest

from answers import QUESTION_TYPES, answer_slots, project_answer, slot_for


class TestProjectAnswer:
    def test_checkbox_true(self):
        assert project_answer("checkbox", {"value_bool": True}) is True

    def test_checkbox_defaults_false(self):
        assert project_answer("checkbox", {"value_bool": None}) is False
        assert project_answer("checkbox", {}) is False
        assert project_answer("checkbox", None) is False

    def test_number_and_rating(self):
        assert project_answer("number", {"value_num": 2.5}) == 2.5
        assert project_answer("rating", {"value_num": 4}) == 4

    def test_number_missing_is_none(self):
        assert project_answer("number", {"value_num": None}) is None
        assert project_answer("rating", {}) is None

    def test_non_finite_number_is_none(self):
        assert project_answer("number", {"value_num": math.nan}) is None
        assert project_answer("number", {"value_num": math.inf}) is None

    def test_text_types_default_empty_string(self):
        for qtype in ("select", "text_short", "text_long"):
            assert project_answer(qtype, {"value_text": None}) == ""
            assert project_answer(qtype, {"value_text": "hi"}) == "hi"

    def test_custom_type_uses_json_slot(self):
        assert project_answer("mood_board", {"value_json": {"a": 1}}) == {"a": 1}
        assert project_answer("mood_board", {}) is None

    def test_ignores_other_slots(self):
        answer = {"value_bool": True, "value_num": 3, "value_text": "x"}
        assert project_answer("number", answer) == 3
        assert project_answer("select", answer) == "x"

    def test_total_over_declared_types(self):
        for qtype in QUESTION_TYPES:
            project_answer(qtype, {})


class TestAnswerSlots:
    def test_exactly_one_slot_populated(self):
        slots = answer_slots("text_short", "hello")
        assert slots == {
            "value_bool": None,
            "value_num": None,
            "value_text": "hello",
            "value_json": None,
        }

    def test_checkbox_coerces_to_bool(self):
        assert answer_slots("checkbox", 1)["value_bool"] is True
        assert answer_slots("checkbox", None)["value_bool"] is False

    def test_number_empty_string_is_none(self):
        assert answer_slots("number", "")["value_num"] is None
        assert answer_slots("rating", None)["value_num"] is None

    def test_number_parses_strings(self):
        assert answer_slots("number", "2.5")["value_num"] == 2.5

    def test_number_rejects_garbage(self):
        with pytest.raises(ValueError):
            answer_slots("number", "lots")

    def test_number_rejects_nan(self):
        with pytest.raises(ValueError):
            answer_slots("number", "nan")

    def test_text_none_is_empty(self):
        assert answer_slots("select", None)["value_text"] == ""

    def test_custom_type_goes_to_json(self):
        assert answer_slots("custom", [1, 2])["value_json"] == [1, 2]

    def test_slot_for_unknown_type(self):
        assert slot_for("whatever") == "value_json"

"""Tests for the signal table, its YAML loader and skip-trigger detection."""

from __future__ import annotations

import re

import pytest

from habits.correction_detection import (
    Category,
    DEFAULT_SIGNAL_TABLE,
    PriorTurnRecord,
    find_skip_trigger,
    is_skip_requested,
    load_signal_table,
    parse_signal_table,
)
from habits.correction_detection.signals import (
    DEFAULT_SKIP_TRIGGERS,
    VALIDATORS,
    is_meaningful_term,
    make_context_signal,
    make_signal,
    strip_quotes,
    term_occurs,
)


def test_default_table_is_well_formed():
    stats = DEFAULT_SIGNAL_TABLE.stats()
    assert stats["signals"] > 20
    assert stats["context_signals"] >= 5
    assert stats["skip_triggers"] >= 5
    for signal in DEFAULT_SIGNAL_TABLE.signals:
        assert 0.0 < signal.weight <= 1.0
    for signal in DEFAULT_SIGNAL_TABLE.context_signals:
        assert signal.base_weight <= signal.context_weight
        assert signal.validator in VALIDATORS


def test_convention_signals_outweigh_fix_language():
    weights = {s.name: s.weight for s in DEFAULT_SIGNAL_TABLE.signals}
    assert weights["we_always_never"] >= 0.8
    assert weights["instead_of"] >= 0.5
    assert weights["fix_this"] < 0.4
    # keyword signals only carry a category
    assert weights["naming_terms"] < 0.2


def test_make_signal_rejects_bad_weights():
    with pytest.raises(ValueError):
        make_signal("zero", r"x", 0.0)
    with pytest.raises(ValueError):
        make_signal("big", r"x", 1.5)


def test_make_context_signal_validation():
    with pytest.raises(ValueError):
        make_context_signal("inverted", r"x", 0.6, 0.3)
    with pytest.raises(ValueError):
        make_context_signal("unknown", r"x", 0.3, 0.6, validator="no_such_check")


def test_strip_quotes():
    assert strip_quotes("`var`") == "var"
    assert strip_quotes('"snake_case"') == "snake_case"
    assert strip_quotes("plain") == "plain"
    assert strip_quotes("`") == "`"


class TestValidators:

    def _match(self, pattern, text):
        return re.search(pattern, text)

    def test_term_in_code_is_case_insensitive(self):
        record = PriorTurnRecord(code_fragments="const Logger = require('x')")
        match = self._match(r"(?P<term>\w+)", "logger")
        assert VALIDATORS["term_in_code"](match, record) is True

    def test_term_in_turn_checks_response_too(self):
        record = PriorTurnRecord(response_text="I switched to axios for requests.")
        match = self._match(r"(?P<term>\w+)", "axios")
        assert VALIDATORS["term_in_turn"](match, record) is True
        assert VALIDATORS["term_in_code"](match, record) is False

    @pytest.mark.parametrize("validator", ["term_in_code", "term_in_turn"])
    @pytest.mark.parametrize("term", ["a", "the", "this", "x"])
    def test_filler_and_single_letter_terms_never_validate(self, validator, term):
        record = PriorTurnRecord(
            code_fragments="const total = items.length // x marks a value",
            response_text="This is the fix.",
        )
        match = self._match(r"(?P<term>\w+)", term)
        assert VALIDATORS[validator](match, record) is False

    def test_terms_match_whole_tokens_only(self):
        record = PriorTurnRecord(code_fragments="const variance = compute(items)")
        assert VALIDATORS["term_in_code"](self._match(r"(?P<term>\w+)", "var"), record) is False
        assert VALIDATORS["term_in_code"](self._match(r"(?P<term>\w+)", "variance"), record) is True

    def test_term_occurs_respects_dollar_identifiers(self):
        assert term_occurs("$scope", "function ctrl($scope) {}") is True
        assert term_occurs("scope", "function ctrl($scope) {}") is False
        assert is_meaningful_term("An") is False
        assert is_meaningful_term("id") is True

    def test_code_written_accepts_file_tool_without_code(self):
        record = PriorTurnRecord(tools_used=frozenset({"Write"}))
        assert VALIDATORS["code_written"](None, record) is True
        assert VALIDATORS["code_written"](None, PriorTurnRecord()) is False

    def test_context_signal_without_validator_always_validates(self):
        signal = make_context_signal("plain", r"hello", 0.3, 0.5)
        assert signal.validate(signal.search("hello"), PriorTurnRecord()) is True


class TestSkipTriggers:

    @pytest.mark.parametrize("message,name", [
        ("just this once, skip the validation", "just_this_once"),
        ("Only this time use print", "only_this_time"),
        ("don't remember this, it's a hack", "dont_remember"),
        ("we can make an exception for the legacy module", "exception"),
        ("it's a one-off script", "one_off"),
        ("temporarily disable the lint rule", "temporary"),
        ("leave the TODO for now", "for_now"),
    ])
    def test_triggers(self, message, name):
        trigger = find_skip_trigger(message)
        assert trigger is not None
        assert trigger.name == name

    @pytest.mark.parametrize("message", [
        "We always use early returns",
        "raise a ValueError exception on bad input",
        "once the tests pass, ship it",
    ])
    def test_non_triggers(self, message):
        assert is_skip_requested(message) is False


class TestYamlLoading:

    def test_missing_path_returns_default(self, tmp_path):
        assert load_signal_table(None) is DEFAULT_SIGNAL_TABLE
        assert load_signal_table(tmp_path / "nope.yaml") is DEFAULT_SIGNAL_TABLE

    def test_loads_custom_table(self, tmp_path):
        path = tmp_path / "signals.yaml"
        path.write_text(
            "version: team-2\n"
            "signals:\n"
            "  - name: house_rule\n"
            "    pattern: '\\bhouse\\s+rule\\b'\n"
            "    weight: 0.9\n"
            "    category: style\n"
            "context_signals:\n"
            "  - name: nope\n"
            "    pattern: '\\bnope\\b'\n"
            "    base_weight: 0.3\n"
            "    context_weight: 0.7\n"
            "    validator: code_written\n",
            encoding="utf-8",
        )
        table = load_signal_table(path)
        assert table.version == "team-2"
        assert [s.name for s in table.signals] == ["house_rule"]
        assert table.signals[0].category_hint == Category.STYLE
        assert table.context_signals[0].validator == "code_written"
        # skip triggers are inherited unless disabled
        assert table.skip_triggers == DEFAULT_SKIP_TRIGGERS

    def test_skip_triggers_can_be_disabled(self):
        table = parse_signal_table({"signals": [], "inherit_skip_triggers": False})
        assert table.skip_triggers == ()
        assert table.version == "custom"

    def test_invalid_yaml_falls_back(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("signals: [unclosed\n", encoding="utf-8")
        assert load_signal_table(path) is DEFAULT_SIGNAL_TABLE

    def test_invalid_entry_falls_back(self, tmp_path):
        path = tmp_path / "heavy.yaml"
        path.write_text(
            "signals:\n  - name: too_heavy\n    pattern: x\n    weight: 3\n",
            encoding="utf-8",
        )
        assert load_signal_table(path) is DEFAULT_SIGNAL_TABLE

    @pytest.mark.parametrize("data", [
        ["not", "a", "mapping"],
        {"signals": [{"name": "no_pattern", "weight": 0.5}]},
        {"signals": [{"name": "bad_regex", "pattern": "(", "weight": 0.5}]},
        {"signals": "not-a-list"},
    ])
    def test_parse_errors_raise_value_error(self, data):
        with pytest.raises(ValueError):
            parse_signal_table(data)

    def test_example_table_in_repo_parses(self):
        from pathlib import Path

        example = Path(__file__).resolve().parent.parent / "config" / "signals.example.yaml"
        table = load_signal_table(example)
        assert table is not DEFAULT_SIGNAL_TABLE
        assert table.stats()["signals"] > 0

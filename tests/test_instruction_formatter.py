"""Tests for the directive text shown after a detected correction."""

from habits.correction_detection import (
    CATEGORY_VALUES,
    Category,
    DetectionResult,
    PriorTurnRecord,
    confidence_label,
    format_instruction,
)
from habits.correction_detection.formatter import HEADER, format_existing_names


def _result(**kwargs):
    defaults = {"is_correction": True, "confidence": 0.85, "category_hints": (Category.STYLE,)}
    defaults.update(kwargs)
    return DetectionResult(**defaults)


def test_confidence_labels():
    assert confidence_label(0.95) == "HIGH"
    assert confidence_label(0.8) == "HIGH"
    assert confidence_label(0.7) == "MEDIUM"
    assert confidence_label(0.6) == "MEDIUM"
    assert confidence_label(0.45) == "LOW"


def test_directive_carries_confidence_and_hints():
    text = format_instruction(_result())
    assert text.startswith(HEADER)
    assert "HIGH 0.85" in text
    assert "Category hints: style" in text
    assert "Context: none" in text
    assert "ask the user for one" in text
    assert " | ".join(CATEGORY_VALUES) in text
    assert "Never invent examples" in text


def test_no_hints_reads_none():
    text = format_instruction(_result(category_hints=(), confidence=0.5))
    assert "Category hints: none" in text
    assert "LOW 0.50" in text


def test_context_lists_at_most_three_file_basenames():
    record = PriorTurnRecord(files_modified=("src/a.js", "lib\\b.py", "c.ts", "d.go"))
    text = format_instruction(_result(has_context=True), record=record)
    assert "Context: compared against your previous response (files: a.js, b.py, c.ts)" in text
    assert "d.go" not in text


def test_context_needs_a_record():
    text = format_instruction(_result(has_context=True), record=None)
    assert "Context: none" in text


def test_bad_example_line():
    text = format_instruction(_result(bad_example="var"))
    assert "Likely bad example: `var`" in text


def test_existing_names_keep_the_most_recent():
    names = [f"rule-{i}" for i in range(15)]
    text = format_instruction(_result(), existing_names=names)
    assert "Existing rules (avoid duplicates): rule-5, " in text
    assert "rule-14" in text
    assert "rule-4," not in text
    assert format_existing_names(names, limit=0) == ""
    assert format_existing_names(["", "a"]) == "a"


def test_no_existing_line_without_rules():
    assert "Existing rules" not in format_instruction(_result(), existing_names=[])

"""Tests for bad-example extraction."""

import pytest

from habits.correction_detection import EXTRACTION_RULES, PriorTurnRecord, extract_bad_example


@pytest.mark.parametrize("message,expected", [
    ("use `const` instead of `var`", "var"),
    ("Use spaces instead of tabs.", "tabs"),
    ("instead of `any`, type it properly", "any"),
    ("please don't use lodash here", "lodash"),
    ("do not use 'print' for logging", "print"),
    ("change getData to fetchData", "getData"),
])
def test_term_rules(message, expected):
    assert extract_bad_example(message) == expected


def test_rule_order_is_fixed():
    assert [r.name for r in EXTRACTION_RULES] == [
        "use_instead_of",
        "instead_of",
        "dont_use",
        "change_to",
        "disagreement_prior_code",
    ]
    # "don't use" outranks "change ... to"
    assert extract_bad_example("don't use var, change foo to bar") == "var"
    # "instead of" outranks "change ... to"
    assert extract_bad_example("change foo to bar instead of baz") == "baz"


def test_disagreement_takes_first_line_of_prior_code():
    record = PriorTurnRecord(
        tools_used=frozenset({"Edit"}),
        code_fragments="\n  const x = eval(input)\nconsole.log(x)",
    )
    assert extract_bad_example("that's wrong, don't do it like that", record) == "const x = eval(input)"


def test_disagreement_needs_a_file_modifying_turn():
    record = PriorTurnRecord(tools_used=frozenset({"Read"}), code_fragments="const x = 1")
    assert extract_bad_example("that's wrong", record) is None
    assert extract_bad_example("that's wrong") is None


def test_no_match_returns_none():
    assert extract_bad_example("We always use early returns") is None
    assert extract_bad_example("") is None
    assert extract_bad_example(None) is None


def test_long_terms_are_truncated():
    term = "x" * 500
    assert len(extract_bad_example(f"don't use `{term}`")) == 200


def test_filler_word_is_not_a_bad_example():
    assert extract_bad_example("please don't use a ternary here") is None
    # a rejected filler term falls through to the next rule
    assert extract_bad_example("don't use the old helper, change getData to fetchData") == "getData"
    assert extract_bad_example("don't use 'the' as a variable name") == "the"

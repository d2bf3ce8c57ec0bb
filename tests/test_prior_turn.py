"""Tests for prior-turn records and transcript capture."""

from __future__ import annotations

import json

from habits.correction_detection import (
    PriorTurnRecord,
    fresh_or_none,
    load_prior_turn,
    save_prior_turn,
)
from habits.correction_detection.prior_turn import parse_timestamp
from habits.transcript import CODE_SEPARATOR, build_prior_turn, read_transcript


NOW = 1_800_000_000.0


def test_parse_timestamp_formats():
    assert parse_timestamp("2027-01-15T08:00:00Z") == parse_timestamp("2027-01-15T08:00:00+00:00")
    assert parse_timestamp(NOW) == NOW
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(True) is None
    assert parse_timestamp("") is None


def test_record_on_disk_shape(tmp_path):
    path = tmp_path / "last-response.json"
    record = PriorTurnRecord(
        session_id="abc",
        response_text="Done.",
        tools_used=frozenset({"Write", "Edit"}),
        files_modified=("src/a.py",),
        code_fragments="x = 1",
        captured_at=NOW,
    )
    save_prior_turn(path, record)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["sessionId"] == "abc"
    assert data["toolsUsed"] == ["Edit", "Write"]
    assert data["filesModified"] == ["src/a.py"]
    assert data["codeWritten"] == "x = 1"
    assert data["timestamp"].endswith("Z")

    loaded = load_prior_turn(path, now=NOW + 10)
    assert loaded == record


def test_stale_record_is_ignored(tmp_path):
    path = tmp_path / "last-response.json"
    save_prior_turn(path, PriorTurnRecord(code_fragments="x", captured_at=NOW))
    assert load_prior_turn(path, max_age_s=300, now=NOW + 360) is None
    assert load_prior_turn(path, max_age_s=300, now=NOW + 300) is not None


def test_missing_and_corrupt_files_read_as_none(tmp_path):
    path = tmp_path / "last-response.json"
    assert load_prior_turn(path, now=NOW) is None
    path.write_text("{not json", encoding="utf-8")
    assert load_prior_turn(path, now=NOW) is None
    path.write_text(json.dumps({"response": "no timestamp"}), encoding="utf-8")
    assert load_prior_turn(path, now=NOW) is None
    path.write_text(json.dumps({"timestamp": NOW, "toolsUsed": "Edit"}), encoding="utf-8")
    assert load_prior_turn(path, now=NOW) is None


def test_fresh_or_none_rejects_non_records():
    assert fresh_or_none({"timestamp": NOW}, now=NOW) is None
    record = PriorTurnRecord(captured_at=NOW)
    assert fresh_or_none(record, now=NOW) is record


def test_used_file_tool():
    assert PriorTurnRecord(tools_used=frozenset({"MultiEdit"})).used_file_tool is True
    assert PriorTurnRecord(tools_used=frozenset({"Read", "Bash"})).used_file_tool is False


# ===== transcript capture =====

def _write_transcript(path, entries):
    lines = [json.dumps(e) if not isinstance(e, str) else e for e in entries]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _assistant(content):
    return {"type": "assistant", "message": {"role": "assistant", "content": content}}


def test_build_prior_turn_from_last_assistant_message(tmp_path):
    transcript = tmp_path / "session.jsonl"
    _write_transcript(transcript, [
        {"type": "user", "message": {"role": "user", "content": "add a helper"}},
        _assistant("An older answer."),
        "{broken line",
        "",
        _assistant([
            {"type": "text", "text": "I added the helper."},
            {"type": "tool_use", "name": "Read", "input": {"file_path": "src/util.js"}},
            {"type": "tool_use", "name": "Edit", "input": {"file_path": "src/util.js", "new_string": "var a = 1"}},
            {"type": "tool_use", "name": "Write", "input": {"file_path": "src/new.js", "content": "export {}"}},
            {"type": "tool_use", "name": "MultiEdit", "input": {
                "file_path": "src/other.js",
                "edits": [{"new_string": "let b = 2"}, {"old_string": "only old"}],
            }},
        ]),
    ])

    record = build_prior_turn("sess-1", transcript, now=NOW)
    assert record is not None
    assert record.session_id == "sess-1"
    assert record.response_text == "I added the helper."
    assert record.tools_used == frozenset({"Read", "Edit", "Write", "MultiEdit"})
    assert record.files_modified == ("src/util.js", "src/new.js", "src/other.js")
    assert record.code_fragments == CODE_SEPARATOR.join(["var a = 1", "export {}", "let b = 2"])
    assert record.captured_at == NOW


def test_plain_string_content_is_text(tmp_path):
    transcript = tmp_path / "session.jsonl"
    _write_transcript(transcript, [_assistant("Just talking.")])
    record = build_prior_turn("s", transcript, now=NOW)
    assert record.response_text == "Just talking."
    assert record.tools_used == frozenset()
    assert record.code_fragments == ""


def test_no_assistant_message_means_no_record(tmp_path):
    transcript = tmp_path / "session.jsonl"
    _write_transcript(transcript, [{"type": "user", "message": {"role": "user", "content": "hi"}}])
    assert build_prior_turn("s", transcript, now=NOW) is None
    assert build_prior_turn("s", tmp_path / "missing.jsonl", now=NOW) is None
    assert read_transcript(tmp_path / "missing.jsonl") == []

# backend/tests/test_session_store.py
import csv
import io
import json
from datetime import date

import pytest

from schemas.session import CodeSnippet, UserContext
from services.session_store import (
    CSV_HEADER,
    SessionStore,
    export_filename,
    iso_ms,
    make_question_answer,
)


def _qa(question="What is a heap?", answer="A tree-shaped priority queue.", **kw):
    kw.setdefault("provider", "openai")
    return make_question_answer(question=question, answer=answer, **kw)


def test_missing_file_starts_empty_and_persists(tmp_path):
    store = SessionStore(str(tmp_path / "nested"))
    assert len(store) == 0
    assert json.loads((tmp_path / "nested" / "sessions.json").read_text()) == []


def test_corrupt_file_starts_empty(tmp_path):
    (tmp_path / "sessions.json").write_text("{not json")
    store = SessionStore(str(tmp_path))
    assert store.list(10) == []


def test_write_through_survives_reload(tmp_path, clock):
    store = SessionStore(str(tmp_path), clock=clock)
    ctx = UserContext(enabled=True, job_title="SRE")
    s = store.create(ctx)
    store.append(s.id, _qa(code_snippets=[CodeSnippet(language="go", code="package main")]))

    reloaded = SessionStore(str(tmp_path), clock=clock)
    got = reloaded.get(s.id)
    assert got is not None
    assert got.context.job_title == "SRE"
    assert got.questions[0].code_snippets[0].language == "go"

    on_disk = json.loads((tmp_path / "sessions.json").read_text())
    assert "startTime" in on_disk[0]
    assert "codeSnippets" in on_disk[0]["questions"][0]


def test_close_stamps_end_time_once(store):
    s = store.create()
    closed = store.close(s.id)
    assert closed.end_time >= closed.start_time
    again = store.close(s.id)
    assert again.end_time == closed.end_time


def test_append_after_close_is_a_noop(store, caplog):
    s = store.create()
    store.close(s.id)
    with caplog.at_level("WARNING"):
        assert store.append(s.id, _qa()) is False
    assert store.get(s.id).questions == []
    assert "closed session" in caplog.text


def test_append_to_unknown_session_is_a_noop(store):
    assert store.append("missing", _qa()) is False


def test_snapshots_are_not_mutated_by_later_writes(store):
    s = store.create()
    before = store.get(s.id)
    store.append(s.id, _qa())
    assert before.questions == []
    assert len(store.get(s.id).questions) == 1


def test_retention_evicts_oldest_on_close(tmp_path, clock):
    cap, extra = 5, 3
    store = SessionStore(str(tmp_path), max_sessions=cap, clock=clock)
    ids = []
    for _ in range(cap + extra):
        s = store.create()
        ids.append(s.id)
        store.close(s.id)

    kept = [s.id for s in store.list(100)]
    assert len(store) == cap
    assert kept == list(reversed(ids[extra:]))


def test_set_max_sessions_trims_immediately(store):
    for _ in range(4):
        store.create()
    store.set_max_sessions(2)
    assert len(store) == 2
    with pytest.raises(ValueError):
        store.set_max_sessions(0)


def test_list_is_newest_first_and_limited(store):
    a = store.create()
    b = store.create()
    c = store.create()
    assert [s.id for s in store.list(2)] == [c.id, b.id]
    assert [s.id for s in store.list(10)] == [c.id, b.id, a.id]


def test_delete_and_clear(store):
    a = store.create()
    store.create()
    assert store.delete(a.id) is True
    assert store.delete(a.id) is False
    assert store.get(a.id) is None
    store.clear()
    assert len(store) == 0


def test_csv_round_trip_with_awkward_text(store):
    s = store.create()
    question = 'Compare "lists", tuples\nand sets'
    store.append(s.id, _qa(question=question, answer="plain", timestamp=1_700_000_000_123))
    store.append(
        s.id,
        _qa(question="second", answer="x", code_snippets=[CodeSnippet(language="python", code="a, b = 1, 2")]),
    )

    content = store.export("csv")
    rows = list(csv.reader(io.StringIO(content)))

    assert rows[0] == CSV_HEADER
    assert rows[1][0] == s.id
    assert rows[1][1] == "2023-11-14T22:13:20.123Z"
    assert rows[1][2] == question
    assert rows[1][4] == ""
    assert json.loads(rows[2][4]) == [{"language": "python", "code": "a, b = 1, 2"}]
    assert rows[2][5:] == ["audio", "full", "openai"]
    # values without special characters stay unquoted
    assert ",second,x," in content


def test_json_export_is_camel_case(store):
    s = store.create()
    store.append(s.id, _qa())
    data = json.loads(store.export("json"))
    assert data[0]["id"] == s.id
    assert data[0]["questions"][0]["question"] == "What is a heap?"


def test_unknown_export_format(store):
    with pytest.raises(ValueError):
        store.export("xml")


def test_helpers():
    assert iso_ms(0) == "1970-01-01T00:00:00.000Z"
    assert export_filename("csv", today=date(2024, 3, 9)) == "interview-sessions-2024-03-09.csv"


def test_write_failure_is_logged_and_state_kept(tmp_path, clock, caplog):
    store = SessionStore(str(tmp_path), clock=clock)
    s = store.create()
    # a directory where the temp file should go makes every write fail
    (tmp_path / "sessions.json.tmp").mkdir()

    with caplog.at_level("ERROR"):
        assert store.append(s.id, _qa()) is True
        closed = store.close(s.id)

    assert closed.end_time is not None
    assert len(store.get(s.id).questions) == 1
    assert "Failed to persist session store" in caplog.text
    on_disk = json.loads((tmp_path / "sessions.json").read_text())
    assert on_disk[0]["questions"] == []

"""Result export: JSON document, spreadsheet-safe CSV, file naming."""
import csv
import io
import json
from datetime import datetime, timezone

from examkit.engine import ExamSession
from examkit.export import (
    BOM,
    CSV_HEADERS,
    build_meta,
    export_filename,
    guard_formula,
    slugify,
    to_csv,
    to_json,
)
from examkit.grader import grade
from examkit.loader import normalize

EXPORTED_AT = datetime(2024, 3, 1, 9, 30, 15, tzinfo=timezone.utc)


def _result(clock):
    questions = normalize([
        {"id": 1, "question": 'Which is "quoted", with a comma?', "options": ["A. yes", "B. no"], "answer": "A"},
        {"id": 2, "question": "=SUM(A1:A2)", "type": "short", "answer": "@home"},
        {"id": 3, "question": "Multi\nline", "type": "short", "answer": "x"},
    ])
    session = ExamSession.start(questions, clock=clock)
    session.answer(1, "A")
    session.answer(2, "-1+1")
    clock.advance(seconds=95)
    session.submit(force=True)
    return grade(session)


def test_meta(clock):
    meta = build_meta(_result(clock), "mid-term.json", "mid term", exported_at=EXPORTED_AT)
    assert meta["bankFile"] == "mid-term.json"
    assert meta["score"] == 33
    assert meta["correctCount"] == 1
    assert meta["totalCount"] == 3
    assert meta["passingScore"] == 60
    assert meta["isPassed"] is False
    assert meta["durationSeconds"] == 95
    assert meta["exportedAt"] == "2024-03-01T09:30:15+00:00"


def test_json_export_structure(clock):
    result = _result(clock)
    doc = json.loads(to_json(result, build_meta(result, "b.json", "b", exported_at=EXPORTED_AT)))
    assert set(doc) == {"meta", "questions"}
    assert [q["no"] for q in doc["questions"]] == [1, 2, 3]
    assert doc["questions"][0] == {
        "no": 1,
        "id": 1,
        "type": "single",
        "question": 'Which is "quoted", with a comma?',
        "givenAnswer": "A",
        "correctAnswer": "A",
        "isCorrect": True,
    }
    assert doc["questions"][2]["givenAnswer"] == ""


def test_csv_has_bom_crlf_and_header(clock):
    result = _result(clock)
    content = to_csv(result, build_meta(result, "b.json", "b", exported_at=EXPORTED_AT))
    assert content.startswith(BOM)
    assert content[len(BOM):].split("\r\n", 1)[0] == ",".join(CSV_HEADERS)
    assert content.endswith("\r\n")


def test_csv_quotes_and_guards_cells(clock):
    result = _result(clock)
    content = to_csv(result, build_meta(result, "b.json", "=cmd|evil", exported_at=EXPORTED_AT))
    rows = list(csv.reader(io.StringIO(content[len(BOM):], newline="")))
    header, first, second, third = rows
    assert header == CSV_HEADERS
    row = dict(zip(header, first))
    assert row["question"] == 'Which is "quoted", with a comma?'
    assert row["isCorrect"] == "true"
    assert row["bankLabel"] == "'=cmd|evil"

    row = dict(zip(header, second))
    assert row["question"] == "'=SUM(A1:A2)"
    assert row["givenAnswer"] == "'-1+1"
    assert row["correctAnswer"] == "'@home"
    assert row["isCorrect"] == "false"

    row = dict(zip(header, third))
    assert row["question"] == "Multi\nline"
    assert row["score"] == "33"


def test_guard_formula():
    assert guard_formula("+44 20") == "'+44 20"
    assert guard_formula("\tTab") == "'\tTab"
    assert guard_formula("plain") == "plain"
    assert guard_formula(None) == ""
    assert guard_formula(12) == "12"


def test_filename():
    assert slugify("  IPAS AI  L11 (A)! ") == "ipas-ai-l11-a"
    assert export_filename("IPAS AI L11", EXPORTED_AT, "csv") == "exam_result_ipas-ai-l11_20240301_093015.csv"

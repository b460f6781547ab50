"""
Result exports. JSON: {meta, questions}. CSV: one row per question, UTF-8 BOM, CRLF,
quoted where needed, and free-text cells guarded against spreadsheet formula injection.
"""
import csv
import io
import json
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from examkit.models import GradeResult

CSV_HEADERS = [
    "no", "id", "type", "question", "givenAnswer", "correctAnswer", "isCorrect",
    "score", "accuracy", "passingScore", "bankLabel", "exportedAt",
]
FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")
BOM = "\ufeff"


def build_meta(result: GradeResult, bank_id: str, bank_label: str,
               exported_at: Optional[datetime] = None) -> Dict[str, Any]:
    exported_at = exported_at or datetime.now(result.ended_at.tzinfo)
    return {
        "bankFile": bank_id,
        "bankLabel": bank_label,
        "score": result.score,
        "accuracy": result.accuracy,
        "correctCount": result.correct_count,
        "totalCount": result.total_count,
        "passingScore": result.passing_score,
        "isPassed": result.passed,
        "durationSeconds": round(result.duration.total_seconds()),
        "startedAt": result.started_at.isoformat(),
        "endedAt": result.ended_at.isoformat(),
        "exportedAt": exported_at.isoformat(),
    }


def question_rows(result: GradeResult) -> List[Dict[str, Any]]:
    return [
        {
            "no": r.no,
            "id": r.id,
            "type": r.kind.value,
            "question": r.question,
            "givenAnswer": r.given_answer,
            "correctAnswer": r.correct_answer,
            "isCorrect": r.is_correct,
        }
        for r in result.question_results
    ]


def to_json(result: GradeResult, meta: Dict[str, Any]) -> str:
    return json.dumps({"meta": meta, "questions": question_rows(result)}, ensure_ascii=False, indent=2)


def guard_formula(value: Any) -> str:
    """Prefix text that a spreadsheet would evaluate as a formula."""
    text = "" if value is None else str(value)
    if text.startswith(FORMULA_PREFIXES):
        return "'" + text
    return text


def to_csv(result: GradeResult, meta: Dict[str, Any]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(CSV_HEADERS)
    for row in question_rows(result):
        writer.writerow([
            row["no"],
            guard_formula(row["id"]),
            row["type"],
            guard_formula(row["question"]),
            guard_formula(row["givenAnswer"]),
            guard_formula(row["correctAnswer"]),
            "true" if row["isCorrect"] else "false",
            meta["score"],
            meta["accuracy"],
            meta["passingScore"],
            guard_formula(meta["bankLabel"]),
            meta["exportedAt"],
        ])
    return BOM + buffer.getvalue()


def slugify(text: str) -> str:
    text = re.sub(r"\s+", "-", (text or "").strip().lower())
    return re.sub(r"[^a-z0-9\-_.]+", "", text)


def export_filename(bank_label: str, when: datetime, ext: str) -> str:
    return f"exam_result_{slugify(bank_label)}_{when.strftime('%Y%m%d_%H%M%S')}.{ext}"

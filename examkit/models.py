"""
Exam data model: questions, configuration, grading outcomes and history records.
Plain dataclasses; persistence goes through to_dict/from_dict.
"""
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from engine import DEFAULT_PASSING_SCORE, MAX_SCORE, MIN_SCORE, SHORT_ANSWER, SINGLE_CHOICE

QuestionId = Union[int, str]


class QuestionKind(str, Enum):
    SINGLE_CHOICE = SINGLE_CHOICE
    SHORT_ANSWER = SHORT_ANSWER


@dataclass(frozen=True)
class Question:
    """A normalized bank question. Options carry their "A. " style label."""
    id: QuestionId
    text: str
    kind: QuestionKind
    options: Tuple[str, ...] = ()
    answer_key: str = ""
    explanation: str = ""

    @property
    def is_single_choice(self) -> bool:
        return self.kind is QuestionKind.SINGLE_CHOICE

    def to_dict(self) -> Dict[str, Any]:
        """Source-record shape; normalizing it again yields the same question."""
        return {
            "id": self.id,
            "question": self.text,
            "options": list(self.options),
            "answer": self.answer_key,
            "explanation": self.explanation,
            "type": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        return cls(
            id=data["id"],
            text=data["question"],
            kind=QuestionKind(data["type"]),
            options=tuple(data.get("options") or ()),
            answer_key=data.get("answer", ""),
            explanation=data.get("explanation", ""),
        )


def clamp_passing_score(value: Any) -> int:
    """Coerce to int in [0, 100]; anything non-numeric falls back to the default."""
    if isinstance(value, bool):
        return DEFAULT_PASSING_SCORE
    try:
        score = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_PASSING_SCORE
    return min(MAX_SCORE, max(MIN_SCORE, score))


@dataclass
class ExamConfiguration:
    shuffle_questions: bool = False
    shuffle_options: bool = False
    auto_save: bool = True
    show_explanation: bool = True
    passing_score: int = DEFAULT_PASSING_SCORE

    def clamped(self) -> "ExamConfiguration":
        return ExamConfiguration(
            shuffle_questions=bool(self.shuffle_questions),
            shuffle_options=bool(self.shuffle_options),
            auto_save=bool(self.auto_save),
            show_explanation=bool(self.show_explanation),
            passing_score=clamp_passing_score(self.passing_score),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExamConfiguration":
        """Merge known keys over the defaults and clamp. Unknown keys are ignored; a non-dict gives the defaults."""
        if not isinstance(data, dict):
            return cls()
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known).clamped()


@dataclass(frozen=True)
class SubmitCheck:
    """First phase of submission: how many questions are still unanswered."""
    unanswered_count: int
    total_count: int

    @property
    def needs_confirmation(self) -> bool:
        return self.unanswered_count > 0


@dataclass(frozen=True)
class SubmitOutcome:
    accepted: bool
    unanswered_count: int


@dataclass(frozen=True)
class WrongAnswer:
    question: Question
    given_answer: str
    correct_answer: str


@dataclass(frozen=True)
class QuestionResult:
    no: int
    id: QuestionId
    kind: QuestionKind
    question: str
    given_answer: str
    correct_answer: str
    is_correct: bool


@dataclass(frozen=True)
class GradeResult:
    score: int
    correct_count: int
    total_count: int
    passed: bool
    duration: timedelta
    passing_score: int
    started_at: datetime
    ended_at: datetime
    wrong_answers: Tuple[WrongAnswer, ...] = ()
    question_results: Tuple[QuestionResult, ...] = ()

    @property
    def accuracy(self) -> int:
        """
        Percentage of questions answered correctly. The score is defined as exactly
        this percentage, so the two always agree; exports carry both under their own names.
        """
        return self.score


@dataclass(frozen=True)
class HistoryRecord:
    date: datetime
    score: int
    correct_count: int
    total_count: int
    duration: timedelta
    passed: bool
    bank_id: str
    bank_label: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "score": self.score,
            "correct_count": self.correct_count,
            "total_count": self.total_count,
            "duration_ms": int(self.duration.total_seconds() * 1000),
            "passed": self.passed,
            "bank_id": self.bank_id,
            "bank_label": self.bank_label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryRecord":
        return cls(
            date=datetime.fromisoformat(data["date"]),
            score=int(data["score"]),
            correct_count=int(data["correct_count"]),
            total_count=int(data["total_count"]),
            duration=timedelta(milliseconds=int(data["duration_ms"])),
            passed=bool(data["passed"]),
            bank_id=str(data.get("bank_id", "")),
            bank_label=str(data.get("bank_label", "")),
        )

    @classmethod
    def from_result(cls, result: GradeResult, bank_id: str, bank_label: str,
                    date: Optional[datetime] = None) -> "HistoryRecord":
        return cls(
            date=date or result.ended_at,
            score=result.score,
            correct_count=result.correct_count,
            total_count=result.total_count,
            duration=result.duration,
            passed=result.passed,
            bank_id=bank_id,
            bank_label=bank_label,
        )

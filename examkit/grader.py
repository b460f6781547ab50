"""
Grading: per-question correctness, aggregate score and pass verdict, plus a short
performance analysis for the result page.

Scoring: score = round(100 * correct / total). Unanswered questions count as wrong.
A session with no questions scores 0 and does not pass.
"""
import logging
from typing import Any, Dict, List, Optional

from engine import (
    FAST_PACE_SECONDS,
    REVIEW_POINTERS,
    SLOW_PACE_SECONDS,
    UNANSWERED,
)
from examkit.engine import ExamSession, is_answer_given
from examkit.models import GradeResult, Question, QuestionResult, WrongAnswer

logger = logging.getLogger(__name__)


def _normalize_text(value: Optional[str]) -> str:
    return (value or "").strip().casefold()


def is_correct(question: Question, given: Optional[str]) -> bool:
    """Single choice: exact label match. Short answer: trimmed, case-folded equality. Blanks never match."""
    if question.is_single_choice:
        return is_answer_given(given) and given == question.answer_key
    given_norm = _normalize_text(given)
    key_norm = _normalize_text(question.answer_key)
    return bool(given_norm) and bool(key_norm) and given_norm == key_norm


def round_half_up(value: float) -> int:
    # round() is banker's rounding; scores round .5 upward
    return int(value + 0.5)


def grade(session: ExamSession, passing_score: Optional[int] = None) -> GradeResult:
    """
    Grade a submitted session. Pure: the same session always yields the same result.

    Args:
        session: a session on which confirm_submit() has been accepted.
        passing_score: overrides the session's configured passing score.

    Raises:
        ValueError: the session has not been submitted.
    """
    if not session.completed or session.ended_at is None:
        raise ValueError("cannot grade a session that has not been submitted")

    threshold = session.config.passing_score if passing_score is None else passing_score
    total = len(session.ordered_questions)
    correct_count = 0
    wrong: List[WrongAnswer] = []
    results: List[QuestionResult] = []

    for no, question in enumerate(session.ordered_questions, start=1):
        given = session.answers.get(question.id)
        correct = is_correct(question, given)
        if correct:
            correct_count += 1
        else:
            wrong.append(WrongAnswer(
                question=question,
                given_answer=given if is_answer_given(given) else UNANSWERED,
                correct_answer=question.answer_key,
            ))
        results.append(QuestionResult(
            no=no,
            id=question.id,
            kind=question.kind,
            question=question.text,
            given_answer=given or "",
            correct_answer=question.answer_key,
            is_correct=correct,
        ))

    if total == 0:
        logger.warning("Grading a session with no questions; score is 0")
        score = 0
        passed = False
    else:
        score = round_half_up(100 * correct_count / total)
        passed = score >= threshold

    return GradeResult(
        score=score,
        correct_count=correct_count,
        total_count=total,
        passed=passed,
        duration=session.ended_at - session.started_at,
        passing_score=threshold,
        started_at=session.started_at,
        ended_at=session.ended_at,
        wrong_answers=tuple(wrong),
        question_results=tuple(results),
    )


def analyze(result: GradeResult) -> Dict[str, Any]:
    """
    Summarize pacing and the questions worth reviewing first.

    Returns:
        {avg_seconds_per_question, pace ('fast'|'moderate'|'slow'), wrong_count,
         review: [{id, question}] for the first few wrong answers, more_wrong: bool}
    """
    avg = result.duration.total_seconds() / result.total_count if result.total_count else 0.0
    if avg < FAST_PACE_SECONDS:
        pace = "fast"
    elif avg > SLOW_PACE_SECONDS:
        pace = "slow"
    else:
        pace = "moderate"
    review = [
        {"id": w.question.id, "question": w.question.text[:50]}
        for w in result.wrong_answers[:REVIEW_POINTERS]
    ]
    return {
        "avg_seconds_per_question": round(avg, 1),
        "pace": pace,
        "wrong_count": len(result.wrong_answers),
        "review": review,
        "more_wrong": len(result.wrong_answers) > REVIEW_POINTERS,
    }

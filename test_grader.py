"""Grading and result analysis."""
import pytest

from engine import UNANSWERED
from examkit.engine import ExamSession
from examkit.grader import analyze, grade, is_correct, round_half_up
from examkit.loader import normalize
from examkit.models import ExamConfiguration, Question, QuestionKind

ARITHMETIC = [{"id": 1, "question": "2+2?", "options": ["A. 3", "B. 4"], "answer": "B"}]


def _submitted(questions, answers, clock=None, **config):
    kwargs = {"clock": clock} if clock else {}
    session = ExamSession.start(questions, config=ExamConfiguration(**config), **kwargs)
    for qid, value in answers.items():
        session.answer(qid, value)
    session.submit(force=True)
    return session


def test_all_correct_passes():
    result = grade(_submitted(normalize(ARITHMETIC), {1: "B"}))
    assert (result.score, result.correct_count, result.total_count, result.passed) == (100, 1, 1, True)
    assert result.wrong_answers == ()


def test_unanswered_counts_as_wrong():
    session = ExamSession.start(normalize(ARITHMETIC))
    assert session.prepare_submit().unanswered_count == 1
    session.confirm_submit()
    result = grade(session)
    assert (result.score, result.correct_count, result.passed) == (0, 0, False)
    assert result.wrong_answers[0].given_answer == UNANSWERED
    assert result.wrong_answers[0].correct_answer == "B"


@pytest.mark.parametrize("given", ["paris", " Paris ", "PARIS", "Paris"])
def test_short_answer_ignores_case_and_surrounding_whitespace(given):
    q = Question(id=1, text="Capital of France?", kind=QuestionKind.SHORT_ANSWER, answer_key="Paris")
    assert is_correct(q, given)


@pytest.mark.parametrize("given", ["", "   ", None, "Lyon", "Par is"])
def test_short_answer_mismatches(given):
    q = Question(id=1, text="Capital of France?", kind=QuestionKind.SHORT_ANSWER, answer_key="Paris")
    assert not is_correct(q, given)


def test_blank_answer_key_never_matches():
    q = Question(id=1, text="q", kind=QuestionKind.SHORT_ANSWER, answer_key="  ")
    assert not is_correct(q, "  ")
    assert not is_correct(q, "")


def test_single_choice_is_exact_label_match():
    q = Question(id=1, text="q", kind=QuestionKind.SINGLE_CHOICE, options=("A. x", "B. y"), answer_key="B")
    assert is_correct(q, "B")
    assert not is_correct(q, "b")
    assert not is_correct(q, "A")
    assert not is_correct(q, None)


def test_grading_is_deterministic(raw_bank):
    session = _submitted(normalize(raw_bank), {1: "B", 2: "paris", 3: "C"})
    assert grade(session) == grade(session)
    result = grade(session)
    assert result.correct_count == 2
    assert result.score == 67
    assert [r.is_correct for r in result.question_results] == [True, True, False]
    assert [w.question.id for w in result.wrong_answers] == [3]


def test_threshold_is_inclusive(raw_bank):
    session = _submitted(normalize(raw_bank), {1: "B", 2: "Paris", 3: "B"}, passing_score=67)
    assert grade(session).passed
    assert not grade(session, passing_score=68).passed


def test_rounds_half_up():
    assert round_half_up(12.5) == 13
    assert round_half_up(62.5) == 63
    assert round_half_up(62.4) == 62
    questions = normalize([
        {"id": i, "question": f"q{i}", "type": "short", "answer": "yes"} for i in range(1, 9)
    ])
    answers = {i: "yes" for i in range(1, 6)}
    assert grade(_submitted(questions, answers)).score == 63


def test_zero_question_session_scores_zero_and_fails():
    result = grade(_submitted([], {}))
    assert result.score == 0
    assert result.total_count == 0
    assert not result.passed


def test_grading_requires_submission():
    session = ExamSession.start(normalize(ARITHMETIC))
    with pytest.raises(ValueError):
        grade(session)


def test_duration_spans_start_to_submit(clock):
    session = ExamSession.start(normalize(ARITHMETIC), clock=clock)
    clock.advance(minutes=2, seconds=5)
    session.submit(force=True)
    assert grade(session).duration.total_seconds() == 125


def test_analyze_pace_and_review(clock):
    questions = normalize([
        {"id": i, "question": f"Question number {i}", "type": "short", "answer": "yes"} for i in range(1, 8)
    ])
    session = ExamSession.start(questions, clock=clock)
    session.answer(1, "yes")
    clock.advance(seconds=7 * 10)
    session.submit(force=True)

    report = analyze(grade(session))
    assert report["avg_seconds_per_question"] == 10.0
    assert report["pace"] == "fast"
    assert report["wrong_count"] == 6
    assert [r["id"] for r in report["review"]] == [2, 3, 4, 5, 6]
    assert report["more_wrong"]


def test_analyze_slow_pace(clock):
    session = ExamSession.start(normalize(ARITHMETIC), clock=clock)
    session.answer(1, "B")
    clock.advance(minutes=5)
    session.submit()
    report = analyze(grade(session))
    assert report["pace"] == "slow"
    assert report["review"] == []
    assert not report["more_wrong"]


def test_blank_answer_never_matches_a_blank_single_choice_key():
    questions = normalize([{"id": 1, "question": "Pick one", "options": ["A. a", "B. b"]}])
    assert questions[0].answer_key == ""
    session = ExamSession.start(questions)
    session.answer(1, "")
    assert session.prepare_submit().unanswered_count == 1
    session.submit(force=True)
    result = grade(session)
    assert result.correct_count == 0
    assert result.wrong_answers[0].given_answer == UNANSWERED


def test_accuracy_is_the_correct_percentage(raw_bank):
    result = grade(_submitted(normalize(raw_bank), {1: "B", 2: "Paris"}))
    assert result.accuracy == round_half_up(100 * result.correct_count / result.total_count) == 67
    assert result.accuracy == result.score

"""
Exam session engine: question sequencing, option shuffling with answer remapping,
answer capture, navigation and two-phase submission. No UI.
"""
import logging
import random
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, MutableSequence, Optional

from examkit.loader import option_label, split_option_label
from examkit.models import (
    ExamConfiguration,
    Question,
    QuestionId,
    SubmitCheck,
    SubmitOutcome,
)
from examkit.store import utcnow

logger = logging.getLogger(__name__)

Listener = Callable[[str, "ExamSession"], None]

EVENT_ANSWERED = "answered"
EVENT_NAVIGATED = "navigated"
EVENT_SUBMITTED = "submitted"


def shuffle_in_place(items: MutableSequence[Any], rng: Optional[random.Random] = None) -> None:
    """Fisher-Yates: walk tail to head, swapping with an inclusive draw from the prefix."""
    rng = rng or random
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]


def shuffle_options_of(question: Question, rng: Optional[random.Random] = None) -> Question:
    """
    Permute a single-choice question's options and relabel them A, B, C...,
    rewriting answer_key so it still points at the same option text.

    Questions without options are returned unchanged. If the options cannot be
    parsed (non-string entries, no option carrying the answer label) the shuffle
    is skipped with a warning.
    """
    if not question.is_single_choice or not question.options:
        return question
    current_answer = question.answer_key.strip().upper()
    pairs = []
    for option in question.options:
        if not isinstance(option, str):
            logger.warning("Skipping option shuffle for question %s: option %r is not text", question.id, option)
            return question
        label, text = split_option_label(option)
        pairs.append({"text": text, "is_correct": label is not None and label == current_answer})

    if sum(1 for p in pairs if p["is_correct"]) != 1:
        logger.warning("Skipping option shuffle for question %s: answer %r does not identify one option",
                       question.id, question.answer_key)
        return question

    shuffle_in_place(pairs, rng)

    options = []
    answer_key = question.answer_key
    for idx, pair in enumerate(pairs):
        letter = option_label(idx)
        if pair["is_correct"]:
            answer_key = letter
        options.append(f"{letter}. {pair['text']}")
    return replace(question, options=tuple(options), answer_key=answer_key)


def is_answer_given(value: Optional[str]) -> bool:
    return value is not None and str(value).strip() != ""


class ExamSession:
    """One attempt at a bank, from start to submission."""

    def __init__(self, questions: List[Question], config: Optional[ExamConfiguration] = None,
                 bank_id: str = "", started_at: Optional[datetime] = None,
                 clock: Callable[[], datetime] = utcnow) -> None:
        self.bank_id = bank_id
        self.config = (config or ExamConfiguration()).clamped()
        self.ordered_questions: List[Question] = list(questions)
        self.current_index = 0
        self.answers: Dict[QuestionId, str] = {}
        self._clock = clock
        self.started_at: datetime = started_at or clock()
        self.ended_at: Optional[datetime] = None
        self.completed = False
        self._by_id = {q.id: q for q in self.ordered_questions}
        self._listeners: List[Listener] = []

    @classmethod
    def start(cls, bank: List[Question], config: Optional[ExamConfiguration] = None, bank_id: str = "",
              rng: Optional[random.Random] = None, clock: Callable[[], datetime] = utcnow) -> "ExamSession":
        """
        Build a fresh session from the loaded bank.

        The bank is copied, so shuffling never touches the caller's list.
        """
        config = (config or ExamConfiguration()).clamped()
        questions = list(bank)
        if config.shuffle_questions:
            shuffle_in_place(questions, rng)
        if config.shuffle_options:
            questions = [shuffle_options_of(q, rng) if q.is_single_choice else q for q in questions]
        session = cls(questions, config=config, bank_id=bank_id, clock=clock)
        logger.info("Session started on %s: %d questions (shuffle questions=%s, options=%s)",
                    bank_id or "<bank>", len(questions), config.shuffle_questions, config.shuffle_options)
        return session

    # --- observers ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state-change listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            listener(event, self)

    # --- state queries ---

    def __len__(self) -> int:
        return len(self.ordered_questions)

    def question(self, question_id: QuestionId) -> Optional[Question]:
        return self._by_id.get(question_id)

    def current_question(self) -> Optional[Question]:
        if not self.ordered_questions:
            return None
        return self.ordered_questions[self.current_index]

    def is_answered(self, question: Question) -> bool:
        return is_answer_given(self.answers.get(question.id))

    def answered_count(self) -> int:
        return sum(1 for q in self.ordered_questions if self.is_answered(q))

    def unanswered_count(self) -> int:
        return len(self.ordered_questions) - self.answered_count()

    def is_complete(self) -> bool:
        return self.completed

    def elapsed(self, now: Optional[datetime] = None) -> timedelta:
        end = self.ended_at or now or self._clock()
        return end - self.started_at

    def summary(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Real-time progress for display during the exam."""
        answered = self.answered_count()
        return {
            "bank_id": self.bank_id,
            "current_question": self.current_index + 1 if self.ordered_questions else 0,
            "total_questions": len(self.ordered_questions),
            "questions_answered": answered,
            "questions_unanswered": len(self.ordered_questions) - answered,
            "time_elapsed_sec": self.elapsed(now).total_seconds(),
            "completed": self.completed,
        }

    # --- mutation ---

    def answer(self, question_id: QuestionId, value: str) -> bool:
        """Record (or overwrite) the answer for a question. Returns False if rejected."""
        if self.completed:
            logger.warning("Ignoring answer for %s: session already submitted", question_id)
            return False
        if question_id not in self._by_id:
            logger.warning("Ignoring answer for unknown question %r", question_id)
            return False
        value = "" if value is None else str(value)
        if self.answers.get(question_id) == value:
            return True
        self.answers[question_id] = value
        logger.debug("Answer recorded: Q=%s value=%r", question_id, value)
        self._notify(EVENT_ANSWERED)
        return True

    def select_option_by_number(self, number: int) -> bool:
        """Numeric shortcut: 0 selects option A of the current single-choice question."""
        question = self.current_question()
        if question is None or not question.is_single_choice:
            return False
        if number < 0 or number >= len(question.options):
            return False
        return self.answer(question.id, option_label(number))

    def navigate(self, index: int) -> bool:
        """Move to a question position. Out-of-range indexes are ignored."""
        if not 0 <= index < len(self.ordered_questions):
            return False
        if index != self.current_index:
            self.current_index = index
            logger.debug("Navigated to question %d/%d", index + 1, len(self.ordered_questions))
            self._notify(EVENT_NAVIGATED)
        return True

    def next(self) -> bool:
        return self.navigate(self.current_index + 1)

    def previous(self) -> bool:
        return self.navigate(self.current_index - 1)

    # --- submission ---

    def prepare_submit(self) -> SubmitCheck:
        """First phase: report what is still unanswered. The caller owns the confirm policy."""
        return SubmitCheck(unanswered_count=self.unanswered_count(), total_count=len(self.ordered_questions))

    def confirm_submit(self) -> SubmitOutcome:
        """Second phase: terminate the session."""
        unanswered = self.unanswered_count()
        if self.completed:
            return SubmitOutcome(accepted=False, unanswered_count=unanswered)
        self.ended_at = self._clock()
        self.completed = True
        logger.info("Session on %s submitted: %d/%d answered",
                    self.bank_id or "<bank>", len(self.ordered_questions) - unanswered, len(self.ordered_questions))
        self._notify(EVENT_SUBMITTED)
        return SubmitOutcome(accepted=True, unanswered_count=unanswered)

    def submit(self, force: bool = False) -> SubmitOutcome:
        """Submit in one call; with unanswered questions it is only accepted when forced."""
        check = self.prepare_submit()
        if check.needs_confirmation and not force:
            return SubmitOutcome(accepted=False, unanswered_count=check.unanswered_count)
        return self.confirm_submit()

    # --- crash-resume ---

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe progress record, including the (possibly shuffled) question order."""
        return {
            "bank_id": self.bank_id,
            "current_index": self.current_index,
            "answers": [{"id": qid, "answer": value} for qid, value in self.answers.items()],
            "started_at": self.started_at.isoformat(),
            "questions": [q.to_dict() for q in self.ordered_questions],
            "config": self.config.to_dict(),
        }

    @classmethod
    def restore(cls, data: Dict[str, Any], clock: Callable[[], datetime] = utcnow) -> "ExamSession":
        """Rebuild an in-progress session from snapshot(). Raises KeyError/TypeError/ValueError on a bad snapshot."""
        config = data.get("config") or {}
        if not isinstance(config, dict):
            raise ValueError(f"snapshot config is a {type(config).__name__}, expected an object")
        questions = [Question.from_dict(q) for q in data["questions"]]
        session = cls(
            questions,
            config=ExamConfiguration.from_dict(config),
            bank_id=data.get("bank_id", ""),
            started_at=datetime.fromisoformat(data["started_at"]),
            clock=clock,
        )
        for item in data.get("answers") or []:
            if item["id"] in session._by_id:
                session.answers[item["id"]] = str(item["answer"])
        index = int(data.get("current_index", 0))
        if 0 <= index < len(questions):
            session.current_index = index
        return session

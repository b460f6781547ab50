"""
ExamContext: the one object the presentation layer talks to.

Owns the resident bank, the current session, settings, history and the session
timers; autosaves progress through the local store and records graded attempts.
Built once by the caller and passed around explicitly.
"""
import logging
import random
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from engine import PROGRESS_KEY
from examkit.config import ConfigStore
from examkit.engine import EVENT_ANSWERED, EVENT_SUBMITTED, ExamSession
from examkit.export import build_meta, export_filename, to_csv, to_json
from examkit.grader import grade
from examkit.history import HistoryLedger
from examkit.loader import LoadResult, QuestionBankLoader
from examkit.models import (
    ExamConfiguration,
    GradeResult,
    HistoryRecord,
    Question,
    QuestionId,
    SubmitCheck,
    SubmitOutcome,
)
from examkit.store import PersistenceStore, utcnow
from examkit.timers import Debouncer, SessionTimers

logger = logging.getLogger(__name__)


class ExamInitializationError(RuntimeError):
    """No question bank (real or fallback) is available to start a session."""


class ExamContext:
    def __init__(self, store: PersistenceStore, loader: QuestionBankLoader,
                 rng: Optional[random.Random] = None, clock: Callable[[], datetime] = utcnow,
                 ttl: Optional[timedelta] = None, monotonic: Callable[[], float] = time.monotonic) -> None:
        self.store = store
        self.loader = loader
        self.rng = rng or random.Random()
        self.clock = clock
        self.ttl = ttl
        self.monotonic = monotonic
        self.config_store = ConfigStore(store, ttl=ttl)
        self.ledger = HistoryLedger(store, ttl=ttl)
        self.config: ExamConfiguration = self.config_store.load()

        self.bank: List[Question] = []
        self.bank_id = ""
        self.bank_label = ""
        self.load_error = None
        self.session: Optional[ExamSession] = None
        self.last_result: Optional[GradeResult] = None
        self.notices: List[str] = []
        self._timers: Optional[SessionTimers] = None
        self._input = Debouncer(self._apply_input, monotonic=monotonic)
        self._unsubscribe: Optional[Callable[[], None]] = None

    # --- bank ---

    def load_bank(self, bank_id: str) -> LoadResult:
        result = self.loader.load(bank_id)
        self.bank = result.questions
        self.bank_id = result.source_id
        self.bank_label = result.label
        self.load_error = result.error
        if result.error is not None:
            self.notices.append(f"Question bank failed to load ({bank_id}). Reload to try again.")
        return result

    def switch_bank(self, bank_id: str) -> LoadResult:
        """Load another bank; any saved progress and the running session are dropped."""
        logger.info("Switching bank from %s to %s", self.bank_id or "<none>", bank_id)
        self.restart()
        return self.load_bank(bank_id)

    def dismiss_notice(self, index: int = 0) -> None:
        if 0 <= index < len(self.notices):
            self.notices.pop(index)

    # --- settings ---

    def update_config(self, **changes: Any) -> ExamConfiguration:
        self.config = self.config_store.update(**changes)
        return self.config

    # --- session lifecycle ---

    def start_session(self) -> ExamSession:
        """Start a fresh attempt from the loaded bank order (re-shuffled if configured)."""
        if not self.bank:
            raise ExamInitializationError("no question bank is loaded")
        self.restart()
        self.session = ExamSession.start(self.bank, config=self.config, bank_id=self.bank_id,
                                         rng=self.rng, clock=self.clock)
        self._attach(self.session)
        return self.session

    def _attach(self, session: ExamSession) -> None:
        self._unsubscribe = session.subscribe(self._on_session_event)

    def _detach(self) -> None:
        self.stop_timers()
        self._input.cancel()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_session_event(self, event: str, session: ExamSession) -> None:
        if event == EVENT_ANSWERED and session.config.auto_save:
            self.save_progress()
        elif event == EVENT_SUBMITTED:
            self.stop_timers()
            self.discard_progress()

    def restart(self) -> None:
        """Discard the current session, its timers and its saved progress."""
        self._detach()
        self.session = None
        self.last_result = None
        self.discard_progress()

    # --- answers and navigation ---

    def _require_session(self) -> ExamSession:
        if self.session is None:
            raise ExamInitializationError("no exam session is running")
        return self.session

    def answer(self, question_id: QuestionId, value: str) -> bool:
        self.flush_input()
        return self._require_session().answer(question_id, value)

    def type_answer(self, question_id: QuestionId, value: str) -> None:
        """Queue free-text input; it is recorded once typing pauses for the debounce delay."""
        self._require_session()
        self._input.call(question_id, value)

    def flush_input(self) -> bool:
        """Record any queued free-text input now. Returns True if something was pending."""
        return self._input.flush()

    def _apply_input(self, question_id: QuestionId, value: str) -> None:
        session = self.session
        if session is not None and not session.completed:
            session.answer(question_id, value)

    def navigate(self, index: int) -> bool:
        self.flush_input()
        return self._require_session().navigate(index)

    def previous(self) -> bool:
        self.flush_input()
        return self._require_session().previous()

    def next(self) -> bool:
        self.flush_input()
        return self._require_session().next()

    # --- progress autosave / resume ---

    def should_autosave(self) -> bool:
        session = self.session
        return bool(session is not None and session.config.auto_save
                    and not session.completed and session.answers)

    def save_progress(self) -> bool:
        if not self.should_autosave():
            return False
        return self.store.set(PROGRESS_KEY, self.session.snapshot(), self.ttl)

    def pending_progress(self) -> Optional[Dict[str, Any]]:
        """A saved, unexpired snapshot for the current bank with at least one answer."""
        data = self.store.get(PROGRESS_KEY)
        if not isinstance(data, dict):
            return None
        if data.get("bank_id") != self.bank_id or not data.get("answers"):
            return None
        return data

    def resume_progress(self) -> Optional[ExamSession]:
        data = self.pending_progress()
        if data is None:
            return None
        try:
            session = ExamSession.restore(data, clock=self.clock)
        except (TypeError, KeyError, ValueError) as e:
            logger.warning("Saved progress is unusable, discarding it: %s", e)
            self.discard_progress()
            return None
        self._detach()
        self.session = session
        self.last_result = None
        self._attach(session)
        logger.info("Resumed session on %s at question %d with %d answers",
                    session.bank_id, session.current_index + 1, len(session.answers))
        return session

    def discard_progress(self) -> None:
        self.store.remove(PROGRESS_KEY)

    # --- timers ---

    def start_timers(self, on_clock: Callable[[timedelta], Any]) -> SessionTimers:
        """Start the clock and autosave ticks; the host drives them through poll_timers()."""
        session = self._require_session()
        self.stop_timers()
        self._timers = SessionTimers(
            elapsed=session.elapsed,
            on_clock=on_clock,
            autosave=self.save_progress,
            should_autosave=self.should_autosave,
            monotonic=self.monotonic,
        )
        self._timers.start()
        return self._timers

    @property
    def timers_running(self) -> bool:
        return self._timers is not None and self._timers.running

    def poll_timers(self) -> None:
        """Fire whatever is due: queued input, the clock, autosave."""
        self._input.poll()
        if self._timers is not None:
            self._timers.poll()

    def stop_timers(self) -> None:
        if self._timers is not None:
            self._timers.cancel()
            self._timers = None

    # --- submission ---

    def prepare_submit(self) -> SubmitCheck:
        self.flush_input()
        return self._require_session().prepare_submit()

    def confirm_submit(self) -> GradeResult:
        """Terminate the session, grade it and record the attempt in history."""
        session = self._require_session()
        self.flush_input()
        if not session.completed:
            session.confirm_submit()
        if self.last_result is None:
            self.last_result = grade(session)
            self.ledger.append(HistoryRecord.from_result(self.last_result, self.bank_id, self.bank_label))
        return self.last_result

    def submit(self, force: bool = False) -> Tuple[SubmitOutcome, Optional[GradeResult]]:
        check = self.prepare_submit()
        if check.needs_confirmation and not force:
            return SubmitOutcome(accepted=False, unanswered_count=check.unanswered_count), None
        result = self.confirm_submit()
        return SubmitOutcome(accepted=True, unanswered_count=check.unanswered_count), result

    # --- history / export / housekeeping ---

    def history(self) -> List[HistoryRecord]:
        return self.ledger.list()

    def export(self, fmt: str = "json", now: Optional[datetime] = None) -> Tuple[str, str]:
        """Return (filename, content) for the last graded attempt."""
        if self.last_result is None:
            raise ExamInitializationError("finish the exam before exporting results")
        now = now or self.clock()
        meta = build_meta(self.last_result, self.bank_id, self.bank_label, exported_at=now)
        if fmt == "json":
            content = to_json(self.last_result, meta)
        elif fmt == "csv":
            content = to_csv(self.last_result, meta)
        else:
            raise ValueError(f"unsupported export format: {fmt}")
        return export_filename(self.bank_label or self.bank_id, now, fmt), content

    def clear_local_data(self) -> None:
        """Forget progress, settings and history."""
        self.restart()
        self.store.clear()
        self.config = ExamConfiguration()
        logger.info("Cleared all locally retained exam data")

"""
Question bank loading and normalization.

Raw records are loosely typed dicts: {id?, question?, options?, answer?, explanation?, type?}.
`normalize` turns them into canonical Question objects; `QuestionBankLoader.load` fetches
a bank over HTTP (or from a local directory) and falls back to a one-question diagnostic
bank on any failure.
"""
import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

import requests

from engine import (
    EXPLANATION_EXCERPT,
    MAX_OPTIONS,
    PLACEHOLDER_LETTERS,
    SHORT_ANSWER_TYPES,
)
from examkit.models import Question, QuestionId, QuestionKind

logger = logging.getLogger(__name__)

USER_AGENT = "examkit/0.1 (+question-bank-loader)"
DEFAULT_TIMEOUT = 15
DEFAULT_BANK_DIR = Path(__file__).resolve().parent.parent / "banks"

# "A. text", "(B) text", "C) text", "D: text", "E、text", full-width "Ｆ．text"
OPTION_LABEL_RE = re.compile(r"^\s*\(?([A-Z])\s*[.)．、:：]\s*")
ANSWER_LETTER_RE = re.compile(r"^\(?([A-Z])(?:\s*[.)．、:：].*)?$", re.S)
_NO_ID = object()


class LoadError(Exception):
    """Bank could not be retrieved or parsed."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


@dataclass
class LoadResult:
    questions: List[Question]
    source_id: str
    label: str
    error: Optional[LoadError] = None
    dropped: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


def option_label(index: int) -> str:
    return chr(ord("A") + index)


def split_option_label(option: str) -> Tuple[Optional[str], str]:
    """Split "B. Dog" into ("B", "Dog"). Unlabelled text returns (None, text)."""
    match = OPTION_LABEL_RE.match(option)
    if not match:
        return None, option.strip()
    return match.group(1), option[match.end():].strip()


def normalize_answer_key(answer: Any, kind: QuestionKind) -> str:
    """Single-choice keys reduce to an upper-case letter; short answers stay verbatim."""
    if answer is None:
        return ""
    text = str(answer)
    if kind is QuestionKind.SHORT_ANSWER:
        return text
    key = text.strip().upper()
    match = ANSWER_LETTER_RE.match(key)
    return match.group(1) if match else key


def _infer_kind(raw: Dict[str, Any]) -> QuestionKind:
    declared = str(raw.get("type") or "").strip().lower()
    if declared in SHORT_ANSWER_TYPES:
        return QuestionKind.SHORT_ANSWER
    options = raw.get("options")
    if isinstance(options, list) and len(options) > 0:
        return QuestionKind.SINGLE_CHOICE
    return QuestionKind.SHORT_ANSWER


def _explicit_id(raw: Dict[str, Any]) -> Any:
    """The record's own id, _NO_ID when it has none, None when it is unusable."""
    qid = raw.get("id")
    if qid is None or qid == "":
        return _NO_ID
    if isinstance(qid, bool) or not isinstance(qid, (int, str)):
        return None
    return qid


def _display_text(raw: Dict[str, Any], index: int) -> str:
    text = raw.get("question")
    text = str(text).strip() if text is not None else ""
    if text:
        return text
    explanation = str(raw.get("explanation") or "")
    if explanation:
        excerpt = explanation[:EXPLANATION_EXCERPT]
        return excerpt + ("..." if len(explanation) > EXPLANATION_EXCERPT else "")
    return f"Question {index + 1}"


def _placeholder_options(answer_key: str) -> List[str]:
    options = []
    for letter in PLACEHOLDER_LETTERS:
        if letter == answer_key:
            options.append(f"{letter}. Correct option")
        else:
            options.append(f"{letter}. Option {letter}")
    return options


def _option_texts(options: Iterable[Any]) -> List[str]:
    return [split_option_label("" if option is None else str(option))[1] for option in options]


def _relabel(texts: Iterable[str]) -> List[str]:
    return [f"{option_label(idx)}. {text}" for idx, text in enumerate(texts)]


def normalize_record(raw: Dict[str, Any], index: int, default_id: Optional[QuestionId] = None) -> Optional[Question]:
    """
    Normalize one source record. Returns None when its id cannot be resolved.

    A record without an id gets `default_id`, or its 1-based position when that is not given.
    """
    qid = _explicit_id(raw)
    if qid is _NO_ID:
        qid = index + 1 if default_id is None else default_id
    if qid is None:
        logger.warning("Dropping record %d: unusable id %r", index + 1, raw.get("id"))
        return None

    kind = _infer_kind(raw)
    answer_key = normalize_answer_key(raw.get("answer"), kind)
    options: List[str] = []

    if kind is QuestionKind.SINGLE_CHOICE:
        texts = _option_texts(raw["options"])
        if not any(texts):
            logger.warning("Question %s has only blank options, using placeholders", qid)
            options = _placeholder_options(answer_key)
        else:
            if len(texts) > MAX_OPTIONS:
                logger.warning("Question %s has %d options, keeping the first %d", qid, len(texts), MAX_OPTIONS)
                texts = texts[:MAX_OPTIONS]
            options = _relabel(texts)
        labels = {option_label(i) for i in range(len(options))}
        if answer_key not in labels:
            logger.warning("Question %s: answer %r matches no option", qid, answer_key)

    return Question(
        id=qid,
        text=_display_text(raw, index),
        kind=kind,
        options=tuple(options),
        answer_key=answer_key,
        explanation=str(raw.get("explanation") or ""),
    )


def normalize(raw_records: Iterable[Any]) -> List[Question]:
    """
    Normalize a raw bank.

    - Non-dict records and records with an unusable id are dropped.
    - Records without an id are numbered by position, skipping numbers that
      another record claims explicitly.
    - Later records reusing an id already seen are dropped.
    - Normalizing an already-normalized bank (Question.to_dict output) is a no-op.
    """
    records = [raw.to_dict() if isinstance(raw, Question) else raw for raw in raw_records]
    taken = set()
    for raw in records:
        if isinstance(raw, dict):
            qid = _explicit_id(raw)
            if qid is not None and qid is not _NO_ID:
                taken.add(qid)

    questions: List[Question] = []
    seen = set()
    for index, raw in enumerate(records):
        if not isinstance(raw, dict):
            logger.warning("Dropping record %d: expected an object, got %s", index + 1, type(raw).__name__)
            continue
        default_id = None
        if _explicit_id(raw) is _NO_ID:
            default_id = index + 1
            while default_id in taken:
                default_id += 1
            taken.add(default_id)
        question = normalize_record(raw, index, default_id)
        if question is None:
            continue
        if question.id in seen:
            logger.warning("Dropping record %d: duplicate id %r", index + 1, question.id)
            continue
        seen.add(question.id)
        questions.append(question)
    return questions


def fallback_bank() -> List[Question]:
    """Single diagnostic question shown when the real bank is unavailable."""
    return [
        Question(
            id=1,
            text="The question bank failed to load. Check your network connection and reload.",
            kind=QuestionKind.SINGLE_CHOICE,
            options=(
                "A. Reload the page",
                "B. Check the network connection",
                "C. Contact support",
                "D. Try again later",
            ),
            answer_key="A",
            explanation="Check the network connection or reload the question bank.",
        )
    ]


def bank_label(source_id: str) -> str:
    """Human label from a bank id: 'IPAS-AI-L11-A.json' -> 'IPAS AI L11 A'."""
    stem = Path(urlparse(source_id).path).stem or source_id
    return re.sub(r"[-_]+", " ", stem).strip()


class QuestionBankLoader:
    """Fetches raw banks relative to a base location and normalizes them."""

    def __init__(self, base: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None,
                 catalog: Optional[Dict[str, str]] = None) -> None:
        """
        Args:
            base: http(s) base URL or local directory; defaults to the bundled banks/ directory.
            timeout: HTTP timeout in seconds.
            session: requests-compatible session (anything with .get()).
            catalog: known banks {bank_id: label} for the bank selector.
        """
        self.base = base or str(DEFAULT_BANK_DIR)
        self.timeout = timeout
        self.session = session or requests.Session()
        if hasattr(self.session, "headers"):
            self.session.headers.update({"User-Agent": USER_AGENT})
        self.catalog: Dict[str, str] = dict(catalog or {})

    @property
    def is_remote(self) -> bool:
        return urlparse(self.base).scheme in ("http", "https")

    def resolve_url(self, source_id: str) -> str:
        """Resolve a bank id against the base (URL join or directory path)."""
        if urlparse(source_id).scheme in ("http", "https"):
            return source_id
        if self.is_remote:
            base = self.base if self.base.endswith("/") else self.base + "/"
            return urljoin(base, source_id)
        return os.path.join(self.base, source_id)

    def label_for(self, source_id: str) -> str:
        return self.catalog.get(source_id) or bank_label(source_id)

    def fetch(self, source_id: str) -> Any:
        """Retrieve the raw payload. Raises LoadError on transport, status or parse failure."""
        location = self.resolve_url(source_id)
        logger.info("Loading question bank from %s", location)
        if self.is_remote or urlparse(location).scheme in ("http", "https"):
            try:
                response = self.session.get(location, timeout=self.timeout)
                response.raise_for_status()
            except requests.RequestException as e:
                raise LoadError(location, f"request failed: {e}") from e
            try:
                return response.json()
            except ValueError as e:
                raise LoadError(location, f"invalid JSON: {e}") from e
        try:
            with open(location, "r", encoding="utf-8") as f:
                return json.load(f)
        except OSError as e:
            raise LoadError(location, f"cannot read file: {e}") from e
        except ValueError as e:
            raise LoadError(location, f"invalid JSON: {e}") from e

    def load(self, source_id: str) -> LoadResult:
        """
        Load and normalize a bank. Never raises: failures yield the fallback bank
        with `error` set so the caller can show a dismissable notice.
        """
        label = self.label_for(source_id)
        try:
            payload = self.fetch(source_id)
            if not isinstance(payload, list):
                raise LoadError(self.resolve_url(source_id), f"expected a list of questions, got {type(payload).__name__}")
            questions = normalize(payload)
            if not questions:
                raise LoadError(self.resolve_url(source_id), "bank contains no usable questions")
        except LoadError as e:
            logger.error("Question bank %s failed to load, using fallback: %s", source_id, e.reason)
            return LoadResult(questions=fallback_bank(), source_id=source_id, label=label, error=e)
        dropped = len(payload) - len(questions)
        logger.info("Loaded %d questions from %s (%d dropped)", len(questions), source_id, dropped)
        return LoadResult(questions=questions, source_id=source_id, label=label, dropped=dropped)

"""
Command-line companion: check a question bank, simulate an attempt, inspect or clear local data.

Run: python bank_tool.py check sample.json [--dump out.json]
     python bank_tool.py simulate sample.json [--correct-ratio 0.6 --wrong-ratio 0.2 --seed 7 --record]
     python bank_tool.py history
     python bank_tool.py clear
"""
import argparse
import json
import logging
import os
import random
import sys
from collections import Counter
from pathlib import Path

from db import default_bank, get_loader, get_store_uncached
from engine import UNANSWERED
from examkit.engine import ExamSession
from examkit.grader import analyze, grade
from examkit.history import HistoryLedger
from examkit.loader import option_label
from examkit.models import ExamConfiguration, HistoryRecord

logger = logging.getLogger(__name__)


def run_check(bank_id: str, dump: Path | None = None) -> int:
    result = get_loader().load(bank_id)
    if not result.ok:
        print(f"Failed to load {bank_id}: {result.error.reason}")
        return 1
    kinds = Counter(q.kind.value for q in result.questions)
    print(f"Bank: {result.label} ({bank_id})")
    print(f"  Questions: {len(result.questions)}  (dropped {result.dropped})")
    for kind, count in sorted(kinds.items()):
        print(f"  {kind:<8} {count}")
    if result.questions:
        print("Sample question:", result.questions[0].to_dict())
    if dump:
        dump.parent.mkdir(parents=True, exist_ok=True)
        with dump.open("w", encoding="utf-8") as f:
            json.dump([q.to_dict() for q in result.questions], f, ensure_ascii=False, indent=2)
        print(f"Wrote normalized bank to {dump}")
    return 0


def run_simulation(bank_id: str, correct_ratio: float, wrong_ratio: float, seed: int | None,
                   shuffle: bool, record: bool) -> int:
    loaded = get_loader().load(bank_id)
    if not loaded.ok:
        print(f"Failed to load {bank_id}: {loaded.error.reason}")
        return 1
    rng = random.Random(seed)
    config = ExamConfiguration(shuffle_questions=shuffle, shuffle_options=shuffle)
    session = ExamSession.start(loaded.questions, config=config, bank_id=bank_id, rng=rng)

    correct_ratio = max(0.0, min(1.0, correct_ratio))
    wrong_ratio = max(0.0, min(1.0 - correct_ratio, wrong_ratio))
    for q in session.ordered_questions:
        r = rng.random()
        if r < correct_ratio:
            session.answer(q.id, q.answer_key)
        elif r < correct_ratio + wrong_ratio:
            if q.is_single_choice:
                wrong = [option_label(i) for i in range(len(q.options)) if option_label(i) != q.answer_key]
                session.answer(q.id, rng.choice(wrong) if wrong else "")
            else:
                session.answer(q.id, f"not {q.answer_key}")

    outcome = session.submit(force=True)
    result = grade(session)
    report = analyze(result)

    print()
    print("=" * 60)
    print(f"SIMULATED ATTEMPT: {loaded.label}")
    print("=" * 60)
    print(f"  Questions: {result.total_count}  (unanswered at submit: {outcome.unanswered_count})")
    print(f"  Correct:   {result.correct_count}")
    print(f"  Score:     {result.score}  (passing {result.passing_score}) -> {'PASS' if result.passed else 'FAIL'}")
    print(f"  Pace:      {report['pace']}")
    print()
    for w in result.wrong_answers[:15]:
        marker = "-" if w.given_answer == UNANSWERED else "X"
        print(f"  {marker} Q{w.question.id}: given={w.given_answer!r} correct={w.correct_answer!r}")
    if len(result.wrong_answers) > 15:
        print(f"  ... and {len(result.wrong_answers) - 15} more")

    if record:
        HistoryLedger(get_store_uncached()).append(HistoryRecord.from_result(result, bank_id, loaded.label))
        print("Recorded in history.")
    return 0


def run_history() -> int:
    records = HistoryLedger(get_store_uncached()).list()
    if not records:
        print("No exam records.")
        return 0
    for r in records:
        status = "PASS" if r.passed else "FAIL"
        secs = int(r.duration.total_seconds())
        print(f"  {r.date:%Y-%m-%d %H:%M}  {r.score:>3}  {r.correct_count}/{r.total_count}  "
              f"{secs // 60:02d}:{secs % 60:02d}  {status}  {r.bank_label or r.bank_id}")
    return 0


def run_clear() -> int:
    store = get_store_uncached()
    store.clear()
    print(f"Cleared {store.path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Question bank and local exam data tool.")
    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Load and normalize a bank, print a summary")
    check.add_argument("bank", nargs="?", default=None, help=f"Bank id (default: {default_bank()})")
    check.add_argument("--dump", type=Path, default=None, help="Write the normalized bank to this JSON file")

    sim = sub.add_parser("simulate", help="Answer a bank at random and grade the attempt")
    sim.add_argument("bank", nargs="?", default=None, help=f"Bank id (default: {default_bank()})")
    sim.add_argument("--correct-ratio", type=float, default=0.6, help="Fraction answered correctly (default 0.6)")
    sim.add_argument("--wrong-ratio", type=float, default=0.2, help="Fraction answered wrongly (default 0.2)")
    sim.add_argument("--seed", type=int, default=None, help="Random seed")
    sim.add_argument("--shuffle", action="store_true", help="Shuffle questions and options")
    sim.add_argument("--record", action="store_true", help="Append the result to local history")

    sub.add_parser("history", help="List recorded attempts, most recent first")
    sub.add_parser("clear", help="Delete all locally retained exam data")

    args = parser.parse_args(argv)
    if args.command == "check":
        return run_check(args.bank or default_bank(), args.dump)
    if args.command == "simulate":
        return run_simulation(args.bank or default_bank(), args.correct_ratio, args.wrong_ratio,
                              args.seed, args.shuffle, args.record)
    if args.command == "history":
        return run_history()
    return run_clear()


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("EXAM_LOG_LEVEL", "INFO").upper(), format="%(levelname)s: %(message)s")
    sys.exit(main())

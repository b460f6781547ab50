"""ExamKit: timed self-graded exam simulator (Streamlit presentation layer)."""
import sys
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from db import bank_catalog, default_bank, get_loader, get_store
from engine import CLOCK_TICK_SECONDS, UNANSWERED
from examkit.context import ExamContext
from examkit.grader import analyze

st.set_page_config(page_title="ExamKit", layout="wide")


def get_context() -> ExamContext:
    # One context per browser session; the store underneath is shared
    if "ctx" not in st.session_state:
        ctx = ExamContext(get_store(), get_loader())
        ctx.load_bank(default_bank())
        st.session_state["ctx"] = ctx
    return st.session_state["ctx"]


def fmt_duration(seconds: float) -> str:
    m, s = divmod(int(seconds), 60)
    return f"{m:02d}:{s:02d}"


ctx = get_context()

# ----- Sidebar: navigation, bank, settings -----
st.sidebar.title("ExamKit")
page = st.sidebar.radio("Navigate", ["Exam", "History"], label_visibility="collapsed")

catalog = list(bank_catalog())
if ctx.bank_id and ctx.bank_id not in catalog:
    catalog.insert(0, ctx.bank_id)
selected_bank = st.sidebar.selectbox(
    "Question bank",
    catalog,
    index=catalog.index(ctx.bank_id) if ctx.bank_id in catalog else 0,
    format_func=ctx.loader.label_for,
)
if selected_bank != ctx.bank_id:
    ctx.switch_bank(selected_bank)
    st.rerun()

st.sidebar.subheader("Settings")
cfg = ctx.config
shuffle_questions = st.sidebar.checkbox("Shuffle questions", value=cfg.shuffle_questions)
shuffle_options = st.sidebar.checkbox("Shuffle options", value=cfg.shuffle_options)
show_explanation = st.sidebar.checkbox("Show explanations", value=cfg.show_explanation)
auto_save = st.sidebar.checkbox("Autosave progress", value=cfg.auto_save)
passing_score = st.sidebar.number_input("Passing score", min_value=0, max_value=100, value=cfg.passing_score)
changes = {
    "shuffle_questions": shuffle_questions,
    "shuffle_options": shuffle_options,
    "show_explanation": show_explanation,
    "auto_save": auto_save,
    "passing_score": int(passing_score),
}
if any(getattr(cfg, k) != v for k, v in changes.items()):
    ctx.update_config(**changes)

if st.sidebar.button("Clear all local data"):
    ctx.clear_local_data()
    st.sidebar.success("Local progress, settings and history cleared.")

# ----- History -----
if page == "History":
    st.header("History")
    records = ctx.history()
    if not records:
        st.info("No exam records yet.")
    else:
        st.dataframe(
            [
                {
                    "Date": r.date.strftime("%Y-%m-%d %H:%M"),
                    "Bank": r.bank_label or r.bank_id,
                    "Score": r.score,
                    "Correct": f"{r.correct_count}/{r.total_count}",
                    "Duration": fmt_duration(r.duration.total_seconds()),
                    "Result": "Pass" if r.passed else "Fail",
                }
                for r in records
            ],
            use_container_width=True,
        )
    st.stop()

# ----- Exam -----
st.header(ctx.bank_label or "Exam")

for i, notice in enumerate(list(ctx.notices)):
    col1, col2 = st.columns([6, 1])
    col1.error(notice)
    if col2.button("Dismiss", key=f"notice_{i}"):
        ctx.dismiss_notice(i)
        st.rerun()

session = ctx.session

# Home: resume prompt or start
if session is None:
    st.caption(f"{len(ctx.bank)} questions · passing score {ctx.config.passing_score}")
    pending = ctx.pending_progress()
    if pending:
        st.warning("Unfinished exam progress was found. Continue where you left off?")
        col1, col2 = st.columns(2)
        if col1.button("Resume"):
            ctx.resume_progress()
            st.rerun()
        if col2.button("Discard"):
            ctx.discard_progress()
            st.rerun()
    if st.button("Start exam", type="primary"):
        ctx.start_session()
        st.rerun()
    st.stop()

# Result page
if session.completed:
    result = ctx.last_result or ctx.confirm_submit()
    if result.passed:
        st.success("Passed")
    else:
        st.error("Not passed")
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Score", result.score)
    col2.metric("Correct", f"{result.correct_count}/{result.total_count}")
    col3.metric("Accuracy", f"{result.accuracy}%")
    col4.metric("Duration", fmt_duration(result.duration.total_seconds()))

    analysis = analyze(result)
    st.subheader("Analysis")
    st.write(f"Average time per question: {analysis['avg_seconds_per_question']} s ({analysis['pace']} pace)")
    if analysis["review"]:
        st.write(f"{analysis['wrong_count']} wrong answers. Review first:")
        for item in analysis["review"]:
            st.write(f"- Question {item['id']}: {item['question']}...")

    st.subheader("Review")
    by_id = {w.question.id: w for w in result.wrong_answers}
    for q in session.ordered_questions:
        wrong = by_id.get(q.id)
        icon = "✅" if wrong is None else "❌"
        with st.expander(f"{icon} {q.text}"):
            for opt in q.options:
                st.write(opt)
            given = session.answers.get(q.id) or UNANSWERED
            st.write(f"Your answer: **{given}** · Correct answer: **{q.answer_key}**")
            if ctx.config.show_explanation and q.explanation:
                st.info(q.explanation)

    col1, col2, col3 = st.columns(3)
    name, content = ctx.export("json")
    col1.download_button("Export JSON", content, file_name=name, mime="application/json")
    name, content = ctx.export("csv")
    col2.download_button("Export CSV", content.encode("utf-8"), file_name=name, mime="text/csv")
    if col3.button("Restart"):
        ctx.restart()
        st.rerun()
    st.stop()

# Exam in progress
def store_elapsed(elapsed) -> None:
    st.session_state["elapsed_sec"] = elapsed.total_seconds()


@st.fragment(run_every=CLOCK_TICK_SECONDS)
def live_status() -> None:
    # Reruns every tick: drives queued input, the clock and autosave
    ctx.poll_timers()
    if ctx.session is None or ctx.session.completed:
        return
    summary = ctx.session.summary()
    elapsed = st.session_state.get("elapsed_sec", summary["time_elapsed_sec"])
    st.metric("Elapsed", fmt_duration(elapsed))
    total = summary["total_questions"]
    st.progress(summary["questions_answered"] / total if total else 0)
    st.caption(f"{summary['questions_answered']}/{total} answered")


def queue_text(question_id, key: str) -> None:
    ctx.type_answer(question_id, st.session_state[key])


if not ctx.timers_running:
    st.session_state.pop("elapsed_sec", None)
    ctx.start_timers(store_elapsed)
with st.sidebar:
    live_status()

n = len(session.ordered_questions)

idx = session.current_index
q = session.current_question()
st.subheader(f"Question {idx + 1} of {n}")
st.write(q.text)

if q.is_single_choice:
    current = session.answers.get(q.id)
    labels = [opt.split(".", 1)[0] for opt in q.options]
    choice = st.radio(
        "Choose one:",
        range(len(q.options)),
        format_func=lambda i: q.options[i],
        index=labels.index(current) if current in labels else None,
        key=f"q_{session.bank_id}_{q.id}",
    )
    if choice is not None:
        session.select_option_by_number(choice)
else:
    key = f"q_{session.bank_id}_{q.id}"
    st.text_input("Your answer:", value=session.answers.get(q.id, ""), key=key,
                  on_change=queue_text, args=(q.id, key))

col1, col2, col3 = st.columns([1, 1, 2])
with col1:
    if st.button("Previous", disabled=idx == 0):
        ctx.previous()
        st.rerun()
with col2:
    if st.button("Next", disabled=idx >= n - 1):
        ctx.next()
        st.rerun()
with col3:
    if st.button("Submit exam"):
        check = ctx.prepare_submit()
        if check.needs_confirmation:
            st.session_state["confirm_submit"] = check.unanswered_count
        else:
            ctx.confirm_submit()
        st.rerun()

if st.session_state.get("confirm_submit"):
    st.warning(
        f"{st.session_state['confirm_submit']} questions are unanswered and will count as wrong. Submit anyway?"
    )
    col1, col2 = st.columns(2)
    if col1.button("Submit anyway"):
        st.session_state["confirm_submit"] = 0
        ctx.confirm_submit()
        st.rerun()
    if col2.button("Keep answering"):
        st.session_state["confirm_submit"] = 0
        st.rerun()

grid = st.columns(min(n, 10) or 1)
for i, question in enumerate(session.ordered_questions):
    mark = "●" if session.is_answered(question) else "○"
    if grid[i % len(grid)].button(f"{mark} {i + 1}", key=f"grid_{i}"):
        ctx.navigate(i)
        st.rerun()

"""
KRA Assessment - Streamlit UI
Login, instructions, the timed test and the results page
"""

import streamlit as st
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import ASSESSMENT_CONFIG, SECTION_CONFIG
from core.errors import MutationRejected, SessionNotFoundError, SessionStartError, SubmissionError
from engine.analysis_engine import AnalysisEngine
from engine.session_engine import TERMINAL_PHASES, AssessmentEngine, SessionPhase
from storage.json_storage import AttemptStorage, QuestionStorage
from storage.takers import TakerDirectory


# Page config
st.set_page_config(
    page_title="Employee Assessment",
    page_icon="📝",
    layout="centered",
)

# Custom CSS
st.markdown("""
<style>
    .main-header {
        font-size: 2rem;
        font-weight: 700;
        text-align: center;
        padding: 1rem;
    }
    .question-box {
        background: #f8f9fa;
        padding: 1.5rem;
        border-radius: 0.5rem;
        border-left: 4px solid #1f77b4;
        margin: 1rem 0;
    }
    .timer {
        font-family: monospace;
        font-size: 1.5rem;
        text-align: right;
    }
    .timer-low {
        color: #dc3545;
    }
    .grade-card {
        background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
        padding: 1.5rem;
        border-radius: 1rem;
        color: white;
        text-align: center;
        margin: 0.5rem 0;
    }
    .grade-card h2 {
        margin: 0;
        font-size: 3rem;
    }
</style>
""", unsafe_allow_html=True)


def init_session_state():
    """Initialize session state variables"""
    if 'engine' not in st.session_state:
        st.session_state.engine = AssessmentEngine(
            QuestionStorage().fetch_pool,
            AttemptStorage().persist,
        )

    if 'taker' not in st.session_state:
        st.session_state.taker = None

    if 'handle' not in st.session_state:
        st.session_state.handle = None

    if 'analysis' not in st.session_state:
        st.session_state.analysis = None

    if 'current_page' not in st.session_state:
        st.session_state.current_page = 'login'

    if 'rendered_frozen' not in st.session_state:
        st.session_state.rendered_frozen = False


def go(page: str):
    st.session_state.current_page = page
    st.rerun()


def render_login():
    """Credential check"""
    st.markdown('<h1 class="main-header">📝 Employee Assessment</h1>', unsafe_allow_html=True)

    username = st.text_input("Username")
    password = st.text_input("Password", type="password")

    if st.button("Login", type="primary", use_container_width=True):
        taker = TakerDirectory().authenticate(username, password)
        if taker is None:
            st.error("Invalid credentials")
            return

        st.session_state.taker = taker
        go('landing')


def render_landing():
    """Instructions and start button"""
    taker = st.session_state.taker

    col1, col2 = st.columns([3, 1])
    with col1:
        st.markdown(f"## Welcome, {taker.display_name}!")
        st.caption("Employee Assessment Portal")
    with col2:
        if st.button("Logout"):
            logout()

    per_section = ASSESSMENT_CONFIG.per_section_count
    total = per_section * len(SECTION_CONFIG.order)
    minutes = ASSESSMENT_CONFIG.duration_seconds // 60

    st.subheader("📖 Test Instructions")
    st.markdown(f"""
    **Test Structure:**
    - {len(SECTION_CONFIG.order)} sections: {", ".join(SECTION_CONFIG.display_name(s) for s in SECTION_CONFIG.order)}
    - {per_section} random questions per section ({total} total)
    - Multiple choice questions (A, B, C, D)
    - One question displayed at a time

    **⏱ Time Limit:** {minutes} minutes total for all sections

    **Important Notes:**
    - You can navigate between questions using Next/Previous
    - Your answers are automatically saved
    - The test is submitted automatically when time runs out
    - Results will be shown immediately after submission
    """)

    st.markdown("---")
    st.subheader("🎯 Test Sections")
    for section in SECTION_CONFIG.order:
        info = SECTION_CONFIG.sections[section]
        st.markdown(f"**{info['name']} ({per_section} questions)**  \n{info['description']}")

    st.markdown("---")

    if not taker.can_attempt:
        st.warning("🔒 Test Access Restricted. Please contact your supervisor to enable test access.")
        return

    if st.button("🚀 Start Test", type="primary", use_container_width=True):
        start_test()


def start_test():
    engine = st.session_state.engine
    try:
        handle = engine.start_session(st.session_state.taker)
    except SessionStartError as e:
        st.error(f"Failed to load questions: {e}")
        return

    st.session_state.handle = handle
    st.session_state.analysis = None
    st.session_state.rendered_frozen = False
    go('test')


def logout():
    handle = st.session_state.handle
    if handle:
        st.session_state.engine.discard(handle)
    st.session_state.taker = None
    st.session_state.handle = None
    st.session_state.analysis = None
    go('login')


@st.fragment(run_every=1)
def render_timer(handle: str):
    """Observes the session clock; the clock itself ticks in the engine"""
    engine = st.session_state.engine
    try:
        snap = engine.snapshot(handle)
    except SessionNotFoundError:
        return

    # Full rerun when expiry finished the session or a failed write froze it
    if snap.phase in TERMINAL_PHASES or (
        snap.phase == SessionPhase.ACTIVE and snap.frozen != st.session_state.rendered_frozen
    ):
        st.rerun()

    css = "timer timer-low" if snap.low_time else "timer"
    st.markdown(f'<div class="{css}">⏱ {snap.remaining_display}</div>', unsafe_allow_html=True)


def render_test():
    """Render the active assessment"""
    engine = st.session_state.engine
    handle = st.session_state.handle

    if handle is None:
        go('landing')

    try:
        snap = engine.snapshot(handle)
    except SessionNotFoundError:
        st.session_state.handle = None
        go('landing')

    if snap.phase == SessionPhase.SUCCESS:
        finish_test()
        return

    if snap.phase == SessionPhase.FAILURE:
        st.error(f"❌ Your test could not be recorded: {snap.last_error}")
        st.markdown("Please contact your administrator.")
        if st.button("🏠 Back to Home"):
            engine.discard(handle)
            st.session_state.handle = None
            go('landing')
        return

    if snap.phase == SessionPhase.SUBMITTING:
        st.info("Submitting...")
        render_timer(handle)
        return

    st.session_state.rendered_frozen = snap.frozen

    # Header
    col1, col2 = st.columns([3, 1])
    with col1:
        st.markdown("## Employee Assessment")
        st.caption(f"Question {snap.index + 1} of {snap.total_questions} • {snap.section_name}")
    with col2:
        render_timer(handle)

    st.progress(snap.progress)

    if snap.frozen:
        render_submit_retry(snap)
        return

    question = snap.question

    st.markdown(f'''
        <div class="question-box">
            {question.question_text}
        </div>
    ''', unsafe_allow_html=True)

    options = question.options

    # Save answer immediately via on_change callback
    def save_answer():
        picked = st.session_state[f"q_{question.id}"]
        if picked:
            try:
                engine.select_answer(handle, picked)
            except MutationRejected:
                st.session_state.answer_locked = True

    st.radio(
        "Select your answer:",
        options=list(options),
        format_func=lambda x: f"{x}. {options[x]}",
        index=list(options).index(snap.selected_option) if snap.selected_option else None,
        key=f"q_{question.id}",
        on_change=save_answer,
    )

    if st.session_state.pop('answer_locked', False):
        st.warning("⚠️ Time is up. That answer was not recorded.")

    st.markdown("---")

    # Navigation
    col1, col2, col3 = st.columns(3)

    with col1:
        if st.button("⬅️ Previous", disabled=snap.is_first):
            engine.go_previous(handle)
            st.rerun()

    with col2:
        st.markdown(f"{snap.answered_count} of {snap.total_questions} answered")

    with col3:
        if snap.is_last:
            if st.button("📤 Submit Test", type="primary"):
                submit_test()
        else:
            if st.button("Next ➡️"):
                engine.go_next(handle)
                st.rerun()


def render_submit_retry(snap):
    """Shown when the attempt store rejected the submission"""
    st.error(f"Failed to submit test: {snap.last_error}")
    st.info(
        f"Your answers are saved and locked. "
        f"Attempt {snap.submit_attempts} of {ASSESSMENT_CONFIG.max_submit_attempts}."
    )
    if st.button("🔁 Retry Submission", type="primary"):
        submit_test()


def submit_test():
    engine = st.session_state.engine
    try:
        engine.request_submit(st.session_state.handle)
    except SubmissionError as e:
        st.error(f"Failed to submit test: {e}")
        if e.retryable:
            st.rerun()
        return
    finish_test()


def finish_test():
    """Hand the result to the results page and drop the session"""
    engine = st.session_state.engine
    handle = st.session_state.handle

    result = engine.result(handle)
    st.session_state.analysis = AnalysisEngine().analyze(result, engine.breakdown(handle))

    engine.discard(handle)
    st.session_state.handle = None
    go('results')


def render_results():
    """Render the submitted result"""
    analysis = st.session_state.analysis
    if analysis is None:
        go('landing')

    st.markdown('<h1 class="main-header">✅ Test Completed!</h1>', unsafe_allow_html=True)
    st.markdown("Thank you for completing the assessment")

    col1, col2 = st.columns(2)
    with col1:
        st.markdown(f'''
            <div class="grade-card">
                <h2>{analysis.percentage}%</h2>
                <p>{analysis.total} / {analysis.max_score}</p>
            </div>
        ''', unsafe_allow_html=True)
    with col2:
        st.markdown(f'''
            <div class="grade-card">
                <h2>{analysis.grade}</h2>
                <p>Grade</p>
            </div>
        ''', unsafe_allow_html=True)

    st.markdown("---")
    st.subheader("📊 Section-wise Performance")

    for s in analysis.sections:
        st.progress(s.percentage / 100, f"{s.name}: {s.score}/{s.total} ({s.percentage}%)")

    st.markdown("---")
    st.subheader("Performance Summary")

    if analysis.band == "excellent":
        st.success(f"**{analysis.headline}** {analysis.message}")
    elif analysis.band == "good":
        st.info(f"**{analysis.headline}** {analysis.message}")
    else:
        st.warning(f"**{analysis.headline}** {analysis.message}")

    st.markdown("""
    - Your results have been recorded and will be reviewed by your supervisor
    - You may retake the test if permitted by your administrator
    - For questions about your results, please contact HR
    """)

    if st.button("🏠 Back to Home"):
        st.session_state.analysis = None
        go('landing')


def main():
    init_session_state()

    page = st.session_state.current_page

    # Route guards: pages past login need an authenticated taker
    if page != 'login' and st.session_state.taker is None:
        page = 'login'

    if page == 'landing':
        render_landing()
    elif page == 'test':
        render_test()
    elif page == 'results':
        render_results()
    else:
        render_login()


if __name__ == "__main__":
    main()

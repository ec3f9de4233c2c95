"""
Assessment Session Engine
Handles session creation, answer collection, navigation, the countdown
and the single submission of each attempt
"""

import logging
import random
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from config.settings import ASSESSMENT_CONFIG, SECTION_CONFIG, AssessmentConfig
from core.errors import (
    InvalidSessionConfigError,
    MutationRejected,
    PermissionDeniedError,
    SessionNotFoundError,
    SubmissionError,
)
from core.models import AttemptRecord, Question, ScoreResult, Taker
from engine import scorer
from engine.clock import ClockTicker, SessionClock
from engine.ledger import AnswerLedger
from engine.navigator import Navigator
from engine.sampler import FetchPool, QuestionSampler

logger = logging.getLogger(__name__)


class SessionPhase(Enum):
    LOADING = "loading"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    SUCCESS = "terminal_success"
    FAILURE = "terminal_failure"


TERMINAL_PHASES = (SessionPhase.SUCCESS, SessionPhase.FAILURE)


@dataclass
class AssessmentSession:
    """Mutable state of one live session"""
    session_id: str
    taker: Taker
    questions: List[Question]
    ledger: AnswerLedger
    navigator: Navigator
    clock: SessionClock
    phase: SessionPhase = SessionPhase.LOADING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    # Submission snapshot, set once when the session freezes
    frozen: bool = False
    trigger: Optional[str] = None
    score_result: Optional[ScoreResult] = None
    record: Optional[AttemptRecord] = None
    submit_attempts: int = 0
    last_error: Optional[str] = None

    ticker: Optional[ClockTicker] = field(default=None, repr=False)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def current_question(self) -> Question:
        return self.questions[self.navigator.current_index()]

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def accepts_input(self) -> bool:
        return (
            self.phase == SessionPhase.ACTIVE
            and not self.frozen
            and self.clock.is_running
        )


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of a session for presentation layers"""
    session_id: str
    phase: SessionPhase
    index: int
    total_questions: int
    answered_count: int
    progress: float
    remaining_seconds: int
    remaining_display: str
    low_time: bool
    question: Question
    section_name: str
    selected_option: Optional[str]
    is_first: bool
    is_last: bool
    frozen: bool
    submit_attempts: int
    last_error: Optional[str]


class SubmissionCoordinator:
    """
    Runs the end of a session: freeze, score once, persist once
    A failed write keeps the frozen snapshot so the taker can retry
    """

    def __init__(
        self,
        persist: Callable[[AttemptRecord], None],
        max_attempts: int = 3,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.persist = persist
        self.max_attempts = max(1, max_attempts)
        self.now = now or (lambda: datetime.now(timezone.utc))

    def submit(self, session: AssessmentSession, trigger: str = "taker") -> Optional[ScoreResult]:
        """
        Submit the session. Returns None when another trigger already
        owns the submission (the loser of a submit/expiry race).
        """
        with session.lock:
            if session.phase != SessionPhase.ACTIVE:
                logger.info(
                    f"Submit ({trigger}) ignored for {session.session_id}: "
                    f"phase is {session.phase.value}"
                )
                return None

            session.phase = SessionPhase.SUBMITTING
            session.clock.stop()

            if not session.frozen:
                self._freeze(session, trigger)
            session.submit_attempts += 1
            attempt = session.submit_attempts
            record = session.record

        logger.info(
            f"Submitting {session.session_id} ({session.trigger}), "
            f"attempt {attempt}/{self.max_attempts}"
        )

        try:
            self.persist(record)
        except Exception as e:
            raise self._fail(session, attempt, str(e)) from e

        with session.lock:
            session.phase = SessionPhase.SUCCESS
            session.last_error = None

        logger.info(
            f"Session {session.session_id} submitted: "
            f"{session.score_result.total}/{session.score_result.max_score}"
        )
        return session.score_result

    def _freeze(self, session: AssessmentSession, trigger: str) -> None:
        """Lock the ledger and navigator, then score the frozen snapshot"""
        session.ledger.freeze()
        session.navigator.freeze()
        session.frozen = True
        session.trigger = trigger

        session.score_result = scorer.score(session.questions, session.ledger)
        session.record = AttemptRecord(
            taker_id=session.taker.id,
            scores=session.score_result,
            answers=session.ledger.all(),
            completed_at=self.now(),
        )

    def _fail(self, session: AssessmentSession, attempt: int, reason: str) -> SubmissionError:
        retryable = attempt < self.max_attempts
        with session.lock:
            session.last_error = reason
            session.phase = SessionPhase.ACTIVE if retryable else SessionPhase.FAILURE

        if retryable:
            logger.warning(
                f"Attempt store failed for {session.session_id} "
                f"({attempt}/{self.max_attempts}): {reason}"
            )
        else:
            logger.error(
                f"Giving up on {session.session_id} after {attempt} failed writes: {reason}"
            )

        return SubmissionError(
            f"Failed to submit assessment: {reason}",
            retryable=retryable,
            attempts_used=attempt,
        )


class AssessmentEngine:
    """
    Main engine that manages assessment sessions
    Every call takes the session handle returned by start_session
    """

    def __init__(
        self,
        fetch_pool: FetchPool,
        persist: Callable[[AttemptRecord], None],
        config: AssessmentConfig = None,
        rng: Optional[random.Random] = None,
        run_clock: bool = True,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or ASSESSMENT_CONFIG
        self.sampler = QuestionSampler(fetch_pool, rng=rng)
        self.coordinator = SubmissionCoordinator(
            persist,
            max_attempts=self.config.max_submit_attempts,
            now=now,
        )
        self.run_clock = run_clock
        self.sessions: Dict[str, AssessmentSession] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_session(
        self,
        taker: Optional[Taker],
        sections: Optional[Sequence[str]] = None,
        per_section_count: Optional[int] = None,
        duration_seconds: Optional[int] = None,
    ) -> str:
        """Create and start a session, returning its handle"""
        if taker is None:
            raise PermissionDeniedError("No authenticated taker")
        if not taker.can_attempt:
            raise PermissionDeniedError(f"Taker {taker.id} is not permitted to attempt")

        sections = list(SECTION_CONFIG.order if sections is None else sections)
        if per_section_count is None:
            per_section_count = self.config.per_section_count
        if duration_seconds is None:
            duration_seconds = self.config.duration_seconds
        self._validate_request(sections, per_section_count, duration_seconds)

        questions = self.sampler.sample(sections, per_section_count)

        session = AssessmentSession(
            session_id=self._generate_session_id(),
            taker=taker,
            questions=questions,
            ledger=AnswerLedger(),
            navigator=Navigator(len(questions)),
            clock=SessionClock(low_time_threshold=self.config.low_time_threshold),
        )
        session.clock.on_expire(lambda: self._on_expire(session))
        session.clock.start(duration_seconds)

        # Registered only once the clock is running
        session.phase = SessionPhase.ACTIVE
        self.sessions[session.session_id] = session

        if self.run_clock:
            session.ticker = ClockTicker(session.clock, name=f"clock-{session.session_id}")
            session.ticker.start()

        logger.info(
            f"Started {session.session_id} for taker {taker.id}: "
            f"{len(questions)} questions, {duration_seconds}s"
        )
        return session.session_id

    @staticmethod
    def _validate_request(sections: List[str], per_section_count: int, duration_seconds: int):
        if not sections:
            raise InvalidSessionConfigError("At least one section is required")
        if len(set(sections)) != len(sections):
            raise InvalidSessionConfigError(f"Section tags must be unique: {sections}")
        if per_section_count <= 0:
            raise InvalidSessionConfigError(
                f"per_section_count must be positive, got {per_section_count}"
            )
        if duration_seconds <= 0:
            raise InvalidSessionConfigError(
                f"duration_seconds must be positive, got {duration_seconds}"
            )

    def discard(self, handle: str) -> None:
        """Drop a session from memory, stopping its clock"""
        session = self.sessions.pop(handle, None)
        if session is None:
            return
        session.clock.stop()
        if session.ticker:
            session.ticker.cancel()
        logger.debug(f"Discarded {handle} in phase {session.phase.value}")

    def _generate_session_id(self) -> str:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"session_{timestamp}_{uuid.uuid4().hex[:8]}"

    def _get(self, handle: str) -> AssessmentSession:
        session = self.sessions.get(handle)
        if session is None:
            raise SessionNotFoundError(f"No session for handle {handle!r}")
        return session

    # ------------------------------------------------------------------
    # Taker actions
    # ------------------------------------------------------------------

    def get_current_question(self, handle: str) -> Question:
        return self._get(handle).current_question

    def selected_option(self, handle: str) -> Optional[str]:
        session = self._get(handle)
        return session.ledger.get(session.current_question.id)

    def select_answer(self, handle: str, option_label: str) -> None:
        session = self._get(handle)
        with session.lock:
            if not session.accepts_input:
                raise MutationRejected(
                    f"Cannot answer while session is {session.phase.value}"
                )
            question = session.current_question
            session.ledger.upsert(question.id, option_label, question.section)

    def go_next(self, handle: str) -> bool:
        return self._move(handle, lambda nav: nav.next())

    def go_previous(self, handle: str) -> bool:
        return self._move(handle, lambda nav: nav.previous())

    def jump_to(self, handle: str, index: int) -> bool:
        return self._move(handle, lambda nav: nav.jump_to(index))

    def _move(self, handle: str, step: Callable[[Navigator], bool]) -> bool:
        session = self._get(handle)
        with session.lock:
            if not session.accepts_input:
                return False
            return step(session.navigator)

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    def remaining_time(self, handle: str) -> int:
        return self._get(handle).clock.remaining

    def tick(self, handle: str) -> int:
        """Advance the session clock by one second"""
        return self._get(handle).clock.tick()

    def _on_expire(self, session: AssessmentSession) -> None:
        logger.info(f"Time is up for {session.session_id}; auto-submitting")
        try:
            self.coordinator.submit(session, trigger="expiry")
        except SubmissionError as e:
            # Session stays frozen; the host offers a manual retry
            logger.error(f"Auto-submit failed for {session.session_id}: {e}")

    # ------------------------------------------------------------------
    # Submission and results
    # ------------------------------------------------------------------

    def request_submit(self, handle: str) -> ScoreResult:
        """
        Explicit submit from the taker. A fresh submit is only accepted on the
        final question; retrying a frozen submission works from anywhere.
        """
        session = self._get(handle)

        with session.lock:
            if session.accepts_input and not session.navigator.is_last():
                raise MutationRejected("Submit is only available on the final question")

        if session.phase == SessionPhase.FAILURE:
            raise SubmissionError(
                session.last_error or "Submission abandoned",
                retryable=False,
                attempts_used=session.submit_attempts,
            )

        result = self.coordinator.submit(session, trigger="taker")
        if result is not None:
            return result

        if session.phase == SessionPhase.SUCCESS:
            return session.score_result
        raise SubmissionError("Submission already in progress", retryable=True,
                              attempts_used=session.submit_attempts)

    def result(self, handle: str) -> Optional[ScoreResult]:
        session = self._get(handle)
        return session.score_result if session.phase == SessionPhase.SUCCESS else None

    def phase(self, handle: str) -> SessionPhase:
        return self._get(handle).phase

    def breakdown(self, handle: str) -> Dict[str, Dict[str, int]]:
        session = self._get(handle)
        return scorer.breakdown(session.questions, session.ledger)

    def snapshot(self, handle: str) -> SessionSnapshot:
        session = self._get(handle)
        with session.lock:
            nav = session.navigator
            question = session.current_question
            return SessionSnapshot(
                session_id=session.session_id,
                phase=session.phase,
                index=nav.current_index(),
                total_questions=len(session.questions),
                answered_count=session.ledger.count(),
                progress=nav.progress_fraction(),
                remaining_seconds=session.clock.remaining,
                remaining_display=session.clock.format_remaining(),
                low_time=session.clock.is_low_time(),
                question=question,
                section_name=SECTION_CONFIG.display_name(question.section),
                selected_option=session.ledger.get(question.id),
                is_first=nav.is_first(),
                is_last=nav.is_last(),
                frozen=session.frozen,
                submit_attempts=session.submit_attempts,
                last_error=session.last_error,
            )

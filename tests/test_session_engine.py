import threading

import pytest

from conftest import FIXED_NOW, SECTIONS, RecordingStore, wrong_option
from config.settings import AssessmentConfig
from core.errors import (
    EmptyPoolError,
    InvalidSessionConfigError,
    MutationRejected,
    PermissionDeniedError,
    SessionNotFoundError,
    SessionStartError,
    SubmissionError,
)
from core.models import Taker
from engine.session_engine import SessionPhase

LAST = 29


def answer_all(engine, handle, correct_for):
    """Walk every question; correct_for returns True, False, or None to skip"""
    index = 0
    while True:
        q = engine.get_current_question(handle)
        verdict = correct_for(index, q)
        if verdict:
            engine.select_answer(handle, q.correct_option)
        elif verdict is False:
            engine.select_answer(handle, wrong_option(q.correct_option))
        index += 1
        if not engine.go_next(handle):
            break


class TestStartSession:

    def test_start_builds_active_session(self, engine, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1800)

        snap = engine.snapshot(handle)
        assert snap.phase == SessionPhase.ACTIVE
        assert snap.total_questions == 30
        assert snap.index == 0
        assert snap.remaining_seconds == 1800
        assert snap.remaining_display == "30:00"
        assert snap.section_name == "Aptitude"
        assert snap.answered_count == 0

    def test_defaults_come_from_config(self, engine, taker):
        handle = engine.start_session(taker)

        assert engine.snapshot(handle).total_questions == 30
        assert engine.remaining_time(handle) == 1800

    def test_missing_taker_is_refused(self, engine):
        with pytest.raises(PermissionDeniedError):
            engine.start_session(None, SECTIONS, 10, 1800)
        assert engine.sessions == {}

    def test_taker_without_permission_is_refused(self, engine, repository):
        blocked = Taker(id="emp-002", username="bob", can_attempt=False)

        with pytest.raises(PermissionDeniedError):
            engine.start_session(blocked, SECTIONS, 10, 1800)
        assert repository.fetches == []

    def test_small_pool_aborts_start(self, engine, taker):
        with pytest.raises(EmptyPoolError):
            engine.start_session(taker, SECTIONS, 13, 1800)
        assert engine.sessions == {}

    def test_sessions_are_independent(self, engine, taker):
        other = Taker(id="emp-009", username="carol", can_attempt=True)
        h1 = engine.start_session(taker, SECTIONS, 10, 1800)
        h2 = engine.start_session(other, SECTIONS, 10, 60)

        engine.select_answer(h1, "A")
        engine.go_next(h1)
        engine.tick(h2)

        assert h1 != h2
        assert engine.snapshot(h2).answered_count == 0
        assert engine.snapshot(h2).index == 0
        assert engine.remaining_time(h1) == 1800
        assert engine.remaining_time(h2) == 59

    @pytest.mark.parametrize("per_section,duration", [
        (10, -5),
        (10, 0),
        (0, 1800),
        (-1, 1800),
    ])
    def test_bad_counts_are_rejected_without_registering(self, engine, taker, per_section, duration):
        with pytest.raises(InvalidSessionConfigError):
            engine.start_session(taker, SECTIONS, per_section, duration)

        assert engine.sessions == {}

    def test_bad_request_is_a_start_error(self, engine, taker):
        with pytest.raises(SessionStartError):
            engine.start_session(taker, SECTIONS, 10, -5)

    def test_repeated_sections_are_rejected(self, engine, taker, repository):
        with pytest.raises(InvalidSessionConfigError):
            engine.start_session(taker, ["aptitude", "aptitude"], 10, 1800)

        assert repository.fetches == []
        assert engine.sessions == {}

    def test_empty_section_list_is_rejected(self, engine, taker):
        with pytest.raises(InvalidSessionConfigError):
            engine.start_session(taker, [], 10, 1800)

    def test_unknown_handle(self, engine):
        with pytest.raises(SessionNotFoundError):
            engine.get_current_question("nope")


class TestAnswersAndNavigation:

    def test_select_answer_is_idempotent(self, engine, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1800)

        engine.select_answer(handle, "C")
        engine.select_answer(handle, "C")

        assert engine.snapshot(handle).answered_count == 1
        assert engine.selected_option(handle) == "C"

    def test_select_answer_overwrites(self, engine, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1800)

        engine.select_answer(handle, "A")
        engine.select_answer(handle, "B")

        assert engine.selected_option(handle) == "B"
        assert engine.snapshot(handle).answered_count == 1

    def test_answer_follows_current_question(self, engine, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1800)
        engine.select_answer(handle, "A")
        engine.go_next(handle)

        assert engine.selected_option(handle) is None
        engine.go_previous(handle)
        assert engine.selected_option(handle) == "A"

    def test_navigation_bounds(self, engine, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1800)

        assert engine.go_previous(handle) is False
        assert engine.jump_to(handle, 29) is True
        assert engine.go_next(handle) is False
        assert engine.snapshot(handle).is_last
        assert engine.snapshot(handle).section_name == "KRA Knowledge"
        assert engine.snapshot(handle).progress == 1.0

    def test_mutations_rejected_after_submit(self, engine, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1800)
        engine.jump_to(handle, LAST)
        engine.request_submit(handle)

        with pytest.raises(MutationRejected):
            engine.select_answer(handle, "A")
        assert engine.go_next(handle) is False
        assert engine.jump_to(handle, 5) is False


class TestSubmission:

    def test_submit_before_final_question_is_rejected(self, engine, store, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1800)
        engine.jump_to(handle, LAST - 1)

        with pytest.raises(MutationRejected):
            engine.request_submit(handle)

        assert store.calls == []
        assert engine.phase(handle) == SessionPhase.ACTIVE
        assert not engine.snapshot(handle).frozen
        assert engine.go_next(handle) is True
        assert engine.request_submit(handle).total == 0

    def test_retry_after_expiry_works_from_any_question(self, make_engine, taker):
        store = RecordingStore(failures=1)
        engine = make_engine(store)
        handle = engine.start_session(taker, SECTIONS, 10, 1)
        engine.tick(handle)

        assert engine.snapshot(handle).index == 0
        assert engine.request_submit(handle).total == 0
        assert len(store.records) == 1

    def test_explicit_submit_persists_once(self, engine, store, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1800)
        engine.select_answer(handle, engine.get_current_question(handle).correct_option)

        engine.jump_to(handle, LAST)
        result = engine.request_submit(handle)

        assert result.total == 1
        assert engine.phase(handle) == SessionPhase.SUCCESS
        assert engine.result(handle) == result
        assert len(store.calls) == 1

        record = store.records[0]
        assert record.taker_id == "emp-001"
        assert record.completed_at == FIXED_NOW
        assert record.scores == result
        assert len(record.answers) == 1

    def test_submit_stops_clock(self, engine, store, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 5)
        engine.jump_to(handle, LAST)
        engine.request_submit(handle)

        for _ in range(10):
            engine.tick(handle)

        assert engine.remaining_time(handle) == 5
        assert len(store.calls) == 1

    def test_second_submit_returns_same_result_without_persisting(self, engine, store, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1800)

        engine.jump_to(handle, LAST)
        first = engine.request_submit(handle)
        second = engine.request_submit(handle)

        assert first is second
        assert len(store.calls) == 1

    def test_expiry_auto_submits(self, engine, store, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 3)
        engine.select_answer(handle, engine.get_current_question(handle).correct_option)

        engine.tick(handle)
        engine.tick(handle)
        assert store.calls == []
        engine.tick(handle)

        assert engine.phase(handle) == SessionPhase.SUCCESS
        assert len(store.calls) == 1
        assert engine.result(handle).total == 1
        assert engine.sessions[handle].trigger == "expiry"

    def test_answer_after_expiry_is_rejected(self, engine, store, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1)
        engine.tick(handle)

        with pytest.raises(MutationRejected):
            engine.select_answer(handle, "A")
        assert store.records[0].answers == []

    def test_submit_after_expiry_does_not_double_persist(self, engine, store, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1)
        engine.tick(handle)

        result = engine.request_submit(handle)

        assert result == engine.result(handle)
        assert len(store.calls) == 1

    def test_expiry_and_submit_race_persist_once(self, engine, store, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1)
        engine.jump_to(handle, LAST)
        barrier = threading.Barrier(2)
        errors = []

        def expire():
            barrier.wait()
            engine.tick(handle)

        def submit():
            barrier.wait()
            try:
                engine.request_submit(handle)
            except SubmissionError as e:
                errors.append(e)

        threads = [threading.Thread(target=expire), threading.Thread(target=submit)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert len(store.calls) == 1
        assert engine.phase(handle) == SessionPhase.SUCCESS
        assert all(e.retryable for e in errors)

    def test_failed_write_allows_retry_with_same_score(self, make_engine, taker):
        store = RecordingStore(failures=1)
        engine = make_engine(store)
        handle = engine.start_session(taker, SECTIONS, 10, 1800)
        answer_all(engine, handle, lambda i, q: i % 2 == 0)

        with pytest.raises(SubmissionError) as exc_info:
            engine.request_submit(handle)

        assert exc_info.value.retryable
        assert exc_info.value.attempts_used == 1
        assert engine.phase(handle) == SessionPhase.ACTIVE
        snap = engine.snapshot(handle)
        assert snap.frozen
        assert snap.last_error == "database unavailable"

        # Frozen: nothing can change the snapshot between attempts
        with pytest.raises(MutationRejected):
            engine.select_answer(handle, "A")
        assert engine.go_previous(handle) is False

        result = engine.request_submit(handle)

        assert len(store.calls) == 2
        assert store.calls[0] is store.calls[1]
        assert store.calls[0].scores == result
        assert result.total == 15
        assert engine.phase(handle) == SessionPhase.SUCCESS

    def test_clock_not_restarted_after_failed_write(self, make_engine, taker):
        store = RecordingStore(failures=1)
        engine = make_engine(store)
        handle = engine.start_session(taker, SECTIONS, 10, 2)

        engine.tick(handle)
        engine.tick(handle)
        assert engine.phase(handle) == SessionPhase.ACTIVE
        assert len(store.calls) == 1

        engine.tick(handle)
        assert engine.remaining_time(handle) == 0
        assert len(store.calls) == 1

        result = engine.request_submit(handle)
        assert result.total == 0
        assert len(store.records) == 1

    def test_retries_are_bounded(self, make_engine, taker):
        store = RecordingStore(failures=10)
        engine = make_engine(store, config=AssessmentConfig(
            per_section_count=10, duration_seconds=1800, max_submit_attempts=2,
        ))
        handle = engine.start_session(taker, SECTIONS, 10, 1800)

        engine.jump_to(handle, LAST)
        with pytest.raises(SubmissionError) as first:
            engine.request_submit(handle)
        with pytest.raises(SubmissionError) as second:
            engine.request_submit(handle)
        with pytest.raises(SubmissionError) as third:
            engine.request_submit(handle)

        assert first.value.retryable
        assert not second.value.retryable
        assert not third.value.retryable
        assert len(store.calls) == 2
        assert engine.phase(handle) == SessionPhase.FAILURE
        assert engine.result(handle) is None

    def test_discard_removes_session(self, engine, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1800)
        engine.jump_to(handle, LAST)
        engine.request_submit(handle)

        engine.discard(handle)
        engine.discard(handle)

        with pytest.raises(SessionNotFoundError):
            engine.snapshot(handle)


class TestEndToEnd:

    def test_all_correct(self, engine, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1800)
        answer_all(engine, handle, lambda i, q: True)

        result = engine.request_submit(handle)

        assert result.total == 30
        assert result.section_scores == {s: 10 for s in SECTIONS}

    def test_no_answers(self, engine, taker):
        handle = engine.start_session(taker, SECTIONS, 10, 1800)
        answer_all(engine, handle, lambda i, q: None)

        result = engine.request_submit(handle)

        assert result.total == 0
        assert result.section_scores == {s: 0 for s in SECTIONS}

    def test_fifteen_correct_uneven(self, engine, store, taker):
        wanted = {"aptitude": 8, "product_knowledge": 5, "kra_knowledge": 2}
        seen = {s: 0 for s in SECTIONS}

        def correct_for(i, q):
            seen[q.section] += 1
            return seen[q.section] <= wanted[q.section]

        handle = engine.start_session(taker, SECTIONS, 10, 1800)
        answer_all(engine, handle, correct_for)

        result = engine.request_submit(handle)

        assert result.total == 15
        assert result.section_scores == wanted
        assert sum(result.section_scores.values()) == result.total
        assert len(store.records[0].answers) == 30

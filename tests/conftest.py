import random
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import AssessmentConfig
from core.errors import AttemptStoreError
from core.models import Question, Taker
from engine.session_engine import AssessmentEngine


SECTIONS = ["aptitude", "product_knowledge", "kra_knowledge"]
FIXED_NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


def make_question(qid, section="aptitude", correct="A", text=None):
    return Question(
        id=qid,
        section=section,
        question_text=text or f"Question {qid}?",
        option_a=f"{qid} alpha",
        option_b=f"{qid} bravo",
        option_c=f"{qid} charlie",
        option_d=f"{qid} delta",
        correct_option=correct,
    )


def wrong_option(correct):
    return "ABCD"[("ABCD".index(correct) + 1) % 4]


class FakeRepository:
    """Question repository keyed by section; records every fetch"""

    def __init__(self, pools):
        self.pools = pools
        self.fetches = []

    def fetch_pool(self, section):
        self.fetches.append(section)
        return self.pools.get(section, [])


class RecordingStore:
    """Attempt store that can be told to fail the next N writes"""

    def __init__(self, failures=0):
        self.failures = failures
        self.calls = []
        self.records = []

    def persist(self, record):
        self.calls.append(record)
        if self.failures > 0:
            self.failures -= 1
            raise AttemptStoreError("database unavailable")
        self.records.append(record)


@pytest.fixture
def question_bank():
    """Twelve questions per section, correct options cycling A-D"""
    pools = {}
    for section in SECTIONS:
        pools[section] = [
            make_question(f"{section}-{i}", section, "ABCD"[i % 4])
            for i in range(12)
        ]
    return pools


@pytest.fixture
def repository(question_bank):
    return FakeRepository(question_bank)


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def config():
    return AssessmentConfig(
        per_section_count=10,
        duration_seconds=1800,
        low_time_threshold=300,
        max_submit_attempts=3,
    )


@pytest.fixture
def make_engine(repository, config):
    def _make(store, **kwargs):
        return AssessmentEngine(
            repository.fetch_pool,
            store.persist,
            config=kwargs.pop("config", config),
            rng=random.Random(7),
            run_clock=False,
            now=lambda: FIXED_NOW,
            **kwargs,
        )
    return _make


@pytest.fixture
def engine(make_engine, store):
    return make_engine(store)


@pytest.fixture
def taker():
    return Taker(id="emp-001", username="alice", can_attempt=True)

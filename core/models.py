"""
Core data model for the assessment
Questions, answers, takers, scores and the persisted attempt record
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Dict, Optional

from config.settings import SECTION_CONFIG

OPTION_LABELS = ("A", "B", "C", "D")


@dataclass(frozen=True)
class Question:
    """A single multiple-choice question as stored in the bank"""
    id: str
    section: str
    question_text: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
    correct_option: str

    @property
    def options(self) -> Dict[str, str]:
        return {
            "A": self.option_a,
            "B": self.option_b,
            "C": self.option_c,
            "D": self.option_d,
        }

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "section": self.section,
            "question_text": self.question_text,
            "option_a": self.option_a,
            "option_b": self.option_b,
            "option_c": self.option_c,
            "option_d": self.option_d,
            "correct_option": self.correct_option,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Question":
        return cls(
            id=str(data["id"]),
            section=data["section"],
            question_text=data["question_text"],
            option_a=data["option_a"],
            option_b=data["option_b"],
            option_c=data["option_c"],
            option_d=data["option_d"],
            correct_option=str(data["correct_option"]).strip().upper(),
        )


@dataclass(frozen=True)
class Answer:
    """The taker's current choice for one question"""
    question_id: str
    selected_option: str
    section: str

    def to_dict(self) -> Dict:
        return {
            "question_id": self.question_id,
            "selected_option": self.selected_option,
            "section": self.section,
        }


@dataclass(frozen=True)
class Taker:
    """Authenticated test-taker, passed explicitly into every session"""
    id: str
    username: str
    can_attempt: bool = False

    @property
    def display_name(self) -> str:
        return self.username


@dataclass(frozen=True)
class ScoreResult:
    """Per-section and total correct counts for one session"""
    section_scores: Dict[str, int]
    total: int
    # Number of questions drawn per section, for percentages
    section_totals: Dict[str, int] = field(default_factory=dict)

    @property
    def max_score(self) -> int:
        return sum(self.section_totals.values())

    def to_dict(self) -> Dict:
        return {
            "section_scores": dict(self.section_scores),
            "section_totals": dict(self.section_totals),
            "total": self.total,
        }


@dataclass(frozen=True)
class AttemptRecord:
    """One finished attempt; written once, then owned by the attempt store"""
    taker_id: str
    scores: ScoreResult
    answers: List[Answer]
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_score(self) -> int:
        return self.scores.total

    def to_dict(self) -> Dict:
        data = {"taker_id": self.taker_id}
        for section, count in self.scores.section_scores.items():
            data[SECTION_CONFIG.score_key(section)] = count
        data.update({
            "total_score": self.scores.total,
            "section_totals": dict(self.scores.section_totals),
            "answers": [a.to_dict() for a in self.answers],
            "completed_at": self.completed_at.isoformat(),
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "AttemptRecord":
        section_scores = {
            section: data.get(SECTION_CONFIG.score_key(section), 0)
            for section in SECTION_CONFIG.order
        }
        answers = [
            Answer(
                question_id=a["question_id"],
                selected_option=a["selected_option"],
                section=a["section"],
            )
            for a in data.get("answers", [])
        ]
        return cls(
            taker_id=data["taker_id"],
            scores=ScoreResult(
                section_scores=section_scores,
                total=data["total_score"],
                section_totals=dict(data.get("section_totals") or {}),
            ),
            answers=answers,
            completed_at=datetime.fromisoformat(data["completed_at"]),
        )


def parse_option(label: Optional[str]) -> Optional[str]:
    """Normalize an option label, returning None if it is not A-D"""
    if label is None:
        return None
    label = str(label).strip().upper()
    return label if label in OPTION_LABELS else None

"""
Scorer
Pure scoring of a question list against an answer ledger
"""

from collections import defaultdict
from typing import Dict, List, Sequence

from core.models import Question, ScoreResult
from engine.ledger import AnswerLedger


def _section_order(questions: Sequence[Question]) -> List[str]:
    order = []
    for q in questions:
        if q.section not in order:
            order.append(q.section)
    return order


def score(questions: Sequence[Question], ledger: AnswerLedger) -> ScoreResult:
    """One mark per correct answer; unanswered and wrong answers are zero"""
    sections = _section_order(questions)
    section_scores = {s: 0 for s in sections}
    section_totals = {s: 0 for s in sections}
    total = 0

    for q in questions:
        section_totals[q.section] += 1
        if ledger.get(q.id) == q.correct_option:
            section_scores[q.section] += 1
            total += 1

    return ScoreResult(
        section_scores=section_scores,
        total=total,
        section_totals=section_totals,
    )


def breakdown(questions: Sequence[Question], ledger: AnswerLedger) -> Dict[str, Dict[str, int]]:
    """Per-section totals, attempted, correct and incorrect counts"""
    data = defaultdict(lambda: {
        "total": 0,
        "attempted": 0,
        "correct": 0,
        "incorrect": 0,
    })

    for q in questions:
        entry = data[q.section]
        entry["total"] += 1

        selected = ledger.get(q.id)
        if selected is None:
            continue
        entry["attempted"] += 1
        if selected == q.correct_option:
            entry["correct"] += 1
        else:
            entry["incorrect"] += 1

    return {s: dict(data[s]) for s in _section_order(questions)}

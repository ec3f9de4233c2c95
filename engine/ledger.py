"""
Answer Ledger
In-memory record of the taker's latest choice per question
"""

from typing import Dict, List, Optional

from core.errors import InvalidOptionError, MutationRejected
from core.models import Answer, parse_option


class AnswerLedger:
    """
    Maps question id to the current Answer
    Selecting again replaces the entry; answers are never cleared
    """

    def __init__(self):
        # dicts keep insertion order; replacing a value keeps its slot
        self._answers: Dict[str, Answer] = {}
        self._frozen = False

    def upsert(self, question_id: str, option_label: str, section: str) -> None:
        if self._frozen:
            raise MutationRejected("Answer ledger is frozen")

        label = parse_option(option_label)
        if label is None:
            raise InvalidOptionError(f"Invalid option label: {option_label!r}")

        self._answers[question_id] = Answer(
            question_id=question_id,
            selected_option=label,
            section=section,
        )

    def get(self, question_id: str) -> Optional[str]:
        answer = self._answers.get(question_id)
        return answer.selected_option if answer else None

    def count(self) -> int:
        return len(self._answers)

    def all(self) -> List[Answer]:
        return list(self._answers.values())

    def freeze(self) -> None:
        self._frozen = True

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, question_id: str) -> bool:
        return question_id in self._answers

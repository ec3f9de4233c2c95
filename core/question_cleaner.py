"""
Question Cleaner Module
Validates and deduplicates raw question rows before they enter the bank
Ensures every question the sampler can draw is answerable
"""

import re
from typing import List, Dict, Set, Optional
from dataclasses import dataclass, field
from collections import defaultdict
import hashlib
import logging

from core.models import Question, OPTION_LABELS
from config.settings import SECTION_CONFIG, SectionConfig

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "id", "section", "question_text",
    "option_a", "option_b", "option_c", "option_d",
    "correct_option",
)


@dataclass
class CleaningStats:
    """Statistics from cleaning process"""
    total_input: int = 0
    duplicates_removed: int = 0
    invalid_removed: int = 0
    final_output: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "total_input": self.total_input,
            "duplicates_removed": self.duplicates_removed,
            "invalid_removed": self.invalid_removed,
            "final_output": self.final_output,
            "retention_rate": f"{(self.final_output/self.total_input*100):.1f}%" if self.total_input > 0 else "0%",
        }


class QuestionCleaner:
    """
    Cleans and validates questions for the question bank
    Accepts raw dict rows (JSON or CSV) and returns Question objects
    """

    def __init__(self, section_config: SectionConfig = None):
        self.section_config = section_config or SECTION_CONFIG
        self.stats = CleaningStats()
        self._seen_ids: Set[str] = set()
        self._seen_hashes: Set[str] = set()

    def clean_rows(self, rows: List[Dict]) -> List[Question]:
        """Main cleaning pipeline"""
        self.stats.total_input += len(rows)

        questions = []
        for i, row in enumerate(rows):
            question = self._to_question(row, i)
            if question is None:
                self.stats.invalid_removed += 1
                continue

            if self._is_duplicate(question):
                self.stats.duplicates_removed += 1
                continue

            questions.append(question)

        self.stats.final_output += len(questions)
        logger.info(
            f"Cleaned {len(rows)} rows: {len(questions)} kept, "
            f"{self.stats.invalid_removed} invalid, {self.stats.duplicates_removed} duplicates"
        )
        return questions

    def clean_questions(self, questions: List[Question]) -> List[Question]:
        """Re-validate questions that are already loaded"""
        return self.clean_rows([q.to_dict() for q in questions])

    def _to_question(self, row: Dict, position: int) -> Optional[Question]:
        missing = [f for f in REQUIRED_FIELDS if not str(row.get(f) or "").strip()]
        if missing:
            self._reject(position, row, f"missing {', '.join(missing)}")
            return None

        cleaned = {k: self._clean_text(str(row[k])) for k in REQUIRED_FIELDS}
        cleaned["section"] = cleaned["section"].lower().replace(" ", "_")
        cleaned["correct_option"] = cleaned["correct_option"].upper()

        question = Question.from_dict(cleaned)
        problem = self.validate(question)
        if problem:
            self._reject(position, row, problem)
            return None
        return question

    def validate(self, q: Question) -> Optional[str]:
        """Return the reason a question is unusable, or None if it is fine"""
        if q.section not in self.section_config.sections:
            return f"unknown section '{q.section}'"

        if q.correct_option not in OPTION_LABELS:
            return f"correct option '{q.correct_option}' is not one of A-D"

        options = [q.option_a, q.option_b, q.option_c, q.option_d]
        if not all(options):
            return "all four options are required"

        # Options should be distinct
        if len({o.lower() for o in options}) != 4:
            return "options are not distinct"

        if not q.question_text:
            return "empty question text"

        return None

    def _is_duplicate(self, q: Question) -> bool:
        """Duplicate by id, or by normalized text within the same section"""
        text_hash = self._text_hash(q)
        if q.id in self._seen_ids or text_hash in self._seen_hashes:
            return True
        self._seen_ids.add(q.id)
        self._seen_hashes.add(text_hash)
        return False

    def _text_hash(self, q: Question) -> str:
        normalized = re.sub(r'[^a-z0-9\s]', '', q.question_text.lower())
        normalized = ' '.join(normalized.split())
        return hashlib.md5(f"{q.section}|{normalized}".encode()).hexdigest()

    def _clean_text(self, text: str) -> str:
        # Normalize whitespace
        text = re.sub(r'\s+', ' ', text)
        # Fix spacing around punctuation
        text = re.sub(r'\s+([.,;:!?])', r'\1', text)
        return text.strip()

    def _reject(self, position: int, row: Dict, reason: str):
        message = f"row {position + 1} (id={row.get('id')}): {reason}"
        self.stats.errors.append(message)
        logger.debug(f"Rejected {message}")

    def get_stats(self) -> Dict:
        """Return cleaning statistics"""
        return self.stats.to_dict()

    def get_section_distribution(self, questions: List[Question]) -> Dict[str, int]:
        """Get distribution of questions by section"""
        distribution = defaultdict(int)

        for q in questions:
            distribution[q.section] += 1

        return dict(sorted(distribution.items(), key=lambda x: -x[1]))

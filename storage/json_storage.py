"""JSON Storage Module for the question bank and finished attempts"""

import csv
import json
from pathlib import Path
from typing import List, Dict, Optional
from datetime import datetime
import os
import shutil
import tempfile
import logging

from core.errors import AttemptStoreError
from core.models import AttemptRecord, Question
from config.settings import ATTEMPTS_DIR, QUESTIONS_FILE

logger = logging.getLogger(__name__)


class QuestionStorage:
    """Question repository backed by a single JSON file"""

    def __init__(self, filepath: Path = QUESTIONS_FILE):
        self.filepath = Path(filepath)
        self.backup_dir = self.filepath.parent / "backups"

    def save_questions(self, questions: List[Question], create_backup: bool = True) -> bool:
        try:
            self.filepath.parent.mkdir(parents=True, exist_ok=True)
            if create_backup and self.filepath.exists():
                self._create_backup()

            data = {
                "version": "1.0",
                "created_at": datetime.now().isoformat(),
                "total_count": len(questions),
                "questions": [q.to_dict() for q in questions],
            }

            with open(self.filepath, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

            logger.info(f"Saved {len(questions)} questions to {self.filepath}")
            return True

        except (OSError, TypeError) as e:
            logger.error(f"Failed to save questions: {e}")
            return False

    def load_questions(self) -> List[Question]:
        """Load the whole bank; problems are logged and yield an empty list"""
        try:
            questions = self._read()
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Failed to load questions: {e}")
            return []

        logger.info(f"Loaded {len(questions)} questions")
        return questions

    def fetch_pool(self, section: str) -> List[Question]:
        """All questions for one section. Read errors propagate to the caller."""
        return [q for q in self._read() if q.section == section]

    def _read(self) -> List[Question]:
        if not self.filepath.exists():
            logger.warning(f"Question file not found: {self.filepath}")
            return []

        with open(self.filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)

        return [Question.from_dict(q) for q in data.get("questions", [])]

    def _create_backup(self):
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_path = self.backup_dir / f"questions_backup_{timestamp}.json"
        shutil.copy(self.filepath, backup_path)
        logger.info(f"Created backup: {backup_path}")

    def get_stats(self) -> Dict:
        questions = self.load_questions()

        if not questions:
            return {"total": 0}

        section_counts = {}
        for q in questions:
            section_counts[q.section] = section_counts.get(q.section, 0) + 1

        answer_counts = {}
        for q in questions:
            answer_counts[q.correct_option] = answer_counts.get(q.correct_option, 0) + 1

        return {
            "total": len(questions),
            "by_section": section_counts,
            "by_correct_option": dict(sorted(answer_counts.items())),
        }

    def add_questions(self, new_questions: List[Question], deduplicate: bool = True) -> int:
        existing = self.load_questions()
        existing_ids = {q.id for q in existing}

        added = 0
        for q in new_questions:
            if deduplicate and q.id in existing_ids:
                continue
            existing.append(q)
            existing_ids.add(q.id)
            added += 1

        self.save_questions(existing)
        return added


def read_question_rows(path: Path) -> List[Dict]:
    """Read raw question rows from a .json or .csv file"""
    path = Path(path)

    if path.suffix.lower() == ".csv":
        with open(path, newline='', encoding='utf-8') as f:
            return list(csv.DictReader(f))

    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict):
        return data.get("questions", [])
    return data


# ===========================
# Attempt Storage
# ===========================

class AttemptStorage:
    """
    Handles persistence of finished attempts.
    One file per attempt, keyed by taker and completion time.
    """

    def __init__(self, base_dir: Path = ATTEMPTS_DIR):
        self.base_dir = Path(base_dir)

    def _path_for(self, record: AttemptRecord) -> Path:
        stamp = record.completed_at.strftime("%Y%m%dT%H%M%S%fZ")
        return self.base_dir / record.taker_id / f"{stamp}.json"

    def persist(self, record: AttemptRecord) -> None:
        """Write a finished attempt. Existing attempts are never overwritten."""
        path = self._path_for(record)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(record.to_dict(), f, indent=2, ensure_ascii=False)
                # link fails if an attempt is already on disk, and a partial
                # write never reaches the final name
                os.link(tmp_name, path)
            finally:
                os.unlink(tmp_name)
        except FileExistsError as e:
            raise AttemptStoreError(f"Attempt already recorded at {path.name}") from e
        except OSError as e:
            logger.error(f"Failed to save attempt for taker={record.taker_id}: {e}")
            raise AttemptStoreError(str(e)) from e

        logger.info(
            f"Saved attempt for taker={record.taker_id} total={record.total_score}"
        )

    def load_attempts(self, taker_id: str) -> List[AttemptRecord]:
        attempts = []
        for path in sorted(self._user_dir(taker_id).glob("*.json")):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    attempts.append(AttemptRecord.from_dict(json.load(f)))
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Skipping unreadable attempt {path}: {e}")
        return attempts

    def latest_attempt(self, taker_id: str) -> Optional[AttemptRecord]:
        attempts = self.load_attempts(taker_id)
        return max(attempts, key=lambda a: a.completed_at) if attempts else None

    def _user_dir(self, taker_id: str) -> Path:
        return self.base_dir / taker_id

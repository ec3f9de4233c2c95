"""
Question Sampler
Draws a fixed number of questions per section and concatenates them
in the declared section order
"""

import logging
import random
from typing import Callable, List, Optional, Sequence

from core.errors import EmptyPoolError, RepositoryUnavailableError
from core.models import Question

logger = logging.getLogger(__name__)

FetchPool = Callable[[str], List[Question]]


class QuestionSampler:
    """
    Builds the session question set from a repository query function
    Sampling is without replacement and uniform within each section
    """

    def __init__(self, fetch_pool: FetchPool, rng: Optional[random.Random] = None):
        self.fetch_pool = fetch_pool
        self.rng = rng or random.Random()

    def sample(self, sections: Sequence[str], per_section: int) -> List[Question]:
        """Draw `per_section` questions for each section, in order"""
        if per_section <= 0:
            raise ValueError("per_section must be positive")
        if len(set(sections)) != len(sections):
            raise ValueError(f"Section tags must be unique: {list(sections)}")

        selected: List[Question] = []
        for section in sections:
            pool = self._load_pool(section)

            if len(pool) < per_section:
                raise EmptyPoolError(section, len(pool), per_section)

            drawn = self._shuffled(pool)[:per_section]
            selected.extend(drawn)
            logger.debug(f"Drew {len(drawn)} of {len(pool)} questions from '{section}'")

        logger.info(f"Sampled {len(selected)} questions across {len(sections)} sections")
        return selected

    def _load_pool(self, section: str) -> List[Question]:
        """Fetch a section pool, dropping duplicate ids and foreign sections"""
        try:
            raw = self.fetch_pool(section)
        except EmptyPoolError:
            raise
        except Exception as e:
            logger.error(f"Question repository failed for section '{section}': {e}")
            raise RepositoryUnavailableError(
                f"Failed to load questions for section '{section}'"
            ) from e

        pool = []
        seen = set()
        for q in raw or []:
            if q.section != section or q.id in seen:
                continue
            seen.add(q.id)
            pool.append(q)

        if len(pool) != len(raw or []):
            logger.warning(
                f"Ignored {len(raw) - len(pool)} duplicate or mis-tagged questions in '{section}'"
            )
        return pool

    def _shuffled(self, pool: List[Question]) -> List[Question]:
        """Fisher-Yates shuffle of a copy; the repository list is left alone"""
        items = list(pool)
        for i in range(len(items) - 1, 0, -1):
            j = self.rng.randint(0, i)
            items[i], items[j] = items[j], items[i]
        return items

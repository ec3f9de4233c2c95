"""
Configuration settings for the KRA Assessment Engine
All constants and configurable parameters in one place
"""

from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Dict
import os

# Base paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("ASSESSMENT_DATA_DIR") or BASE_DIR / "data")
QUESTIONS_FILE = DATA_DIR / "questions.json"
TAKERS_FILE = DATA_DIR / "takers.json"
ATTEMPTS_DIR = DATA_DIR / "attempts"


@dataclass
class AssessmentConfig:
    """Configuration for a timed assessment session"""

    # Draw size per section; 3 sections x 10 = 30 questions
    per_section_count: int = int(os.getenv("ASSESSMENT_PER_SECTION") or 10)

    # Hard time limit in seconds (30 minutes)
    duration_seconds: int = int(os.getenv("ASSESSMENT_DURATION_SECONDS") or 30 * 60)

    # Timer turns red below this many seconds
    low_time_threshold: int = 300

    # Store writes allowed per session before the attempt is abandoned
    max_submit_attempts: int = int(os.getenv("ASSESSMENT_MAX_SUBMIT_ATTEMPTS") or 3)


@dataclass
class SectionConfig:
    """Assessment sections, in the order they are presented"""

    sections: Dict[str, Dict[str, str]] = field(default_factory=lambda: {
        "aptitude": {
            "name": "Aptitude",
            "score_key": "aptitude_score",
            "description": "Logical reasoning, numerical ability, and problem-solving skills",
        },
        "product_knowledge": {
            "name": "Product Knowledge",
            "score_key": "product_score",
            "description": "Understanding of company products, features, and market position",
        },
        "kra_knowledge": {
            "name": "KRA Knowledge",
            "score_key": "kra_score",
            "description": "Key Responsibility Areas and performance metrics",
        },
    })

    @property
    def order(self) -> List[str]:
        return list(self.sections)

    def display_name(self, section: str) -> str:
        return self.sections.get(section, {}).get("name", section)

    def score_key(self, section: str) -> str:
        return self.sections.get(section, {}).get("score_key", f"{section}_score")


@dataclass
class GradeConfig:
    """Grade bands on overall percentage, highest first"""

    bands: List[tuple] = field(default_factory=lambda: [
        (90, "A+"),
        (80, "A"),
        (70, "B"),
        (60, "C"),
        (50, "D"),
    ])
    failing_grade: str = "F"

    excellent_threshold: int = 80
    good_threshold: int = 60


# Global config instances
ASSESSMENT_CONFIG = AssessmentConfig()
SECTION_CONFIG = SectionConfig()
GRADE_CONFIG = GradeConfig()

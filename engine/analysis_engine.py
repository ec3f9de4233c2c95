"""
Analysis Engine Module
Turns a ScoreResult into what the results page shows: percentage,
grade, performance band and section-wise rows
Also summarises a taker's attempt history
"""

from typing import List, Dict, Optional
from dataclasses import dataclass, field

from config.settings import GRADE_CONFIG, SECTION_CONFIG, GradeConfig
from core.models import AttemptRecord, ScoreResult


@dataclass
class SectionResult:
    """Result for a single section"""
    section: str
    name: str
    score: int
    total: int
    attempted: Optional[int] = None

    @property
    def percentage(self) -> int:
        return percent(self.score, self.total)

    def to_dict(self) -> Dict:
        return {
            "section": self.section,
            "name": self.name,
            "score": self.score,
            "total": self.total,
            "attempted": self.attempted,
            "percentage": self.percentage,
        }


@dataclass
class ResultAnalysis:
    """Presentation-ready summary of one submitted session"""
    total: int
    max_score: int
    percentage: int
    grade: str
    band: str
    sections: List[SectionResult] = field(default_factory=list)

    @property
    def headline(self) -> str:
        return {
            "excellent": "Excellent Performance!",
            "good": "Good Performance!",
        }.get(self.band, "Needs Improvement")

    @property
    def message(self) -> str:
        return {
            "excellent": "You have demonstrated strong knowledge across all areas.",
            "good": "You have shown good understanding with room for improvement.",
        }.get(self.band, "Consider reviewing the study materials and retaking the test.")

    def to_dict(self) -> Dict:
        return {
            "total": self.total,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "grade": self.grade,
            "band": self.band,
            "sections": [s.to_dict() for s in self.sections],
        }


class AnalysisEngine:
    """
    Grades score results
    Bands come from GRADE_CONFIG so they can be tuned in one place
    """

    def __init__(self, grade_config: GradeConfig = None):
        self.grade_config = grade_config or GRADE_CONFIG

    def analyze(
        self,
        result: ScoreResult,
        breakdown: Optional[Dict[str, Dict[str, int]]] = None,
    ) -> ResultAnalysis:
        breakdown = breakdown or {}
        max_score = result.max_score
        percentage = percent(result.total, max_score)

        sections = []
        for section, score in result.section_scores.items():
            sections.append(SectionResult(
                section=section,
                name=SECTION_CONFIG.display_name(section),
                score=score,
                total=result.section_totals.get(section, 0),
                attempted=breakdown.get(section, {}).get("attempted"),
            ))

        return ResultAnalysis(
            total=result.total,
            max_score=max_score,
            percentage=percentage,
            grade=self.grade(percentage),
            band=self.band(percentage),
            sections=sections,
        )

    def grade(self, percentage: float) -> str:
        for threshold, grade in self.grade_config.bands:
            if percentage >= threshold:
                return grade
        return self.grade_config.failing_grade

    def band(self, percentage: float) -> str:
        if percentage >= self.grade_config.excellent_threshold:
            return "excellent"
        if percentage >= self.grade_config.good_threshold:
            return "good"
        return "needs_improvement"


class ProgressTracker:
    """
    Aggregates a taker's persisted attempts
    Used by the CLI to review how a taker has done over time
    """

    def __init__(self, attempts: List[AttemptRecord]):
        self.history = sorted(attempts, key=lambda a: a.completed_at)

    def get_overall_stats(self) -> Dict:
        """Get aggregate statistics across all attempts"""
        if not self.history:
            return {"message": "No attempts recorded"}

        totals = [a.total_score for a in self.history]

        section_avgs = {}
        for section in SECTION_CONFIG.order:
            values = [a.scores.section_scores.get(section, 0) for a in self.history]
            section_avgs[section] = round(sum(values) / len(values), 1)

        return {
            "total_attempts": len(self.history),
            "best_score": max(totals),
            "latest_score": totals[-1],
            "average_score": round(sum(totals) / len(totals), 1),
            "section_averages": section_avgs,
            "improvement": totals[-1] - totals[0],
        }

    def weakest_section(self) -> Optional[str]:
        """Section with the lowest average score"""
        stats = self.get_overall_stats()
        averages = stats.get("section_averages")
        if not averages:
            return None
        return min(averages, key=averages.get)


def percent(score: int, total: int) -> int:
    """Whole-number percentage, halves rounded up"""
    if not total:
        return 0
    return int(score * 100 / total + 0.5)

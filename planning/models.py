"""Pydantic models for course plans and plan edits."""
from pydantic import BaseModel, Field
from typing import List, Optional

from analysis.models import BookAnalysis


class PlanUnit(BaseModel):
    """One unit of a course plan, mapped to source chapters."""
    unit_number: int
    title: str
    summary: str = ""
    objectives: List[str] = Field(default_factory=list)
    source_chapters: List[int] = Field(default_factory=list)
    estimated_minutes: float = 0


class CoursePlan(BaseModel):
    """A structured course built from a book."""
    title: str
    description: str = ""
    estimated_hours: float = 0
    units: List[PlanUnit] = Field(default_factory=list)

    def renumbered(self) -> "CoursePlan":
        """Copy with unit numbers rewritten to 1..n in list order."""
        units = [
            unit.model_copy(update={"unit_number": i})
            for i, unit in enumerate(self.units, start=1)
        ]
        return self.model_copy(update={"units": units})


class EditPlanResult(BaseModel):
    """Outcome of a plan edit request."""
    updated_plan: CoursePlan
    updated_book_analysis: Optional[BookAnalysis] = None
    explanation: str


# ==================== LLM response schemas ====================

class EditedPlan(CoursePlan):
    """A full plan returned together with a note on what changed."""
    explanation: str = ""

    def to_plan(self) -> CoursePlan:
        return CoursePlan(
            title=self.title,
            description=self.description,
            estimated_hours=self.estimated_hours,
            units=self.units,
        ).renumbered()


class DiscoveredChapter(BaseModel):
    """A chapter found in pages the original detection did not cover."""
    title: str
    summary: str = ""
    key_concepts: List[str] = Field(default_factory=list)
    learning_objectives: List[str] = Field(default_factory=list)
    start_page: int = Field(description="0-indexed start page")
    end_page: int = Field(description="0-indexed end page")


class ChapterDiscovery(BaseModel):
    chapters: List[DiscoveredChapter] = Field(default_factory=list)

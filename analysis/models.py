"""Pydantic models for book structure detection and chapter analysis."""
from enum import Enum
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional


class DetectionMethod(str, Enum):
    """Which detection tier produced a book's chapter boundaries."""
    PDF_LINKS = "pdf-links"
    TITLE_MATCH = "title-match"
    LLM_DETECTION = "llm-detection"
    FIXED_CHUNKS = "fixed-chunks"


class ChapterBoundary(BaseModel):
    """A contiguous, 0-based inclusive page range attributed to one chapter."""
    title: str
    start_page: int = Field(ge=0)
    end_page: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_page < self.start_page:
            raise ValueError(
                f"end_page {self.end_page} precedes start_page {self.start_page}"
            )
        return self

    @property
    def page_span(self) -> int:
        return self.end_page - self.start_page + 1


class BookStructure(BaseModel):
    """Detected chapter layout of a book."""
    title: str
    author: Optional[str] = None
    chapters: List[ChapterBoundary] = Field(default_factory=list)
    detection_method: DetectionMethod


class ChapterAnalysisFields(BaseModel):
    """Pedagogical metadata produced for a single chapter."""
    summary: str
    key_concepts: List[str] = Field(default_factory=list)
    learning_objectives: List[str] = Field(default_factory=list)
    prerequisites: List[str] = Field(default_factory=list)
    estimated_reading_minutes: int = Field(gt=0)


class ChapterAnalysis(ChapterBoundary, ChapterAnalysisFields):
    """A chapter boundary enriched with its analysis."""
    chapter_number: int = Field(ge=1)


class BookAnalysis(BaseModel):
    """The durable per-course record of what a book contains."""
    title: str
    author: Optional[str] = None
    total_pages: int
    chapters: List[ChapterAnalysis] = Field(default_factory=list)
    detection_method: DetectionMethod

    @property
    def last_covered_page(self) -> int:
        """End page of the last chapter, or -1 when there are no chapters."""
        if not self.chapters:
            return -1
        return self.chapters[-1].end_page

    def has_uncovered_pages(self) -> bool:
        return self.last_covered_page < self.total_pages - 1

    def to_compact_summary(self) -> str:
        """Render a short text summary for use inside prompts."""
        header = f'Book: "{self.title}"'
        if self.author:
            header += f" by {self.author}"

        lines = [
            header,
            f"Pages: {self.total_pages} | Chapters: {len(self.chapters)} | "
            f"Detection: {self.detection_method.value}",
            "",
        ]
        for ch in self.chapters:
            lines.append(
                f'Ch{ch.chapter_number} "{ch.title}" '
                f"(pp.{ch.start_page + 1}-{ch.end_page + 1}): {ch.summary} "
                f"| Concepts: {', '.join(ch.key_concepts)}"
            )
        return "\n".join(lines)


# ==================== LLM response schemas ====================
# Fields are lenient on purpose; coercion.py fills in defaults.

class TableOfContents(BaseModel):
    """Titles read from a table of contents."""
    book_title: str = ""
    author: Optional[str] = None
    chapter_titles: List[str] = Field(default_factory=list)


class SampledBoundary(BaseModel):
    title: str
    page_number: int = Field(description="1-based page number")


class BoundaryDetection(BaseModel):
    """Chapter boundary pattern spotted in sampled pages."""
    pattern: str = Field(
        default="",
        description="Regular expression matching chapter headings"
    )
    boundaries: List[SampledBoundary] = Field(default_factory=list)


class BookMetadata(BaseModel):
    title: str = ""
    author: Optional[str] = None


class ChapterAnalysisResponse(BaseModel):
    """Raw per-chapter analysis as returned by the model."""
    summary: Optional[str] = None
    key_concepts: Optional[List[str]] = None
    learning_objectives: Optional[List[str]] = None
    prerequisites: Optional[List[str]] = None
    estimated_reading_minutes: Optional[float] = None

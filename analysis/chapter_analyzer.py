"""Per-chapter pedagogical analysis."""
from typing import List, Optional

from utils.logger import setup_logger
from analysis.models import ChapterAnalysisFields, ChapterAnalysisResponse
from analysis.coercion import coerce_chapter_fields, fallback_chapter_fields
from analysis import prompts
from generation.structured_generator import StructuredGenerator
import config

logger = setup_logger(__name__)

TRUNCATION_MARKER = "\n[...truncated]"


def truncate_chapter_text(text: str, max_chars: int = config.MAX_CHAPTER_CHARS) -> str:
    """Cap chapter text at max_chars, marking the cut when one is made."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


class ChapterAnalyzer:
    """Produces summary, concepts, objectives and reading time for a chapter."""

    def __init__(
        self,
        generator: StructuredGenerator,
        max_chars: int = config.MAX_CHAPTER_CHARS
    ):
        """Initialize analyzer.

        Args:
            generator: Structured generation client
            max_chars: Character budget for chapter text sent to the model
        """
        self.generator = generator
        self.max_chars = max_chars

    async def analyze(
        self,
        chapter_number: int,
        title: str,
        chapter_text: str,
        previous_concepts: Optional[List[str]] = None
    ) -> ChapterAnalysisFields:
        """Analyze one chapter.

        Falls back to a word-count estimate with empty lists when generation
        is unavailable or fails, so it never raises.

        Args:
            chapter_number: 1-based chapter number
            title: Chapter title
            chapter_text: Full text of the chapter's pages
            previous_concepts: Key concepts of the preceding chapter, if known

        Returns:
            Chapter analysis fields
        """
        if not self.generator.is_available:
            return fallback_chapter_fields(title, chapter_text)

        prompt = prompts.chapter_analysis_prompt(
            chapter_number,
            title,
            truncate_chapter_text(chapter_text, self.max_chars),
            previous_concepts,
        )

        try:
            response = await self.generator.generate(
                prompts.CHAPTER_SYSTEM_PROMPT,
                prompt,
                ChapterAnalysisResponse,
                temperature=0.2,
            )
            return coerce_chapter_fields(response, title, chapter_text)
        except Exception as e:
            logger.warning(f"Analysis of chapter {chapter_number} ({title!r}) failed: {e}")
            return fallback_chapter_fields(title, chapter_text)

"""Whole-book analysis: structure detection plus batched chapter analysis."""
import asyncio
from typing import List, Optional

from utils.logger import setup_logger
from analysis.models import BookAnalysis, BookStructure, ChapterAnalysis
from analysis.chapter_analyzer import ChapterAnalyzer
from analysis.structure_detector import StructureDetector
from generation.structured_generator import StructuredGenerator
import config

logger = setup_logger(__name__)


class BookAnalyzer:
    """Drives chapter analysis across a detected book structure."""

    def __init__(
        self,
        generator: StructuredGenerator,
        detector: Optional[StructureDetector] = None,
        chapter_analyzer: Optional[ChapterAnalyzer] = None,
        batch_size: int = config.CHAPTER_BATCH_SIZE
    ):
        """Initialize book analyzer.

        Args:
            generator: Structured generation client shared by all stages
            detector: Structure detector (built from generator if omitted)
            chapter_analyzer: Chapter analyzer (built from generator if omitted)
            batch_size: Chapters analyzed concurrently per batch
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.detector = detector or StructureDetector(generator)
        self.chapter_analyzer = chapter_analyzer or ChapterAnalyzer(generator)
        self.batch_size = batch_size

    async def analyze_book(self, pdf_bytes: bytes, pages: List[str]) -> BookAnalysis:
        """Detect structure and analyze every chapter.

        Args:
            pdf_bytes: Raw PDF contents
            pages: Extracted per-page text

        Returns:
            Complete BookAnalysis
        """
        structure = await self.detector.detect(pdf_bytes, pages)
        logger.info(
            f"Detected {len(structure.chapters)} chapters "
            f"via {structure.detection_method.value}"
        )

        chapters = await self.analyze_all(structure, pages)

        return BookAnalysis(
            title=structure.title,
            author=structure.author,
            total_pages=len(pages),
            chapters=chapters,
            detection_method=structure.detection_method,
        )

    async def analyze_all(
        self,
        structure: BookStructure,
        pages: List[str]
    ) -> List[ChapterAnalysis]:
        """Analyze chapters in sequential batches of concurrent calls.

        A chapter receives the previous chapter's key concepts only when that
        chapter finished in an earlier batch. Results land in positional
        slots, so output order follows chapter order regardless of which
        call completes first.

        Args:
            structure: Detected book structure
            pages: Extracted per-page text

        Returns:
            One ChapterAnalysis per boundary, numbered from 1
        """
        boundaries = structure.chapters
        results: List[Optional[ChapterAnalysis]] = [None] * len(boundaries)

        async def _analyze(index: int, previous_concepts: Optional[List[str]]) -> None:
            boundary = boundaries[index]
            chapter_text = "\n\n".join(pages[boundary.start_page:boundary.end_page + 1])
            fields = await self.chapter_analyzer.analyze(
                index + 1, boundary.title, chapter_text, previous_concepts
            )
            results[index] = ChapterAnalysis(
                chapter_number=index + 1,
                title=boundary.title,
                start_page=boundary.start_page,
                end_page=boundary.end_page,
                **fields.model_dump(),
            )

        for batch_start in range(0, len(boundaries), self.batch_size):
            batch_end = min(batch_start + self.batch_size, len(boundaries))
            logger.info(f"Analyzing chapters {batch_start + 1}-{batch_end} of {len(boundaries)}")

            tasks = []
            for i in range(batch_start, batch_end):
                previous = results[i - 1] if i > 0 else None
                previous_concepts = previous.key_concepts if previous is not None else None
                tasks.append(_analyze(i, previous_concepts))

            await asyncio.gather(*tasks)

        return [r for r in results if r is not None]

"""Course plan edits, including recovery of chapters the detection missed."""
import re
from typing import List, Optional

from utils.logger import setup_logger
from analysis.models import BookAnalysis, ChapterAnalysis
from analysis.coercion import clean_string_list, round_half_up
from analysis.prompts import PAGE_BREAK
from planning.models import (
    ChapterDiscovery,
    CoursePlan,
    DiscoveredChapter,
    EditedPlan,
    EditPlanResult,
)
from planning import prompts
from generation.structured_generator import StructuredGenerator
import config

logger = setup_logger(__name__)

MISSING_CONTENT_PATTERN = re.compile(
    r"miss|last chapter|forgot|left out|not included|cut off|incomplete",
    re.IGNORECASE
)

UNAVAILABLE_EXPLANATION = (
    "Automatic plan editing is unavailable because no API key is configured. "
    "Your plan was left unchanged."
)
FAILED_EXPLANATION = (
    "The plan could not be updated automatically, so it was left unchanged. "
    "Please try rephrasing your request."
)


def looks_like_missing_content(instruction: str) -> bool:
    """Whether an edit instruction reports content absent from the plan."""
    return bool(MISSING_CONTENT_PATTERN.search(instruction or ""))


class PlanGapReconciler:
    """Applies free-text edits to a course plan.

    When the learner reports missing content and the book has pages after
    the last detected chapter, those pages are searched for chapters, the
    book analysis is extended, and the plan gains units for them. Every
    other request is a single plan edit.
    """

    def __init__(
        self,
        generator: StructuredGenerator,
        gap_text_chars: int = config.GAP_TEXT_CHARS
    ):
        """Initialize reconciler.

        Args:
            generator: Structured generation client
            gap_text_chars: Cap on uncovered-page text sent for discovery
        """
        self.generator = generator
        self.gap_text_chars = gap_text_chars

    def should_discover(
        self,
        instruction: str,
        book_analysis: BookAnalysis,
        extracted_pages: Optional[List[str]]
    ) -> bool:
        return (
            looks_like_missing_content(instruction)
            and bool(extracted_pages)
            and book_analysis.has_uncovered_pages()
        )

    async def reconcile(
        self,
        current_plan: CoursePlan,
        instruction: str,
        book_analysis: BookAnalysis,
        extracted_pages: Optional[List[str]] = None,
        learner_context: str = ""
    ) -> EditPlanResult:
        """Edit a plan according to the learner's instruction.

        Args:
            current_plan: Plan being edited
            instruction: Free-text edit request
            book_analysis: Stored analysis of the book
            extracted_pages: Stored per-page text, or None if unavailable
            learner_context: Free-text learner profile and preferences

        Returns:
            EditPlanResult; the input plan unchanged if editing is not possible
        """
        if not self.generator.is_available:
            return EditPlanResult(
                updated_plan=current_plan,
                explanation=UNAVAILABLE_EXPLANATION,
            )

        try:
            if self.should_discover(instruction, book_analysis, extracted_pages):
                logger.info(
                    f"Missing content reported; scanning pages "
                    f"{book_analysis.last_covered_page + 2}-{book_analysis.total_pages}"
                )
                result = await self._discover_and_merge(
                    current_plan, instruction, book_analysis, extracted_pages, learner_context
                )
                if result is not None:
                    return result
                logger.info("No chapters discovered; applying as a regular edit")

            return await self._standard_edit(
                current_plan, instruction, book_analysis, learner_context
            )
        except Exception as e:
            logger.warning(f"Plan edit failed, returning plan unchanged: {e}")
            return EditPlanResult(
                updated_plan=current_plan,
                explanation=FAILED_EXPLANATION,
            )

    async def discover_chapters(
        self,
        book_analysis: BookAnalysis,
        extracted_pages: List[str]
    ) -> List[ChapterAnalysis]:
        """Find chapters in the pages after the last detected chapter.

        Returns:
            New chapters numbered after the existing ones; empty if none found
        """
        total_pages = book_analysis.total_pages
        last_covered = book_analysis.last_covered_page
        first_uncovered = last_covered + 1

        uncovered_text = PAGE_BREAK.join(extracted_pages[first_uncovered:])
        uncovered_text = uncovered_text[:self.gap_text_chars]
        if not uncovered_text.strip():
            return []

        discovery = await self.generator.generate(
            prompts.discovery_system_prompt(total_pages, last_covered),
            prompts.discovery_prompt(uncovered_text),
            ChapterDiscovery,
            temperature=0.2,
        )

        return self._to_chapter_analyses(
            discovery.chapters,
            first_uncovered=first_uncovered,
            total_pages=total_pages,
            first_number=len(book_analysis.chapters) + 1,
        )

    @staticmethod
    def _to_chapter_analyses(
        discovered: List[DiscoveredChapter],
        first_uncovered: int,
        total_pages: int,
        first_number: int
    ) -> List[ChapterAnalysis]:
        """Clamp discovered ranges into the uncovered pages and number them.

        Ranges are kept inside [first_uncovered, total_pages - 1], sorted,
        and trimmed so they do not overlap each other.
        """
        last_page = total_pages - 1
        candidates = sorted(
            (ch for ch in discovered if ch.title.strip()),
            key=lambda ch: ch.start_page
        )

        chapters: List[ChapterAnalysis] = []
        next_free = first_uncovered
        for ch in candidates:
            start = max(ch.start_page, next_free)
            if start > last_page:
                continue
            end = min(max(ch.end_page, start), last_page)
            span = end - start + 1

            chapters.append(ChapterAnalysis(
                chapter_number=first_number + len(chapters),
                title=ch.title.strip(),
                start_page=start,
                end_page=end,
                summary=ch.summary.strip() or f'Content from "{ch.title.strip()}".',
                key_concepts=clean_string_list(ch.key_concepts),
                learning_objectives=clean_string_list(ch.learning_objectives),
                prerequisites=[],
                estimated_reading_minutes=max(
                    1, round_half_up(span / total_pages * config.GAP_MINUTES_PER_BOOK)
                ),
            ))
            next_free = end + 1

        return chapters

    async def _discover_and_merge(
        self,
        current_plan: CoursePlan,
        instruction: str,
        book_analysis: BookAnalysis,
        extracted_pages: List[str],
        learner_context: str
    ) -> Optional[EditPlanResult]:
        new_chapters = await self.discover_chapters(book_analysis, extracted_pages)
        if not new_chapters:
            return None

        logger.info(f"Discovered {len(new_chapters)} uncovered chapters")

        updated_analysis = book_analysis.model_copy(
            update={"chapters": book_analysis.chapters + new_chapters}
        )

        edited = await self.generator.generate(
            prompts.merge_system_prompt(learner_context),
            prompts.merge_prompt(instruction, current_plan, new_chapters),
            EditedPlan,
            temperature=0.2,
        )

        return EditPlanResult(
            updated_plan=edited.to_plan(),
            updated_book_analysis=updated_analysis,
            explanation=edited.explanation or (
                f"Added {len(new_chapters)} chapter(s) from the end of the book."
            ),
        )

    async def _standard_edit(
        self,
        current_plan: CoursePlan,
        instruction: str,
        book_analysis: BookAnalysis,
        learner_context: str
    ) -> EditPlanResult:
        edited = await self.generator.generate(
            prompts.edit_system_prompt(learner_context),
            prompts.edit_prompt(instruction, current_plan, book_analysis.to_compact_summary()),
            EditedPlan,
            temperature=0.2,
        )

        return EditPlanResult(
            updated_plan=edited.to_plan(),
            explanation=edited.explanation or "Plan updated.",
        )

"""Course plan generation from a book analysis."""
from utils.logger import setup_logger
from analysis.models import BookAnalysis
from analysis.coercion import round_half_up
from planning.models import CoursePlan, PlanUnit
from planning import prompts
from generation.structured_generator import StructuredGenerator

logger = setup_logger(__name__)


def fallback_course_plan(book_analysis: BookAnalysis) -> CoursePlan:
    """One unit per chapter, used when generation is unavailable or fails."""
    total_minutes = sum(ch.estimated_reading_minutes for ch in book_analysis.chapters)
    return CoursePlan(
        title=f"Course: {book_analysis.title}",
        description=f'A personalized course based on "{book_analysis.title}".',
        estimated_hours=round_half_up(total_minutes / 60),
        units=[
            PlanUnit(
                unit_number=ch.chapter_number,
                title=ch.title,
                summary=ch.summary,
                objectives=ch.learning_objectives,
                source_chapters=[ch.chapter_number],
                estimated_minutes=ch.estimated_reading_minutes,
            )
            for ch in book_analysis.chapters
        ],
    )


class CoursePlanGenerator:
    """Turns a BookAnalysis into a CoursePlan."""

    def __init__(self, generator: StructuredGenerator):
        self.generator = generator

    async def generate(
        self,
        book_analysis: BookAnalysis,
        learner_context: str = ""
    ) -> CoursePlan:
        """Generate a course plan.

        Args:
            book_analysis: Analysis of the uploaded book
            learner_context: Free-text learner profile, preferences or notes

        Returns:
            CoursePlan with sequential unit numbers
        """
        if not self.generator.is_available:
            return fallback_course_plan(book_analysis)

        try:
            plan = await self.generator.generate(
                prompts.plan_generation_system_prompt(learner_context),
                prompts.plan_generation_prompt(book_analysis.to_compact_summary()),
                CoursePlan,
                temperature=0.3,
            )
        except Exception as e:
            logger.warning(f"Course plan generation failed, using one unit per chapter: {e}")
            return fallback_course_plan(book_analysis)

        if not plan.units:
            logger.warning("Generated plan has no units, using one unit per chapter")
            return fallback_course_plan(book_analysis)

        logger.info(f"Generated course plan with {len(plan.units)} units")
        return plan.renumbered()

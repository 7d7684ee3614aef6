"""LLM prompt templates for course plan generation and editing."""
import json
from typing import List

from analysis.models import ChapterAnalysis
from planning.models import CoursePlan


def _learner_block(learner_context: str) -> str:
    if not learner_context.strip():
        return ""
    return f"Learner context:\n{learner_context.strip()}\n"


def plan_generation_system_prompt(learner_context: str = "") -> str:
    return "\n".join([
        "You create structured course plans from book analyses and learner conversations.",
        _learner_block(learner_context),
        "Create a course plan that:",
        "- Groups related chapters into logical units",
        "- Respects the learner's stated priorities and depth preferences",
        "- Skips or condenses topics they already know",
        "- Maps each unit to source chapters from the book (1-based chapter numbers)",
        "- Provides realistic time estimates",
    ])


def plan_generation_prompt(book_summary: str) -> str:
    return (
        f"Book analysis:\n{book_summary}\n\n"
        "Generate a structured course plan based on this book and the learner's preferences."
    )


def discovery_system_prompt(total_pages: int, last_covered_page: int) -> str:
    """System prompt for locating chapters in uncovered pages.

    Args:
        total_pages: Page count of the book
        last_covered_page: 0-based end page of the last known chapter

    Returns:
        Formatted prompt string
    """
    return "\n".join([
        "You are analyzing pages from a book that were not covered by the initial chapter detection.",
        f"The book has {total_pages} pages. The last detected chapter ends at page {last_covered_page + 1}.",
        f"Pages {last_covered_page + 2} through {total_pages} were not included in any chapter.",
        "Identify the chapter(s) present in these pages. Report start_page and end_page as 0-indexed page numbers.",
    ])


def discovery_prompt(uncovered_text: str) -> str:
    return "\n".join([
        "Uncovered page text:",
        uncovered_text,
        "",
        "Identify the chapter title, a brief summary, key concepts, learning "
        "objectives, and the approximate page range.",
    ])


def merge_system_prompt(learner_context: str = "") -> str:
    return "\n".join([
        "You edit course plans. The user reported missing content. New chapters have been discovered.",
        _learner_block(learner_context),
        "Add units for the newly discovered chapters. Preserve all existing units exactly as they are.",
        "List each new chapter's chapter_number in the source_chapters of the unit that covers it.",
        "Renumber units if needed so they are sequential starting at 1.",
    ])


def merge_prompt(
    instruction: str,
    current_plan: CoursePlan,
    new_chapters: List[ChapterAnalysis]
) -> str:
    discovered_json = json.dumps(
        [
            ch.model_dump(include={
                "chapter_number", "title", "summary", "key_concepts",
                "learning_objectives", "start_page", "end_page",
            })
            for ch in new_chapters
        ],
        indent=2
    )
    return "\n".join([
        f'User instruction: "{instruction}"',
        "",
        f"Current plan:\n{current_plan.model_dump_json(indent=2)}",
        "",
        f"Newly discovered chapters:\n{discovered_json}",
        "",
        "Return the full updated plan with new units added, plus a short explanation of what changed.",
    ])


def edit_system_prompt(learner_context: str = "") -> str:
    return "\n".join([
        "You edit course plans based on user instructions.",
        _learner_block(learner_context),
        "Rules:",
        "- Make ONLY the requested changes. Preserve everything else exactly.",
        "- Keep unit numbers sequential.",
        "- If splitting a unit, create two new units with appropriate content.",
        "- If removing a unit, renumber the remaining units.",
        "- Provide a short explanation of what you changed.",
    ])


def edit_prompt(instruction: str, current_plan: CoursePlan, book_summary: str) -> str:
    return "\n".join([
        f'User instruction: "{instruction}"',
        "",
        f"Current plan:\n{current_plan.model_dump_json(indent=2)}",
        "",
        f"Book analysis summary:\n{book_summary}",
        "",
        "Return the full updated plan with the requested changes applied.",
    ])

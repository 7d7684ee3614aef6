"""LLM prompt templates for structure detection and chapter analysis."""
from typing import List, Optional

PAGE_BREAK = "\n---PAGE BREAK---\n"

TOC_SYSTEM_PROMPT = (
    "You extract chapter titles from a book's table of contents. Return ONLY "
    "chapter/section titles that represent major divisions of the book - not "
    "sub-sections, figures, or appendices unless they are top-level divisions."
)

BOUNDARY_SYSTEM_PROMPT = (
    "You detect chapter/section boundaries in a book from sampled pages. Look "
    "for patterns like 'Chapter N', 'PART N', centered headings, or numbered "
    "section headers. Return the boundary pattern as a regular expression and "
    "every boundary you can see."
)

METADATA_SYSTEM_PROMPT = "Extract the book title and author from the first pages of a book."

CHAPTER_SYSTEM_PROMPT = (
    "You analyze a single chapter/section of a textbook. Provide a concise "
    "summary, key concepts, learning objectives, prerequisites (concepts from "
    "earlier chapters this builds on), and an estimated reading time in minutes."
)


def toc_extraction_prompt(toc_text: str) -> str:
    """Generate prompt for table-of-contents title extraction.

    Args:
        toc_text: Text of the opening pages joined with page-break markers

    Returns:
        Formatted prompt string
    """
    return (
        "Extract the book title, author (if visible), and chapter titles from "
        f"this table of contents text:\n\n{toc_text}"
    )


def boundary_detection_prompt(total_pages: int, samples: List[str]) -> str:
    """Generate prompt for boundary detection over sampled pages.

    Args:
        total_pages: Page count of the whole book
        samples: Already-labelled page excerpts

    Returns:
        Formatted prompt string
    """
    sampled_text = "\n\n".join(samples)
    return (
        f"Here are sampled pages from a {total_pages}-page book. Identify the "
        "chapter/section boundary pattern and list all boundaries you can find. "
        "Page numbers are the 1-based numbers shown in the PAGE markers.\n\n"
        f"{sampled_text}"
    )


def sample_label(page_index: int, text: str) -> str:
    return f"--- PAGE {page_index + 1} ---\n{text}"


def chapter_analysis_prompt(
    chapter_number: int,
    title: str,
    chapter_text: str,
    previous_concepts: Optional[List[str]] = None
) -> str:
    """Generate prompt for single-chapter analysis.

    Args:
        chapter_number: 1-based chapter number
        title: Chapter title
        chapter_text: Chapter text, already truncated
        previous_concepts: Key concepts of the preceding chapter, if known

    Returns:
        Formatted prompt string
    """
    context_block = ""
    if previous_concepts:
        context_block = (
            "\nThe previous chapter covered these key concepts: "
            f"{', '.join(previous_concepts)}\n"
        )

    return (
        f'Chapter {chapter_number}: "{title}"{context_block}\n\n'
        f"Chapter text:\n{chapter_text}"
    )

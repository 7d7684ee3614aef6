"""
Default-filling for structured model output.

Every call site that accepts model output funnels it through one of these
helpers so the "use the field if valid, else fall back" rules live in one
place.
"""

import math
from typing import Iterable, List, Optional

from analysis.models import ChapterAnalysisFields, ChapterAnalysisResponse
from ingestion.cleaner import word_count
import config


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return math.floor(value + 0.5)


def reading_minutes_from_text(text: str) -> int:
    """Word-count estimate of reading time, never below the minimum."""
    return max(
        config.MIN_READING_MINUTES,
        round_half_up(word_count(text) / config.WORDS_PER_MINUTE)
    )


def fallback_summary(title: str) -> str:
    return f'Content from "{title}".'


def clean_string_list(values: Optional[Iterable]) -> List[str]:
    """Keep only non-blank strings, stripped."""
    if not values:
        return []
    return [v.strip() for v in values if isinstance(v, str) and v.strip()]


def clean_optional_text(value: Optional[str]) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def fallback_chapter_fields(title: str, chapter_text: str) -> ChapterAnalysisFields:
    """Deterministic analysis used when generation is unavailable or fails."""
    return ChapterAnalysisFields(
        summary=fallback_summary(title),
        key_concepts=[],
        learning_objectives=[],
        prerequisites=[],
        estimated_reading_minutes=reading_minutes_from_text(chapter_text),
    )


def coerce_chapter_fields(
    response: ChapterAnalysisResponse,
    title: str,
    chapter_text: str
) -> ChapterAnalysisFields:
    """Fill gaps in a model's chapter analysis.

    Args:
        response: Raw model output
        title: Chapter title, used for the templated summary
        chapter_text: Full chapter text, used for the reading-time heuristic

    Returns:
        Fully populated chapter fields
    """
    minutes = response.estimated_reading_minutes
    if isinstance(minutes, (int, float)) and math.isfinite(minutes) and minutes > 0:
        # Sub-minute estimates still count as one minute of reading
        reading_minutes = max(1, round_half_up(minutes))
    else:
        reading_minutes = reading_minutes_from_text(chapter_text)

    return ChapterAnalysisFields(
        summary=clean_optional_text(response.summary) or fallback_summary(title),
        key_concepts=clean_string_list(response.key_concepts),
        learning_objectives=clean_string_list(response.learning_objectives),
        prerequisites=clean_string_list(response.prerequisites),
        estimated_reading_minutes=reading_minutes,
    )

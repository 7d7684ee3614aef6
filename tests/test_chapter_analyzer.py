"""Test per-chapter analysis and its fallbacks."""
import asyncio

import pytest

from analysis.chapter_analyzer import ChapterAnalyzer, TRUNCATION_MARKER, truncate_chapter_text
from analysis.coercion import coerce_chapter_fields, reading_minutes_from_text, round_half_up
from analysis.models import ChapterAnalysisResponse
from generation.structured_generator import GenerationError
from conftest import FakeGenerator


def test_reading_minutes_heuristic():
    assert reading_minutes_from_text("word " * 2500) == 10
    # Short chapters still get the minimum
    assert reading_minutes_from_text("just a few words") == 5


def test_halves_round_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(6.5) == 7
    assert round_half_up(2.4) == 2
    # 1625 words is exactly 6.5 minutes
    assert reading_minutes_from_text("w " * 1625) == 7


def test_fallback_when_generation_unavailable():
    analyzer = ChapterAnalyzer(FakeGenerator(available=False))

    fields = asyncio.run(analyzer.analyze(1, "Cells", "word " * 100))

    assert fields.summary == 'Content from "Cells".'
    assert fields.key_concepts == []
    assert fields.learning_objectives == []
    assert fields.prerequisites == []
    assert fields.estimated_reading_minutes == 5


def test_fallback_when_generation_fails():
    generator = FakeGenerator({ChapterAnalysisResponse: GenerationError("bad reply")})
    analyzer = ChapterAnalyzer(generator)

    fields = asyncio.run(analyzer.analyze(3, "Genes", "word " * 5000))

    assert fields.summary == 'Content from "Genes".'
    assert fields.estimated_reading_minutes == 20


def test_model_reply_is_used():
    generator = FakeGenerator({
        ChapterAnalysisResponse: ChapterAnalysisResponse(
            summary="Cells and their parts.",
            key_concepts=["cell", "membrane"],
            learning_objectives=["Describe a cell"],
            prerequisites=[],
            estimated_reading_minutes=12,
        ),
    })

    fields = asyncio.run(ChapterAnalyzer(generator).analyze(1, "Cells", "text"))

    assert fields.summary == "Cells and their parts."
    assert fields.key_concepts == ["cell", "membrane"]
    assert fields.estimated_reading_minutes == 12


def test_previous_concepts_reach_the_prompt():
    generator = FakeGenerator({
        ChapterAnalysisResponse: ChapterAnalysisResponse(summary="ok", estimated_reading_minutes=3),
    })

    asyncio.run(ChapterAnalyzer(generator).analyze(2, "Tissues", "text", ["cell", "membrane"]))

    prompt = generator.called_with(ChapterAnalysisResponse)[0]
    assert 'Chapter 2: "Tissues"' in prompt
    assert "cell, membrane" in prompt


def test_long_chapter_text_is_truncated():
    generator = FakeGenerator({
        ChapterAnalysisResponse: ChapterAnalysisResponse(summary="ok", estimated_reading_minutes=3),
    })
    analyzer = ChapterAnalyzer(generator, max_chars=50)

    asyncio.run(analyzer.analyze(1, "Long", "x" * 200))

    prompt = generator.called_with(ChapterAnalysisResponse)[0]
    assert prompt.endswith("x" * 50 + TRUNCATION_MARKER)


def test_truncate_leaves_short_text_alone():
    assert truncate_chapter_text("short", max_chars=50) == "short"
    assert truncate_chapter_text("y" * 60, max_chars=50) == "y" * 50 + TRUNCATION_MARKER


@pytest.mark.parametrize("minutes", [None, 0, -4, float("nan"), float("inf")])
def test_invalid_minutes_use_word_count(minutes):
    response = ChapterAnalysisResponse(summary="s", estimated_reading_minutes=minutes)

    fields = coerce_chapter_fields(response, "T", "word " * 3000)

    assert fields.estimated_reading_minutes == 12


def test_fractional_minutes_round_to_at_least_one():
    response = ChapterAnalysisResponse(summary="s", estimated_reading_minutes=0.3)

    assert coerce_chapter_fields(response, "T", "text").estimated_reading_minutes == 1


def test_half_minute_estimates_round_up():
    response = ChapterAnalysisResponse(summary="s", estimated_reading_minutes=2.5)

    assert coerce_chapter_fields(response, "T", "text").estimated_reading_minutes == 3


def test_coercion_fills_missing_fields():
    response = ChapterAnalysisResponse(
        summary="   ",
        key_concepts=["  osmosis ", "", "diffusion"],
        learning_objectives=None,
    )

    fields = coerce_chapter_fields(response, "Transport", "text")

    assert fields.summary == 'Content from "Transport".'
    assert fields.key_concepts == ["osmosis", "diffusion"]
    assert fields.learning_objectives == []
    assert fields.prerequisites == []
    assert fields.estimated_reading_minutes == 5


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

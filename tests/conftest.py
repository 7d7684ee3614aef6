"""Shared test helpers: scripted generator and in-memory PDFs."""
from typing import Dict, List, Optional, Sequence, Tuple

import fitz  # PyMuPDF
from pydantic import BaseModel

from analysis.models import BookAnalysis, ChapterAnalysis, DetectionMethod
from generation.structured_generator import GenerationError


class FakeGenerator:
    """Stands in for StructuredGenerator with scripted replies.

    Replies are keyed by response model. A value may be a model instance,
    an exception instance to raise, or a callable taking the user prompt.
    """

    def __init__(self, responses: Optional[Dict] = None, available: bool = True):
        self.responses = responses or {}
        self.available = available
        self.calls: List[Tuple[type, str]] = []
        self.total_tokens_used = 0

    @property
    def is_available(self) -> bool:
        return self.available

    async def generate(self, system_prompt, user_prompt, response_model, temperature=0.2):
        self.calls.append((response_model, user_prompt))
        reply = self.responses.get(response_model)
        if reply is None:
            raise GenerationError(f"No scripted reply for {response_model.__name__}")
        if callable(reply) and not isinstance(reply, BaseModel):
            reply = reply(user_prompt)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def called_with(self, response_model) -> List[str]:
        return [prompt for model, prompt in self.calls if model is response_model]


def make_pdf(
    page_texts: Sequence[str],
    toc_links: Sequence[Tuple[str, int]] = ()
) -> bytes:
    """Build a PDF with one text line per page.

    Args:
        page_texts: Text placed on each page
        toc_links: (label, target page) pairs written as clickable lines on page 0
    """
    doc = fitz.open()
    for text in page_texts:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=11)

    if toc_links:
        toc_page = doc[0]
        for i, (label, target) in enumerate(toc_links):
            y = 150 + i * 40
            toc_page.insert_text((72, y), label, fontsize=11)
            toc_page.insert_link({
                "kind": fitz.LINK_GOTO,
                "from": fitz.Rect(60, y - 14, 540, y + 5),
                "page": target,
            })

    data = doc.tobytes()
    doc.close()
    return data


def make_book_analysis(chapter_minutes=(40, 50, 30), total_pages=30) -> BookAnalysis:
    """Evenly split book with one concept and objective per chapter."""
    pages_per_chapter = total_pages // len(chapter_minutes)
    return BookAnalysis(
        title="Biology",
        author="A. Author",
        total_pages=total_pages,
        detection_method=DetectionMethod.PDF_LINKS,
        chapters=[
            ChapterAnalysis(
                chapter_number=i + 1,
                title=f"Chapter {i + 1}",
                start_page=i * pages_per_chapter,
                end_page=(i + 1) * pages_per_chapter - 1,
                summary=f"About chapter {i + 1}",
                key_concepts=[f"concept {i + 1}"],
                learning_objectives=[f"Learn {i + 1}"],
                estimated_reading_minutes=minutes,
            )
            for i, minutes in enumerate(chapter_minutes)
        ],
    )

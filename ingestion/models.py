"""Pydantic models for ingestion module."""
from pydantic import BaseModel, Field
from typing import List


class ExtractedPages(BaseModel):
    """Ordered per-page text of a PDF. Index is the 0-based page number."""
    total_pages: int
    pages: List[str] = Field(default_factory=list)

    def page_range_text(self, start: int, end: int) -> str:
        """Join pages start..end (inclusive) with blank lines."""
        return "\n\n".join(self.pages[start:end + 1])

    def combined_with(self, other: "ExtractedPages") -> "ExtractedPages":
        """Append another document's pages after this one's."""
        pages = self.pages + other.pages
        return ExtractedPages(total_pages=len(pages), pages=pages)

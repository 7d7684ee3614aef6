"""Chapter boundary detection with tiered fallback."""
import asyncio
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

import fitz  # PyMuPDF

from utils.logger import setup_logger
from analysis.models import (
    BookMetadata,
    BookStructure,
    BoundaryDetection,
    ChapterBoundary,
    DetectionMethod,
    TableOfContents,
)
from analysis import prompts
from analysis.coercion import clean_optional_text, clean_string_list
from generation.structured_generator import StructuredGenerator
from ingestion.cleaner import clean_page_text, normalize_for_match
import config

logger = setup_logger(__name__)

# PyMuPDF link kinds that carry a resolved target page
_PAGE_LINK_KINDS = (fitz.LINK_GOTO, fitz.LINK_NAMED)

_DELIMITED_PATTERN = re.compile(r"^/(.+)/[a-z]*$", re.DOTALL)


@dataclass
class TierResult:
    """Chapters found by one tier, plus book metadata if the tier read it."""

    chapters: List[ChapterBoundary]
    title: Optional[str] = None
    author: Optional[str] = None


@dataclass
class DetectionTier:
    """Configuration for a detection tier."""

    name: str
    method: DetectionMethod
    fn: Callable[[bytes, List[str]], Awaitable[Optional[TierResult]]]
    min_chapters: int
    description: str


def build_boundaries(
    starts: Sequence[Tuple[str, int]],
    total_pages: int
) -> List[ChapterBoundary]:
    """Turn (title, start page) pairs into ordered, non-overlapping boundaries.

    Starts outside the document are dropped. When several titles share a
    start page the first one listed is kept. Each chapter ends the page
    before the next one starts; the last ends on the final page.

    Args:
        starts: (title, 0-based start page) pairs in discovery order
        total_pages: Page count of the document

    Returns:
        Boundaries sorted by start page
    """
    # sorted() is stable, so the first-listed title wins within a page
    ordered = sorted(
        (s for s in starts if 0 <= s[1] < total_pages),
        key=lambda s: s[1]
    )

    unique: List[Tuple[str, int]] = []
    seen_pages = set()
    for title, page in ordered:
        if page in seen_pages:
            continue
        seen_pages.add(page)
        unique.append((title, page))

    chapters = []
    for i, (title, page) in enumerate(unique):
        end_page = unique[i + 1][1] - 1 if i + 1 < len(unique) else total_pages - 1
        chapters.append(ChapterBoundary(title=title, start_page=page, end_page=end_page))
    return chapters


def fixed_chunks(
    total_pages: int,
    pages_per_chunk: int = config.FIXED_CHUNK_PAGES
) -> List[ChapterBoundary]:
    """Split a document into fixed windows titled "Section N"."""
    return [
        ChapterBoundary(
            title=f"Section {n}",
            start_page=start,
            end_page=min(start + pages_per_chunk, total_pages) - 1,
        )
        for n, start in enumerate(range(0, total_pages, pages_per_chunk), start=1)
    ]


def compile_boundary_pattern(pattern: Optional[str]) -> Optional[re.Pattern]:
    """Compile a model-suggested heading pattern, or None if unusable.

    Accepts plain expressions as well as /.../flags literals. Blank patterns
    and patterns that are not valid regular expressions are rejected.
    """
    if not pattern or not pattern.strip():
        return None

    source = pattern.strip()
    delimited = _DELIMITED_PATTERN.match(source)
    if delimited:
        source = delimited.group(1)

    try:
        return re.compile(source, re.IGNORECASE)
    except re.error:
        return None


class StructureDetector:
    """Locates chapter boundaries in a PDF.

    Tiers run in priority order and the first one that yields at least its
    minimum chapter count wins. If none does, the document is split into
    fixed-size chunks, so detection always returns a structure.
    """

    def __init__(self, generator: StructuredGenerator):
        """Initialize detector.

        Args:
            generator: Structured generation client used by the LLM-backed tiers
        """
        self.generator = generator
        self.tiers: List[DetectionTier] = [
            DetectionTier(
                name="pdf-links",
                method=DetectionMethod.PDF_LINKS,
                fn=self.detect_from_pdf_links,
                min_chapters=config.MIN_LINK_CHAPTERS,
                description="Link annotations on table-of-contents pages",
            ),
            DetectionTier(
                name="title-match",
                method=DetectionMethod.TITLE_MATCH,
                fn=self.detect_from_title_matching,
                min_chapters=config.MIN_TITLE_MATCHES,
                description="TOC titles located in page text",
            ),
            DetectionTier(
                name="llm-detection",
                method=DetectionMethod.LLM_DETECTION,
                fn=self.detect_from_llm_sampling,
                min_chapters=config.MIN_LLM_BOUNDARIES,
                description="Boundary pattern from sampled pages",
            ),
        ]

    async def detect(self, pdf_bytes: bytes, pages: List[str]) -> BookStructure:
        """Detect the chapter structure of a book.

        Args:
            pdf_bytes: Raw PDF contents
            pages: Extracted per-page text

        Returns:
            BookStructure; never raises
        """
        for tier in self.tiers:
            logger.info(f"Trying detection tier: {tier.name} ({tier.description})")

            try:
                result = await tier.fn(pdf_bytes, pages)
            except Exception as e:
                logger.warning(f"Tier {tier.name} failed with error: {e}")
                continue

            if result is None:
                logger.info(f"  Tier {tier.name}: No results")
                continue

            if len(result.chapters) < tier.min_chapters:
                logger.info(
                    f"  Tier {tier.name}: {len(result.chapters)} chapters, "
                    f"below minimum of {tier.min_chapters}"
                )
                continue

            logger.info(f"  Tier {tier.name}: SUCCESS - {len(result.chapters)} chapters")

            if result.title is not None:
                title, author = result.title, result.author
            else:
                title, author = await self.extract_metadata(pages)

            return BookStructure(
                title=title,
                author=author,
                chapters=result.chapters,
                detection_method=tier.method,
            )

        logger.warning("All detection tiers failed. Using fixed-size chunks.")
        title, author = await self.extract_metadata(pages)
        return BookStructure(
            title=title,
            author=author,
            chapters=fixed_chunks(len(pages)),
            detection_method=DetectionMethod.FIXED_CHUNKS,
        )

    # ------------------------------------------------------------------
    # Tier 1: PDF link annotations
    # ------------------------------------------------------------------

    async def detect_from_pdf_links(
        self,
        pdf_bytes: bytes,
        pages: List[str]
    ) -> Optional[TierResult]:
        """Read internal links on the opening pages as a clickable TOC."""
        try:
            links, total_pages = await asyncio.to_thread(self._scan_links, pdf_bytes)
        except Exception as e:
            logger.info(f"  Could not scan PDF links: {e}")
            return None

        chapters = build_boundaries(links, total_pages)
        if len(chapters) < config.MIN_LINK_CHAPTERS:
            return None
        return TierResult(chapters=chapters)

    def _scan_links(self, pdf_bytes: bytes) -> Tuple[List[Tuple[str, int]], int]:
        """Collect (label, destination page) for internal links.

        Returns:
            Links in scan order and the document page count
        """
        links: List[Tuple[str, int]] = []
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        try:
            total_pages = doc.page_count
            for page_index in range(min(config.TOC_SCAN_PAGES, total_pages)):
                page = doc[page_index]
                for link in page.get_links():
                    if link.get("kind") not in _PAGE_LINK_KINDS:
                        continue
                    dest = link.get("page")
                    if not isinstance(dest, int) or dest < 0:
                        continue
                    label = clean_page_text(page.get_textbox(link["from"]))
                    if label:
                        links.append((label, dest))
        finally:
            doc.close()
        return links, total_pages

    # ------------------------------------------------------------------
    # Tier 2: TOC titles located in page text
    # ------------------------------------------------------------------

    async def detect_from_title_matching(
        self,
        pdf_bytes: bytes,
        pages: List[str]
    ) -> Optional[TierResult]:
        """Ask for the TOC's chapter titles, then find each one in the pages."""
        if not self.generator.is_available:
            return None

        toc_text = prompts.PAGE_BREAK.join(pages[:config.TOC_SCAN_PAGES])
        if len(toc_text.strip()) < 100:
            return None

        toc = await self.generator.generate(
            prompts.TOC_SYSTEM_PROMPT,
            prompts.toc_extraction_prompt(toc_text),
            TableOfContents,
            temperature=0.1,
        )

        titles = clean_string_list(toc.chapter_titles)
        if len(titles) < config.MIN_TITLE_MATCHES:
            return None

        normalized_pages = [normalize_for_match(page) for page in pages]
        located: List[Tuple[str, int]] = []

        for title in titles:
            needle = normalize_for_match(title)
            # Short titles ("Notes", "Part I") match almost anywhere
            if len(needle) <= config.MIN_TITLE_LENGTH:
                continue
            for page_index, haystack in enumerate(normalized_pages):
                if needle in haystack:
                    located.append((title, page_index))
                    break

        chapters = build_boundaries(located, len(pages))
        if len(chapters) < config.MIN_TITLE_MATCHES:
            return None

        return TierResult(
            chapters=chapters,
            title=clean_optional_text(toc.book_title) or config.DEFAULT_BOOK_TITLE,
            author=clean_optional_text(toc.author),
        )

    # ------------------------------------------------------------------
    # Tier 3: boundary detection from sampled pages
    # ------------------------------------------------------------------

    async def detect_from_llm_sampling(
        self,
        pdf_bytes: bytes,
        pages: List[str]
    ) -> Optional[TierResult]:
        """Show the model evenly spaced page excerpts and ask for boundaries."""
        if not self.generator.is_available:
            return None
        if len(pages) < config.MIN_PAGES_FOR_SAMPLING:
            return None

        step = max(1, len(pages) // config.SAMPLE_TARGET)
        samples = [
            prompts.sample_label(i, pages[i][:config.SAMPLE_CHARS])
            for i in range(0, len(pages), step)
        ]

        detection = await self.generator.generate(
            prompts.BOUNDARY_SYSTEM_PROMPT,
            prompts.boundary_detection_prompt(len(pages), samples),
            BoundaryDetection,
            temperature=0.1,
        )

        if len(detection.boundaries) < config.MIN_LLM_BOUNDARIES:
            return None

        regex = compile_boundary_pattern(detection.pattern)
        if regex is not None:
            hits = self._scan_for_pattern(regex, pages)
            if len(hits) >= config.MIN_LLM_BOUNDARIES:
                logger.info(f"  Pattern {regex.pattern!r} matched {len(hits)} pages")
                return TierResult(chapters=build_boundaries(hits, len(pages)))

        # Sampled boundaries use 1-based page numbers
        starts = [
            (b.title.strip() or f"Section at page {b.page_number}", b.page_number - 1)
            for b in detection.boundaries
        ]
        return TierResult(chapters=build_boundaries(starts, len(pages)))

    @staticmethod
    def _scan_for_pattern(regex: re.Pattern, pages: List[str]) -> List[Tuple[str, int]]:
        """First match of the heading pattern on every page."""
        hits = []
        for page_index, text in enumerate(pages):
            match = regex.search(text)
            if match and match.group(0).strip():
                hits.append((match.group(0).strip()[:100], page_index))
        return hits

    # ------------------------------------------------------------------
    # Book metadata
    # ------------------------------------------------------------------

    async def extract_metadata(self, pages: List[str]) -> Tuple[str, Optional[str]]:
        """Read title and author from the opening pages.

        Returns:
            (title, author); the placeholder title and no author on failure
        """
        if not self.generator.is_available:
            return config.DEFAULT_BOOK_TITLE, None

        first_pages = prompts.PAGE_BREAK.join(pages[:config.METADATA_PAGES])

        try:
            metadata = await self.generator.generate(
                prompts.METADATA_SYSTEM_PROMPT,
                first_pages,
                BookMetadata,
                temperature=0.1,
            )
        except Exception as e:
            logger.warning(f"Failed to extract book metadata: {e}")
            return config.DEFAULT_BOOK_TITLE, None

        return (
            clean_optional_text(metadata.title) or config.DEFAULT_BOOK_TITLE,
            clean_optional_text(metadata.author),
        )

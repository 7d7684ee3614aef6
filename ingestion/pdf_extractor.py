"""PDF text extraction module."""
import asyncio
import fitz  # PyMuPDF

from utils.logger import setup_logger
from ingestion.models import ExtractedPages
from ingestion.cleaner import clean_page_text

logger = setup_logger(__name__)


class PDFExtractionError(Exception):
    """Raised when PDF extraction fails."""
    pass


class PDFExtractor:
    """Extracts ordered per-page text from PDF bytes."""

    def extract(self, pdf_bytes: bytes) -> ExtractedPages:
        """Extract one text string per page.

        Args:
            pdf_bytes: Raw PDF file contents

        Returns:
            ExtractedPages with one cleaned string per page, in page order

        Raises:
            PDFExtractionError: If the bytes are not a readable PDF or it has no pages
        """
        if not pdf_bytes:
            raise PDFExtractionError("PDF file is empty")

        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as e:
            raise PDFExtractionError(f"Failed to open PDF: {e}")

        try:
            if doc.needs_pass:
                raise PDFExtractionError("PDF is encrypted. Please decrypt first.")
            if doc.page_count == 0:
                raise PDFExtractionError("PDF has no pages")

            pages = []
            for page_num in range(doc.page_count):
                try:
                    text = doc[page_num].get_text()
                except Exception as e:
                    raise PDFExtractionError(f"Failed to read page {page_num + 1}: {e}")
                pages.append(clean_page_text(text))
        finally:
            doc.close()

        logger.info(
            f"Extracted {len(pages)} pages, "
            f"{sum(len(p.split()) for p in pages)} words"
        )

        return ExtractedPages(total_pages=len(pages), pages=pages)

    async def extract_async(self, pdf_bytes: bytes) -> ExtractedPages:
        """Run extract() in a worker thread."""
        return await asyncio.to_thread(self.extract, pdf_bytes)

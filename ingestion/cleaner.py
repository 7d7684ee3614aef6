"""Text cleaning utilities."""
import re

_WHITESPACE = re.compile(r'\s+')
_NON_ALNUM = re.compile(r'[^a-z0-9\s]')


def clean_page_text(text: str) -> str:
    """Collapse whitespace in extracted page text.

    Args:
        text: Raw text from a PDF page

    Returns:
        Text with every whitespace run replaced by a single space, trimmed
    """
    return _WHITESPACE.sub(' ', text or '').strip()


def normalize_for_match(text: str) -> str:
    """Normalize text for fuzzy title matching.

    Lowercases, drops everything except letters, digits and whitespace,
    then collapses whitespace so "Chapter 1:  Cells!" and "chapter 1 cells"
    compare equal.

    Args:
        text: Title or page text

    Returns:
        Normalized text
    """
    return _WHITESPACE.sub(' ', _NON_ALNUM.sub('', (text or '').lower())).strip()


def word_count(text: str) -> int:
    """Count whitespace-separated words."""
    return len((text or '').split())

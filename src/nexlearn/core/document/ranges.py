"""Character-range validation and text-search fallback."""

from nexlearn.models.node import TextRange


def validate_range(text_range: TextRange | None, text_length: int) -> bool:
    """Return True iff ``0 <= start < end <= text_length``."""
    if text_range is None:
        return False
    return 0 <= text_range.start < text_range.end <= text_length


def locate_by_text(text: str, needle: str, occurrence: int = 0) -> TextRange | None:
    """Find the span of the n-th (0-based) occurrence of needle in text.

    Occurrences are counted without overlap. Returns None when the needle is
    empty or occurs fewer than ``occurrence + 1`` times.
    """
    if not needle or occurrence < 0:
        return None

    idx = -1
    pos = 0
    for _ in range(occurrence + 1):
        idx = text.find(needle, pos)
        if idx == -1:
            return None
        pos = idx + len(needle)

    return TextRange(start=idx, end=idx + len(needle))


def resolve_range(
    text: str,
    text_range: TextRange | None,
    needle: str | None = None,
) -> TextRange | None:
    """Resolve an entity's range against text.

    The stored range wins when valid. Otherwise, the first occurrence of the
    needle is used. Returns None when neither works.
    """
    if validate_range(text_range, len(text)):
        return text_range
    if needle:
        return locate_by_text(text, needle)
    return None

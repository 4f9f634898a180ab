# Version: v1.0
"""
semsplit.segmenter — Sentence segmentation into offset-exact TextSpans.
"""

import re

from semsplit.exceptions import InvalidInput
from semsplit.models import TextSpan

# Terminal punctuation plus trailing closing quotes/brackets, or a blank line.
_BREAK_RE = re.compile(r"[.!?]+[\"'”’)\]]*(?=\s|$)|\n[ \t]*\n")


def _append_span(spans: list[TextSpan], text: str, start: int, end: int) -> None:
    piece = text[start:end]
    content = piece.strip()
    if not content:
        return
    leading = len(piece) - len(piece.lstrip())
    spans.append(TextSpan(content=content, start_offset=start + leading))


def split_sentences(text: str) -> list[TextSpan]:
    """Split *text* into trimmed sentence spans.

    A span ends after sentence punctuation followed by whitespace or the end
    of the text, or at a blank line. A trailing fragment without terminal
    punctuation is kept.

    Args:
        text: Source document.

    Returns:
        Ordered, non-empty spans whose content equals
        text[start_offset:end_offset].

    Raises:
        InvalidInput: If *text* is empty or whitespace only.
    """
    if not text or not text.strip():
        raise InvalidInput("Cannot segment empty text")

    spans: list[TextSpan] = []
    start = 0
    for match in _BREAK_RE.finditer(text):
        is_blank_line = match.group(0).startswith("\n")
        end = match.start() if is_blank_line else match.end()
        _append_span(spans, text, start, end)
        start = match.end()
    _append_span(spans, text, start, len(text))
    return spans

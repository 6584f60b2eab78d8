"""Text normalization for extracted PDF text.

PDF extraction leaves hard line wraps, runs of spaces used for layout,
form feeds between pages and the occasional NUL byte.  None of that carries
meaning for embeddings, and NUL is rejected outright by PostgreSQL text
columns, so everything is flattened to single-spaced prose before chunking.
"""

import re

# Any run of Unicode whitespace (str.split semantics) collapses to one space.
_WHITESPACE_RE = re.compile(r"\s+")

# C0 control characters that are not whitespace.  NUL is the important one;
# the rest (\x01-\x08, \x0e-\x1f, DEL) are PDF font-encoding debris.
_CONTROL_RE = re.compile(r"[\x00-\x08\x0e-\x1f\x7f]")


def normalize_text(text: str) -> str:
    """Flatten *text* to single-spaced, control-free, trimmed prose.

    Idempotent: ``normalize_text(normalize_text(t)) == normalize_text(t)``.

    Args:
        text: Raw extracted text (may be empty).

    Returns:
        Normalized text; ``""`` for empty or whitespace-only input.
    """
    if not text:
        return ""
    # Controls go first so "a\x00 \x00b" cannot leave a double space behind.
    cleaned = _CONTROL_RE.sub("", text)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned)
    return cleaned.strip()

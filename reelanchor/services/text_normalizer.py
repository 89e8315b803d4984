"""Text normalization for quote matching.

Two forms are produced from the same raw text:

- the *matching* form: lowercase, typographic quotes/dashes/ellipses folded
  to ASCII, whitespace collapsed. All matching strategies compare this form.
- the *display* form: whitespace collapsed only, so output keeps the
  speaker's casing and punctuation.
"""

import re

_WHITESPACE_RE = re.compile(r"\s+")

# Single characters folded to their ASCII counterpart
_CHAR_FOLDS = str.maketrans({
    "‘": "'",  # left single quote
    "’": "'",  # right single quote
    "‚": "'",
    "‛": "'",
    "′": "'",  # prime
    "“": '"',  # left double quote
    "”": '"',  # right double quote
    "„": '"',
    "″": '"',
    "—": "-",  # em dash
    "–": "-",  # en dash
    "‒": "-",
    "―": "-",
    " ": " ",  # no-break space
})


def normalize_whitespace(text: str) -> str:
    """Collapse newlines and whitespace runs to single spaces and trim.

    Used for display text; casing and punctuation are preserved.
    """
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_for_matching(text: str) -> str:
    """Normalize text for comparison.

    Args:
        text: Raw transcript or quote text.

    Returns:
        Lowercased text with curly quotes straightened, the ellipsis
        character expanded to ``...``, em/en dashes turned into hyphens and
        whitespace collapsed. ``normalize_for_matching`` is idempotent.
    """
    if not text:
        return ""
    text = text.translate(_CHAR_FOLDS).replace("…", "...")
    return normalize_whitespace(text.lower())


def split_words(normalized: str) -> list[str]:
    """Split an already-normalized string into words."""
    return normalized.split() if normalized else []

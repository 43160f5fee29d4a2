"""Title → slug normalization and stopword tokenization.

Every note's filename stem is ``title_slug(title)``; the matcher compares
titles through the same function so that a title and the file it produced
always agree.
"""

from __future__ import annotations

import re

#: Maximum length of a slug used as a filename stem.
MAX_SLUG_LENGTH = 50

#: Function words ignored when comparing titles by word overlap.
STOPWORDS: frozenset[str] = frozenset(
    {
        "for", "the", "in", "a", "an", "to", "of", "and", "is", "are", "with",
        "on", "at", "by", "from", "as", "it", "that", "this", "be", "was",
        "were", "been", "being", "have", "has", "had", "do", "does", "did",
        "will", "would", "could", "should", "may", "might", "must", "can",
        "how", "what", "when", "where", "why", "which", "who", "whom",
    }
)

_WHITESPACE_RE = re.compile(r"\s+")
_DOTS_RE = re.compile(r"\.+")
_INVALID_RE = re.compile(r"[^a-z0-9_-]")
_HYPHENS_RE = re.compile(r"-+")


def normalize(title: str) -> str:
    """Return the canonical, filesystem-safe form of *title*.

    Lowercases, turns whitespace and dot runs into hyphens, drops anything
    outside ``[a-z0-9_-]``, collapses hyphen runs and trims hyphens from both
    ends.  The result may be empty; ``normalize`` is idempotent.
    """
    slug = _WHITESPACE_RE.sub("-", title.lower())
    slug = _DOTS_RE.sub("-", slug)
    slug = _INVALID_RE.sub("", slug)
    slug = _HYPHENS_RE.sub("-", slug)
    return slug.strip("-")


def title_slug(title: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Normalize *title* and bound it to *max_length* characters."""
    # Truncation can expose a trailing hyphen; strip it so the slug stays a
    # fixed point of normalize().
    return normalize(title)[:max_length].rstrip("-")


def tokenize(slug: str) -> frozenset[str]:
    """Split *slug* on hyphens and keep only the significant words."""
    if not slug or not slug.strip():
        return frozenset()
    return frozenset(
        word for word in slug.lower().split("-") if word and word not in STOPWORDS
    )


def title_tokens(title: str) -> frozenset[str]:
    """Shorthand for ``tokenize(title_slug(title))``."""
    return tokenize(title_slug(title))

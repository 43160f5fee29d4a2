"""Word-overlap similarity between titles."""

from __future__ import annotations

from collections.abc import Iterable, Set

from memvault.slug import title_tokens, tokenize


def jaccard(a: Set[str], b: Set[str]) -> float:
    """Jaccard index ``|a ∩ b| / |a ∪ b|``.

    Two empty sets score ``0.0`` rather than being undefined, so two
    contentless titles never look alike.
    """
    union = len(a | b)
    if union == 0:
        return 0.0
    return len(a & b) / union


def alias_score(tokens: Set[str], slug: str, aliases: Iterable[str]) -> float:
    """Best Jaccard score of *tokens* against *slug* and each alias title."""
    best = jaccard(tokens, tokenize(slug))
    for alias in aliases:
        score = jaccard(tokens, title_tokens(alias))
        if score > best:
            best = score
    return best

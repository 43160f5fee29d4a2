"""Tiered topic matcher.

Decides whether a proposed title names a topic that already has a note:

1. **exact**: the title's slug equals a candidate's slug (score 1.0).  Titles
   with fewer than two significant words stop here; one word is too weak a
   signal for overlap scoring.
2. **threshold**: best Jaccard score over slug words reaches the threshold.
   Ties go to the alphabetically first path.
3. **alias**: candidates in the gray zone below the threshold are re-scored
   against the historical titles (aliases) they absorbed in earlier merges.

Candidates are sorted by path before scoring, so the result never depends on
directory listing order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from functools import partial
from pathlib import Path

from memvault.aliases import read_aliases
from memvault.config import DEFAULT_GRAY_ZONE, DEFAULT_THRESHOLD, clamp_threshold
from memvault.index import TopicCandidate, scan_category, scan_project
from memvault.note import CATEGORIES
from memvault.similarity import alias_score, jaccard
from memvault.slug import title_slug, tokenize
from memvault.store import NoteStore

logger = logging.getLogger(__name__)

AliasLoader = Callable[[TopicCandidate], Sequence[str]]


@dataclass(frozen=True)
class TopicMatch:
    path: Path
    category: str
    score: float
    #: "exact", "threshold" or "alias"
    tier: str


def find_match(
    candidates: Iterable[TopicCandidate],
    title: str,
    threshold: float = DEFAULT_THRESHOLD,
    *,
    load_aliases: AliasLoader | None = None,
    gray_zone: tuple[float, float] = DEFAULT_GRAY_ZONE,
) -> TopicMatch | None:
    """Return the candidate *title* should merge into, or ``None``.

    *threshold* is clamped to ``[0, 1]`` (NaN and non-numbers mean 0.6).
    Candidate aliases are taken from the candidate itself or, when not yet
    loaded, from *load_aliases*; they are only consulted in the gray zone.
    """
    if not isinstance(title, str) or not title.strip():
        return None
    threshold = clamp_threshold(threshold)
    input_slug = title_slug(title)
    if not input_slug:
        return None
    tokens = tokenize(input_slug)
    ordered = sorted(candidates, key=lambda c: str(c.path))

    for candidate in ordered:
        if candidate.slug == input_slug:
            return TopicMatch(candidate.path, candidate.category, 1.0, "exact")

    if len(tokens) < 2:
        return None

    scored = [(jaccard(tokens, tokenize(c.slug)), c) for c in ordered]
    best: tuple[float, TopicCandidate] | None = None
    for score, candidate in scored:
        if best is None or score > best[0]:
            best = (score, candidate)

    if best is not None and best[0] >= threshold:
        score, candidate = best
        logger.debug("Matched %r to %s (threshold, %.2f)", title, candidate.path, score)
        return TopicMatch(candidate.path, candidate.category, score, "threshold")

    low, high = gray_zone
    gray = [(s, c) for s, c in scored if low <= s <= high and s < threshold]
    gray.sort(key=lambda item: (-item[0], str(item[1].path)))

    for _, candidate in gray:
        aliases = candidate.aliases
        if aliases is None:
            aliases = tuple(load_aliases(candidate)) if load_aliases else ()
        if not aliases:
            continue
        score = alias_score(tokens, candidate.slug, aliases)
        if score >= threshold:
            logger.debug("Matched %r to %s via alias (%.2f)", title, candidate.path, score)
            return TopicMatch(candidate.path, candidate.category, score, "alias")

    logger.debug("No similar topic for %r", title)
    return None


def _store_alias_loader(store: NoteStore) -> AliasLoader:
    def load(candidate: TopicCandidate) -> list[str]:
        return read_aliases(store, candidate.path)

    return load


def find_in_category(
    store: NoteStore,
    project_path: Path,
    category: str,
    title: str,
    threshold: float = DEFAULT_THRESHOLD,
    *,
    gray_zone: tuple[float, float] = DEFAULT_GRAY_ZONE,
) -> TopicMatch | None:
    """Match *title* against the notes of a single category."""
    return _find(
        partial(scan_category, store, Path(project_path), category),
        store,
        project_path,
        title,
        threshold,
        gray_zone,
    )


def find_across_categories(
    store: NoteStore,
    project_path: Path,
    title: str,
    threshold: float = DEFAULT_THRESHOLD,
    *,
    categories: Iterable[str] = CATEGORIES,
    gray_zone: tuple[float, float] = DEFAULT_GRAY_ZONE,
) -> TopicMatch | None:
    """Match *title* against every category of a project.

    The returned match names its category, so callers can ask before merging
    across categories.
    """
    return _find(
        partial(scan_project, store, Path(project_path), tuple(categories)),
        store,
        project_path,
        title,
        threshold,
        gray_zone,
    )


def _find(
    scan: Callable[[], list[TopicCandidate]],
    store: NoteStore,
    project_path: Path,
    title: str,
    threshold: float,
    gray_zone: tuple[float, float],
) -> TopicMatch | None:
    if not isinstance(title, str) or not title.strip():
        return None
    if not store.is_dir(Path(project_path)):
        return None
    return find_match(
        scan(),
        title,
        threshold,
        load_aliases=_store_alias_loader(store),
        gray_zone=gray_zone,
    )

"""Category scanning and the in-memory project index."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from memvault.note import CATEGORIES, Note
from memvault.similarity import jaccard
from memvault.slug import title_tokens
from memvault.store import NoteStore

logger = logging.getLogger(__name__)

#: Sub-folder of each category holding notes absorbed by consolidation
ARCHIVE_DIRNAME = ".archive"


def category_index_name(category: str) -> str:
    """Filename of the index note every category folder carries."""
    return f"{category}.md"


@dataclass(frozen=True)
class TopicCandidate:
    """A scanned note reference; aliases stay ``None`` until someone reads them."""

    path: Path
    slug: str
    category: str
    aliases: tuple[str, ...] | None = None


@dataclass(frozen=True)
class SearchResult:
    path: Path
    title: str
    category: str
    snippet: str
    score: float


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------


def scan_category(store: NoteStore, project_path: Path, category: str) -> list[TopicCandidate]:
    """List the topic notes of one category, sorted by path.

    The category index file, dot-files and the ``.archive`` folder are never
    candidates.  A missing or unreadable folder yields no candidates.
    """
    directory = Path(project_path) / category
    try:
        if not store.is_dir(directory):
            return []
        names = store.list_dir(directory)
    except OSError as exc:
        logger.warning("Failed to read category directory %s: %s", directory, exc)
        return []

    index_name = category_index_name(category)
    return [
        TopicCandidate(path=directory / name, slug=name[: -len(".md")], category=category)
        for name in sorted(names)
        if name.endswith(".md") and name != index_name and not name.startswith(".")
    ]


def scan_project(
    store: NoteStore,
    project_path: Path,
    categories: Iterable[str] = CATEGORIES,
) -> list[TopicCandidate]:
    """Concatenate :func:`scan_category` over *categories*."""
    candidates: list[TopicCandidate] = []
    for category in categories:
        candidates.extend(scan_category(store, project_path, category))
    return candidates


# ---------------------------------------------------------------------------
# Index
# ---------------------------------------------------------------------------


class ProjectIndex:
    """Loads every topic note of a project for reporting and search."""

    def __init__(
        self,
        store: NoteStore,
        project_path: Path,
        categories: Iterable[str] = CATEGORIES,
    ) -> None:
        self.store = store
        self.project_path = Path(project_path)
        self.categories = tuple(categories)
        self.notes: dict[str, Note] = {}

    def build(self) -> None:
        """(Re-)scan the project and load all notes, keyed by path."""
        self.notes = {}
        for candidate in scan_project(self.store, self.project_path, self.categories):
            note = self.store.read_note(candidate.path)
            if note is None:
                logger.debug("Skipping unreadable note %s", candidate.path)
                continue
            self.notes[str(candidate.path)] = note

    def notes_in(self, category: str) -> list[Note]:
        return [n for n in self.notes.values() if n.category == category]

    def search(self, query: str, limit: int = 10) -> list[SearchResult]:
        """Rank notes by title word overlap, title substring and body hits."""
        q = query.strip().lower()
        if not q:
            return []
        q_tokens = title_tokens(q)
        results: list[SearchResult] = []
        for note in self.notes.values():
            title = note.title.lower()
            body = note.body.lower()
            score = jaccard(q_tokens, title_tokens(title)) * 15
            if q in title:
                score += 5
            score += body.count(q)
            if score < 1:
                continue
            hit = max(body.find(q), 0)
            start = max(0, hit - 50)
            snippet = note.body[start : hit + len(q) + 50].replace("\n", " ").strip()
            results.append(
                SearchResult(
                    path=note.path,
                    title=note.title,
                    category=note.category,
                    snippet=snippet,
                    score=score,
                )
            )
        results.sort(key=lambda r: (-r.score, str(r.path)))
        return results[:limit]

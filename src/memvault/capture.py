"""Knowledge capture: route an incoming item to an existing note or a new one."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from memvault.config import Config
from memvault.index import scan_project
from memvault.layout import ensure_project_structure
from memvault.matcher import TopicMatch, find_across_categories, find_in_category
from memvault.mutator import NoteMutator
from memvault.note import CATEGORIES
from memvault.semantic import NoteInfo, SemanticMatch, SemanticMatcher
from memvault.slug import title_slug
from memvault.store import NoteStore

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "knowledge"


@dataclass(frozen=True)
class KnowledgeItem:
    title: str
    content: str
    category: str = DEFAULT_CATEGORY
    tags: Sequence[str] = ()


@dataclass(frozen=True)
class CaptureResult:
    action: Literal["created", "merged"]
    path: Path
    category: str
    #: How the target was found: "exact", "threshold", "alias" or "semantic"
    tier: str | None = None
    score: float | None = None


class KnowledgeWriter:
    """Writes knowledge items into a project, merging into matching topics."""

    def __init__(
        self,
        store: NoteStore,
        config: Config,
        *,
        semantic: SemanticMatcher | None = None,
        mutator: NoteMutator | None = None,
    ) -> None:
        self.store = store
        self.config = config
        self.semantic = semantic
        self.mutator = mutator or NoteMutator(store)

    def write(self, project: str, item: KnowledgeItem) -> CaptureResult | None:
        """Store *item* in *project*; ``None`` if nothing could be written.

        Raises :class:`~memvault.errors.InvalidProjectNameError` for a bad
        project name.
        """
        if not item.title.strip():
            logger.warning("Refusing to capture an item without a title")
            return None

        category = item.category
        if category not in CATEGORIES:
            logger.warning("Unknown category %r; using %r", category, DEFAULT_CATEGORY)
            category = DEFAULT_CATEGORY

        try:
            project_path = ensure_project_structure(self.store, self.config.vault, project)
        except OSError as exc:
            logger.error("Failed to create project structure for %s: %s", project, exc)
            return None

        dedup = self.config.deduplication
        if dedup.enabled:
            match = self._find_deterministic(project_path, category, item)
            if match is not None:
                return self._merge_deterministic(match, item)
            semantic = self._find_semantic(project_path, category, item)
            if semantic is not None:
                return self._merge_semantic(semantic, item)

        path = self.mutator.create(project_path / category, item.title, item.content, tags=item.tags)
        if path is None:
            return None
        return CaptureResult(action="created", path=path, category=category)

    def write_batch(
        self, project: str, items: Iterable[KnowledgeItem]
    ) -> list[CaptureResult | None]:
        """Write items in order; later items may merge into earlier ones."""
        return [self.write(project, item) for item in items]

    # ------------------------------------------------------------------
    # Deterministic
    # ------------------------------------------------------------------

    def _find_deterministic(
        self, project_path: Path, category: str, item: KnowledgeItem
    ) -> TopicMatch | None:
        dedup = self.config.deduplication
        if dedup.cross_category:
            return find_across_categories(
                self.store, project_path, item.title, dedup.threshold, gray_zone=dedup.gray_zone
            )
        return find_in_category(
            self.store,
            project_path,
            category,
            item.title,
            dedup.threshold,
            gray_zone=dedup.gray_zone,
        )

    def _merge_deterministic(self, match: TopicMatch, item: KnowledgeItem) -> CaptureResult | None:
        if not self.mutator.append(match.path, item.content, item.tags):
            return None
        if title_slug(item.title) != match.path.stem:
            self.mutator.add_alias(match.path, item.title)
        logger.info("Merged %r into %s (%s)", item.title, match.path, match.tier)
        return CaptureResult(
            action="merged",
            path=match.path,
            category=match.category,
            tier=match.tier,
            score=match.score,
        )

    # ------------------------------------------------------------------
    # Semantic
    # ------------------------------------------------------------------

    def _find_semantic(
        self, project_path: Path, category: str, item: KnowledgeItem
    ) -> SemanticMatch | None:
        if self.semantic is None or not self.semantic.enabled or not self.config.ai.enabled:
            return None

        categories = CATEGORIES if self.config.deduplication.cross_category else (category,)
        notes: list[NoteInfo] = []
        for candidate in scan_project(self.store, project_path, categories):
            note = self.store.read_note(candidate.path)
            if note is not None:
                notes.append(NoteInfo(path=candidate.path, title=note.title, category=candidate.category))

        match = self.semantic.match_one(item.title, notes)
        if match is None:
            return None
        if match.confidence != "high":
            logger.debug(
                "Ignoring %s-confidence semantic match %s for %r",
                match.confidence,
                match.path,
                item.title,
            )
            return None
        return match

    def _merge_semantic(self, match: SemanticMatch, item: KnowledgeItem) -> CaptureResult | None:
        if not self.mutator.append(match.path, item.content, item.tags):
            return None
        self.mutator.add_alias(match.path, item.title)

        path = match.path
        if title_slug(match.generic_title) != path.stem:
            self.mutator.add_alias(path, match.title)
            renamed = self.mutator.rename_to_generic_title(path, match.generic_title)
            if renamed is not None:
                path = renamed
        logger.info("Merged %r into %s (semantic)", item.title, path)
        return CaptureResult(action="merged", path=path, category=match.category, tier="semantic")

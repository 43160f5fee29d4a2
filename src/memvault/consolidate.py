"""Project-wide consolidation of duplicate topic notes.

A consolidation run plans groups of notes that cover the same topic, then
merges each group into one canonical note::

    consolidator = Consolidator(store, config)
    for group in consolidator.plan("my-app"):
        print(group.canonical.path, [n.path for n in group.absorbed])

    report = consolidator.run("my-app", confirm=ask_user)

Absorbed notes are appended to the canonical note as entries, remembered as
aliases and moved to their category's ``.archive`` folder; nothing is
deleted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from memvault.config import Config
from memvault.index import ProjectIndex, TopicCandidate
from memvault.layout import project_path
from memvault.matcher import find_match
from memvault.mutator import NoteMutator
from memvault.note import CATEGORIES, CATEGORY_PRIORITY, Note
from memvault.semantic import NoteInfo, SemanticMatcher
from memvault.slug import title_slug
from memvault.store import NoteStore

logger = logging.getLogger(__name__)


def canonical_key(note: Note) -> tuple[int, int, str]:
    """Sort key putting the note that should survive a merge first."""
    return (
        CATEGORY_PRIORITY.get(note.category, len(CATEGORY_PRIORITY)),
        -note.entry_count,
        str(note.path),
    )


@dataclass(frozen=True)
class PendingGroup:
    """Notes planned to be merged into :attr:`canonical`."""

    canonical: Note
    absorbed: tuple[Note, ...]
    generic_title: str
    source: Literal["deterministic", "semantic"] = "deterministic"

    @property
    def notes(self) -> tuple[Note, ...]:
        return (self.canonical, *self.absorbed)

    @classmethod
    def from_notes(
        cls,
        notes: Iterable[Note],
        generic_title: str | None = None,
        source: Literal["deterministic", "semantic"] = "deterministic",
    ) -> "PendingGroup":
        ordered = sorted(notes, key=canonical_key)
        canonical, *absorbed = ordered
        return cls(
            canonical=canonical,
            absorbed=tuple(absorbed),
            generic_title=generic_title or canonical.title,
            source=source,
        )


@dataclass
class ConsolidationReport:
    dry_run: bool = False
    planned: int = 0
    merged: int = 0
    skipped: int = 0
    archived: int = 0
    failures: int = 0
    groups: list[PendingGroup] = field(default_factory=list)
    #: Canonical path after each merged group (renames included)
    results: list[Path] = field(default_factory=list)


class Consolidator:
    """Plans and applies merges of same-topic notes within a project."""

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

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(
        self,
        project: str,
        categories: Iterable[str] | None = None,
        use_ai: bool = False,
    ) -> list[PendingGroup]:
        """Group the project's notes by topic; only groups of two or more.

        Raises :class:`~memvault.errors.InvalidProjectNameError` for a bad
        project name.
        """
        root = project_path(self.config.vault, project)
        if not self.store.is_dir(root):
            logger.info("Project %s does not exist; nothing to consolidate", root)
            return []

        index = ProjectIndex(self.store, root, categories or CATEGORIES)
        index.build()
        notes = sorted(index.notes.values(), key=lambda n: str(n.path))
        if len(notes) < 2:
            return []

        if use_ai:
            if self.semantic is None or not self.semantic.enabled or not self.config.ai.enabled:
                logger.warning("AI consolidation requested but semantic matching is disabled")
            else:
                return self._plan_semantic(self.semantic, notes)
        return self._plan_deterministic(notes)

    def _plan_deterministic(self, notes: list[Note]) -> list[PendingGroup]:
        dedup = self.config.deduplication
        groups: list[list[Note]] = []
        by_path: dict[Path, int] = {}

        for note in notes:
            heads = [
                TopicCandidate(
                    path=group[0].path,
                    slug=group[0].slug,
                    category=group[0].category,
                    aliases=tuple(group[0].aliases),
                )
                for group in groups
                if dedup.cross_category or group[0].category == note.category
            ]
            match = find_match(heads, note.title, dedup.threshold, gray_zone=dedup.gray_zone)
            if match is None:
                by_path[note.path] = len(groups)
                groups.append([note])
            else:
                groups[by_path[match.path]].append(note)

        return [PendingGroup.from_notes(group) for group in groups if len(group) > 1]

    def _plan_semantic(self, semantic: SemanticMatcher, notes: list[Note]) -> list[PendingGroup]:
        infos = [NoteInfo(path=n.path, title=n.title, category=n.category) for n in notes]
        return [
            PendingGroup.from_notes(
                [notes[i] for i in group.indices], group.generic_title, source="semantic"
            )
            for group in semantic.group_all(infos)
        ]

    # ------------------------------------------------------------------
    # Applying
    # ------------------------------------------------------------------

    def run(
        self,
        project: str,
        *,
        dry_run: bool = False,
        confirm: Callable[[PendingGroup], bool] | None = None,
        use_ai: bool = False,
    ) -> ConsolidationReport:
        """Plan and merge.  *confirm* is asked once per group when given."""
        groups = self.plan(project, use_ai=use_ai)
        report = ConsolidationReport(dry_run=dry_run, planned=len(groups), groups=groups)
        if dry_run:
            return report

        for group in groups:
            if confirm is not None and not confirm(group):
                logger.info("Skipped group %s", group.canonical.path)
                report.skipped += 1
                continue
            path = self.merge(group, report)
            if path is not None:
                report.merged += 1
                report.results.append(path)

        logger.info(
            "Consolidation of %s: %d planned, %d merged, %d skipped, %d failures",
            project,
            report.planned,
            report.merged,
            report.skipped,
            report.failures,
        )
        return report

    def merge(self, group: PendingGroup, report: ConsolidationReport | None = None) -> Path | None:
        """Fold every absorbed note into the canonical one.

        Returns the canonical note's final path, or ``None`` if any step
        failed.  Absorbed notes merged before the failure stay merged.
        """
        report = report if report is not None else ConsolidationReport()
        target = group.canonical.path

        for note in group.absorbed:
            if not self.mutator.append(target, note.body.strip(), note.tags):
                report.failures += 1
                return None
            for alias in (note.title, *note.aliases):
                if alias.strip().lower() != group.canonical.title.lower():
                    self.mutator.add_alias(target, alias)
            if self.mutator.archive(note.path) is None:
                report.failures += 1
                return None
            report.archived += 1

        if title_slug(group.generic_title) != target.stem:
            if group.generic_title.strip().lower() != group.canonical.title.lower():
                self.mutator.add_alias(target, group.canonical.title)
            renamed = self.mutator.rename_to_generic_title(target, group.generic_title)
            if renamed is None:
                report.failures += 1
                return None
            target = renamed
        return target

"""NoteMutator: every write to a topic note goes through here.

Each operation re-reads the note right before changing it and writes it back
atomically through the :class:`~memvault.store.NoteStore`.  Failures come
back as ``False`` / ``None`` and are logged; nothing here raises on a bad
note.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from memvault.aliases import merge_alias
from memvault.errors import PathEscapeError
from memvault.index import ARCHIVE_DIRNAME
from memvault.note import MAX_ALIASES, Note, utc_now
from memvault.slug import title_slug
from memvault.store import NoteStore

logger = logging.getLogger(__name__)

#: Highest numeric suffix tried before a rename or create gives up
MAX_SUFFIX_ATTEMPTS = 100

#: Filename stem used when a title has no matchable characters
FALLBACK_STEM = "untitled"


def entry_header(when: datetime) -> str:
    return f"## Entry: {when.strftime('%Y-%m-%d %H:%M')}"


class NoteMutator:
    """Sole writer of note state."""

    def __init__(
        self,
        store: NoteStore,
        *,
        clock: Callable[[], datetime] = utc_now,
        max_aliases: int = MAX_ALIASES,
    ) -> None:
        self.store = store
        self.clock = clock
        self.max_aliases = max_aliases

    def _now_iso(self) -> str:
        return self.clock().isoformat()

    def _read(self, path: Path) -> Note | None:
        try:
            return self.store.read_note(path)
        except PathEscapeError as exc:
            logger.error("%s", exc)
            return None

    def _write(self, path: Path, note: Note) -> bool:
        try:
            self.store.write_note(path, note)
        except (OSError, PathEscapeError) as exc:
            logger.error("Failed to write note %s: %s", path, exc)
            return False
        return True

    def available_path(self, directory: Path, stem: str) -> Path | None:
        """First free ``stem.md``, ``stem-2.md`` … in *directory*, or ``None``."""
        candidate = directory / f"{stem}.md"
        suffix = 1
        while self.store.exists(candidate):
            suffix += 1
            if suffix > MAX_SUFFIX_ATTEMPTS:
                return None
            candidate = directory / f"{stem}-{suffix}.md"
        return candidate

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(
        self,
        directory: Path,
        title: str,
        content: str,
        *,
        tags: Iterable[str] = (),
        extra: dict[str, Any] | None = None,
    ) -> Path | None:
        """Write a new note named after *title*; returns its path."""
        stem = title_slug(title) or FALLBACK_STEM
        try:
            target = self.available_path(Path(directory), stem)
        except PathEscapeError as exc:
            logger.error("%s", exc)
            return None
        if target is None:
            logger.error("No free filename for %r in %s", stem, directory)
            return None

        now = self._now_iso()
        title = title.strip() or FALLBACK_STEM
        note = Note(
            path=target,
            title=title,
            body=f"\n# {title}\n\n{content.strip()}\n",
            tags=list(dict.fromkeys(tags)),
            entry_count=1,
            created=now,
            updated=now,
            status="active",
            frontmatter=dict(extra or {}),
        )
        try:
            self.store.write_note(target, note, overwrite=False)
        except (OSError, PathEscapeError) as exc:
            logger.error("Failed to create note %s: %s", target, exc)
            return None
        logger.info("Created note %s", target)
        return target

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    def append(self, path: Path, content: str, tags: Iterable[str] = ()) -> bool:
        """Append *content* as a new timestamped entry and merge *tags*.

        ``entry_count`` goes up by exactly one, ``updated`` is refreshed and
        ``created`` plus any unknown frontmatter keys are left alone.
        """
        note = self._read(path)
        if note is None:
            logger.error("Failed to read note for appending: %s", path)
            return False

        now = self.clock()
        note.body = f"{note.body}\n\n---\n\n{entry_header(now)}\n\n{content}"
        note.tags = list(dict.fromkeys([*note.tags, *tags]))
        note.entry_count += 1
        note.updated = now.isoformat()

        if not self._write(path, note):
            return False
        logger.debug("Appended entry %d to %s", note.entry_count, path)
        return True

    # ------------------------------------------------------------------
    # Aliases
    # ------------------------------------------------------------------

    def add_alias(self, path: Path, alias: str) -> bool:
        """Record *alias* on the note; idempotent, bounded by ``max_aliases``."""
        if not isinstance(alias, str) or not alias.strip():
            logger.warning("Cannot add empty alias to %s", path)
            return False
        note = self._read(path)
        if note is None:
            logger.error("Failed to read note for adding alias: %s", path)
            return False

        outcome = merge_alias(note.aliases, alias, self.max_aliases)
        if not outcome.ok:
            logger.warning(
                "Note %s has reached the alias limit (%d)", path, self.max_aliases
            )
            return False
        if not outcome.changed:
            logger.debug("Alias %r already on %s", alias, path)
            return True

        note.aliases = outcome.aliases
        note.updated = self._now_iso()
        return self._write(path, note)

    # ------------------------------------------------------------------
    # Rename
    # ------------------------------------------------------------------

    def rename_to_generic_title(self, path: Path, title: str) -> Path | None:
        """Retitle the note and move it to the matching filename.

        Returns the new path, the original *path* when there is nothing to
        do (empty title or unchanged slug), or ``None`` on failure.
        """
        path = Path(path)
        if not isinstance(title, str) or not title.strip():
            logger.warning("Cannot rename %s to an empty title", path)
            return path

        new_slug = title_slug(title)
        if not new_slug:
            logger.warning("Title %r produced an empty slug; keeping %s", title, path)
            return path
        if new_slug == path.stem:
            return path

        try:
            if not self.store.exists(path):
                logger.error("Note does not exist for renaming: %s", path)
                return None
            target = self.available_path(path.parent, new_slug)
        except PathEscapeError as exc:
            logger.error("%s", exc)
            return None
        if target is None:
            logger.error(
                "No free filename for %r after %d attempts", new_slug, MAX_SUFFIX_ATTEMPTS
            )
            return None

        note = self._read(path)
        if note is None:
            logger.error("Failed to read note for renaming: %s", path)
            return None
        note.title = title.strip()
        note.updated = self._now_iso()
        note.path = target

        try:
            self.store.write_note(target, note, overwrite=False)
        except (OSError, PathEscapeError) as exc:
            logger.error("Failed to write renamed note %s: %s", target, exc)
            return None

        try:
            self.store.remove(path)
        except OSError as exc:
            # The new file is authoritative; a stale copy beats losing data.
            logger.warning("Failed to delete %s after rename: %s", path, exc)

        logger.info("Renamed %s -> %s", path, target)
        return target

    # ------------------------------------------------------------------
    # Archive
    # ------------------------------------------------------------------

    def archive(self, path: Path) -> Path | None:
        """Move the note into its category's ``.archive`` folder."""
        path = Path(path)
        archive_dir = path.parent / ARCHIVE_DIRNAME
        try:
            if not self.store.exists(path):
                logger.error("Note does not exist for archiving: %s", path)
                return None
            target = self.available_path(archive_dir, path.stem)
            if target is None:
                logger.error("No free archive filename for %s", path)
                return None
            self.store.move(path, target)
        except (OSError, PathEscapeError) as exc:
            logger.error("Failed to archive %s: %s", path, exc)
            return None
        logger.info("Archived %s -> %s", path, target)
        return target

"""Storage port for note files.

The matcher, ledger and mutator only talk to a :class:`NoteStore`.
:class:`FileNoteStore` is the on-disk implementation; tests swap in an
in-memory store satisfying the same protocol.
"""

from __future__ import annotations

import logging
import os
import secrets
from pathlib import Path
from typing import Protocol, runtime_checkable

from memvault.errors import FrontmatterError, PathEscapeError
from memvault.note import Note
from memvault.parser import note_from_text, render_note

logger = logging.getLogger(__name__)


@runtime_checkable
class NoteStore(Protocol):
    """Common interface shared by all note stores.

    Every method refuses paths outside :attr:`root` by raising
    :class:`~memvault.errors.PathEscapeError`.
    """

    root: Path

    def is_dir(self, path: Path) -> bool:
        """True when *path* is an existing directory."""
        ...

    def exists(self, path: Path) -> bool:
        """True when *path* is an existing note file."""
        ...

    def list_dir(self, directory: Path) -> list[str]:
        """Names of the regular ``.md`` files directly inside *directory*.

        Raises :class:`OSError` when the directory cannot be read.
        """
        ...

    def read_note(self, path: Path) -> Note | None:
        """Parse the note at *path*; ``None`` if missing, unreadable or malformed."""
        ...

    def write_note(self, path: Path, note: Note, *, overwrite: bool = True) -> None:
        """Atomically write *note* to *path*.

        With ``overwrite=False`` an existing file raises :class:`FileExistsError`.
        """
        ...

    def remove(self, path: Path) -> None:
        """Delete the note file at *path*."""
        ...

    def move(self, src: Path, dst: Path) -> None:
        """Move *src* to *dst*, never replacing an existing file."""
        ...

    def ensure_dir(self, directory: Path) -> None:
        """Create *directory* (and parents) if needed."""
        ...

    def write_text(self, path: Path, content: str) -> None:
        """Write a non-note file such as a project or category index."""
        ...


class FileNoteStore:
    """Note store backed by the local filesystem under *root*."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).expanduser()

    def _contained(self, path: Path) -> Path:
        resolved = Path(path).expanduser().resolve()
        if not resolved.is_relative_to(self.root.resolve()):
            raise PathEscapeError(path, self.root)
        return resolved

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def is_dir(self, path: Path) -> bool:
        return self._contained(path).is_dir()

    def exists(self, path: Path) -> bool:
        return self._contained(path).is_file()

    def list_dir(self, directory: Path) -> list[str]:
        directory = self._contained(directory)
        with os.scandir(directory) as entries:
            return [
                entry.name
                for entry in entries
                if entry.name.endswith(".md") and entry.is_file(follow_symlinks=False)
            ]

    def read_note(self, path: Path) -> Note | None:
        resolved = self._contained(path)
        try:
            content = resolved.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Cannot read note %s: %s", path, exc)
            return None
        try:
            return note_from_text(Path(path), content)
        except FrontmatterError as exc:
            logger.warning("Malformed frontmatter in %s: %s", path, exc)
            return None

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def write_note(self, path: Path, note: Note, *, overwrite: bool = True) -> None:
        target = self._contained(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.parent / f".tmp-{secrets.token_hex(8)}.md"
        try:
            tmp.write_text(render_note(note), encoding="utf-8")
            if not overwrite and target.exists():
                raise FileExistsError(target)
            os.replace(tmp, target)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    def remove(self, path: Path) -> None:
        self._contained(path).unlink()

    def move(self, src: Path, dst: Path) -> None:
        source = self._contained(src)
        target = self._contained(dst)
        if target.exists():
            raise FileExistsError(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        os.rename(source, target)

    def ensure_dir(self, directory: Path) -> None:
        self._contained(directory).mkdir(parents=True, exist_ok=True)

    def write_text(self, path: Path, content: str) -> None:
        target = self._contained(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

"""Shared fixtures: an in-memory NoteStore and a controllable clock."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from memvault.errors import FrontmatterError, PathEscapeError
from memvault.note import Note
from memvault.parser import note_from_text, render_note

ROOT = Path("/vault")


class MemoryNoteStore:
    """NoteStore kept entirely in dictionaries.

    Files map a normalized path to text; directories are tracked explicitly
    so that ``is_dir`` and ``list_dir`` behave like a real filesystem.
    """

    def __init__(self, root: Path = ROOT) -> None:
        self.root = Path(root)
        self.files: dict[Path, str] = {}
        self.dirs: set[Path] = {self.root}
        #: Paths whose writes fail with OSError
        self.fail_writes: set[Path] = set()
        #: Directories whose listing fails with OSError
        self.fail_lists: set[Path] = set()
        #: Paths whose removal fails with OSError
        self.fail_removes: set[Path] = set()

    def _contained(self, path: Path) -> Path:
        normalized = Path(os.path.normpath(Path(path)))
        if not normalized.is_relative_to(self.root):
            raise PathEscapeError(path, self.root)
        return normalized

    def _mkdirs(self, directory: Path) -> None:
        while directory.is_relative_to(self.root) and directory not in self.dirs:
            self.dirs.add(directory)
            directory = directory.parent

    # NoteStore ------------------------------------------------------------

    def is_dir(self, path: Path) -> bool:
        return self._contained(path) in self.dirs

    def exists(self, path: Path) -> bool:
        return self._contained(path) in self.files

    def list_dir(self, directory: Path) -> list[str]:
        directory = self._contained(directory)
        if directory in self.fail_lists:
            raise PermissionError(directory)
        if directory not in self.dirs:
            raise FileNotFoundError(directory)
        return [p.name for p in self.files if p.parent == directory and p.name.endswith(".md")]

    def read_note(self, path: Path) -> Note | None:
        path = self._contained(path)
        if path not in self.files:
            return None
        try:
            return note_from_text(path, self.files[path])
        except FrontmatterError:
            return None

    def write_note(self, path: Path, note: Note, *, overwrite: bool = True) -> None:
        self.write_text(path, render_note(note), overwrite=overwrite)

    def remove(self, path: Path) -> None:
        path = self._contained(path)
        if path not in self.files:
            raise FileNotFoundError(path)
        if path in self.fail_removes:
            raise PermissionError(path)
        del self.files[path]

    def move(self, src: Path, dst: Path) -> None:
        src = self._contained(src)
        dst = self._contained(dst)
        if dst in self.files:
            raise FileExistsError(dst)
        if src not in self.files:
            raise FileNotFoundError(src)
        self._mkdirs(dst.parent)
        self.files[dst] = self.files.pop(src)

    def ensure_dir(self, directory: Path) -> None:
        self._mkdirs(self._contained(directory))

    def write_text(self, path: Path, content: str, *, overwrite: bool = True) -> None:
        path = self._contained(path)
        if path in self.fail_writes:
            raise PermissionError(path)
        if not overwrite and path in self.files:
            raise FileExistsError(path)
        self._mkdirs(path.parent)
        self.files[path] = content

    # Test helpers ----------------------------------------------------------

    def put(self, path: Path | str, content: str) -> Path:
        """Place raw text at *path* (relative paths are under the root)."""
        path = self.root / path
        self.write_text(path, content)
        return path

    def text(self, path: Path | str) -> str:
        return self.files[self._contained(self.root / path)]


class FakeClock:
    """Callable clock that advances one minute per call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(minutes=1)) -> None:
        self.now = start or datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current


@pytest.fixture()
def store() -> MemoryNoteStore:
    return MemoryNoteStore()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


def note_text(title: str, body: str = "Body.", **fields: object) -> str:
    """Minimal note file text with *title* and extra frontmatter *fields*."""
    lines = ["---", f'title: "{title}"']
    for key, value in fields.items():
        if isinstance(value, list):
            rendered = "[" + ", ".join(f'"{v}"' for v in value) + "]"
        else:
            rendered = str(value)
        lines.append(f"{key}: {rendered}")
    lines.append("---")
    return "\n".join(lines) + f"\n\n# {title}\n\n{body}\n"

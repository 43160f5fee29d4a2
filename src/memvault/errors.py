"""Exception hierarchy for memvault.

Most engine operations report failure through ``None`` / ``False`` results so
that automated capture degrades to "create a new note".  The exceptions below
mark the conditions that need caller attention.
"""

from __future__ import annotations

from pathlib import Path


class MemvaultError(Exception):
    """Base class for all memvault errors."""


class PathEscapeError(MemvaultError):
    """A note path resolved outside the permitted storage root."""

    def __init__(self, path: Path | str, root: Path | str) -> None:
        super().__init__(f"Path {path} is outside storage root {root}")
        self.path = Path(path)
        self.root = Path(root)


class FrontmatterError(MemvaultError):
    """A note's metadata block exists but cannot be parsed."""


class InvalidProjectNameError(MemvaultError, ValueError):
    """Project names must be non-empty and free of path separators."""


class ConfigError(MemvaultError):
    """Raised when a configuration file cannot be read or parsed."""

"""Alias ledger: the bounded list of historical titles a note has absorbed."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from memvault.errors import PathEscapeError
from memvault.note import MAX_ALIASES
from memvault.store import NoteStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AliasOutcome:
    """Result of :func:`merge_alias`.

    ``ok`` is False for an empty alias or a full ledger; ``changed`` tells
    whether the note needs rewriting.
    """

    ok: bool
    aliases: list[str]
    changed: bool = False


def merge_alias(aliases: Sequence[str], alias: str, max_aliases: int = MAX_ALIASES) -> AliasOutcome:
    """Add *alias* to *aliases* unless empty, already present, or over the cap."""
    current = list(aliases)
    trimmed = alias.strip() if isinstance(alias, str) else ""
    if not trimmed:
        return AliasOutcome(ok=False, aliases=current)
    lowered = trimmed.lower()
    if any(a.lower() == lowered for a in current):
        return AliasOutcome(ok=True, aliases=current)
    if len(current) >= max_aliases:
        return AliasOutcome(ok=False, aliases=current)
    return AliasOutcome(ok=True, aliases=[*current, trimmed], changed=True)


def read_aliases(store: NoteStore, path: Path) -> list[str]:
    """Aliases recorded in the note at *path*; empty on any read problem."""
    try:
        note = store.read_note(path)
    except (OSError, PathEscapeError) as exc:
        logger.debug("Failed to read aliases from %s: %s", path, exc)
        return []
    if note is None:
        return []
    return list(note.aliases)

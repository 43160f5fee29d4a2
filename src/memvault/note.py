"""Core Note dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

#: Knowledge categories, one folder each inside a project.
CATEGORIES: tuple[str, ...] = (
    "decisions",
    "patterns",
    "errors",
    "research",
    "knowledge",
    "sessions",
    "files",
)

#: Order used to pick the canonical note when a merge spans categories.
CATEGORY_PRIORITY: dict[str, int] = {name: rank for rank, name in enumerate(CATEGORIES)}

STATUSES: tuple[str, ...] = ("active", "superseded", "draft")

#: Upper bound on the aliases a single note may carry.
MAX_ALIASES = 10

#: Frontmatter keys owned by :class:`Note`; everything else is passed through.
_KNOWN_KEYS = ("title", "tags", "aliases", "entry_count", "created", "updated", "status")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _as_str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if not isinstance(value, list):
        return []
    # YAML reads bare years and numbers as scalars; keep them as text.
    items = []
    for v in value:
        if isinstance(v, str):
            items.append(v)
        elif v is not None and not isinstance(v, (dict, list)):
            items.append(_as_text(v))
    return items


@dataclass
class Note:
    """A single topic note inside a project category."""

    path: Path
    title: str
    body: str
    tags: list[str] = field(default_factory=list)
    #: Historical titles absorbed by earlier merges
    aliases: list[str] = field(default_factory=list)
    entry_count: int = 1
    created: str | None = None
    updated: str | None = None
    status: str = "active"
    #: Full frontmatter as read, unknown keys included
    frontmatter: dict[str, Any] = field(default_factory=dict)

    @property
    def slug(self) -> str:
        """Filesystem-stable identifier derived from the filename stem."""
        return self.path.stem

    @property
    def category(self) -> str:
        """Category folder the note lives in."""
        return self.path.parent.name

    @classmethod
    def from_frontmatter(cls, path: Path, meta: dict[str, Any], body: str) -> "Note":
        try:
            entry_count = int(meta.get("entry_count") or 1)
        except (TypeError, ValueError):
            entry_count = 1
        return cls(
            path=path,
            title=_as_text(meta.get("title")) or path.stem,
            body=body,
            tags=list(dict.fromkeys(_as_str_list(meta.get("tags")))),
            aliases=_as_str_list(meta.get("aliases")),
            entry_count=max(entry_count, 1),
            created=_as_text(meta.get("created")),
            updated=_as_text(meta.get("updated")),
            status=_as_text(meta.get("status")) or "active",
            frontmatter=dict(meta),
        )

    def to_frontmatter(self) -> dict[str, Any]:
        """Merge the typed fields back over the original frontmatter.

        Existing keys keep their position; unknown keys are untouched.
        """
        meta = dict(self.frontmatter)
        meta["title"] = self.title
        meta["tags"] = list(self.tags)
        if self.aliases or "aliases" in meta:
            meta["aliases"] = list(self.aliases)
        meta["entry_count"] = self.entry_count
        if self.created is not None:
            meta["created"] = self.created
        if self.updated is not None:
            meta["updated"] = self.updated
        meta["status"] = self.status
        return meta

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "slug": self.slug,
            "category": self.category,
            "title": self.title,
            "tags": self.tags,
            "aliases": self.aliases,
            "entry_count": self.entry_count,
            "created": self.created,
            "updated": self.updated,
            "status": self.status,
            "frontmatter": {k: v for k, v in self.frontmatter.items() if k not in _KNOWN_KEYS},
        }

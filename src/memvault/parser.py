"""YAML-frontmatter reader and writer for topic notes.

Note files look like::

    ---
    title: "Database Connection Pool"
    tags: ["database", "postgres"]
    aliases: ["Database connection timeout handling"]
    entry_count: 3
    created: "2025-01-04T10:12:00+00:00"
    updated: "2025-02-11T08:40:13+00:00"
    status: "active"
    ---

    # Database Connection Pool
    ...

Strings are written double-quoted and arrays as bracketed quoted-string
lists, so every file we produce is plain YAML and round-trips through
:func:`yaml.safe_load`.  Keys we do not know about are written back as read.
"""

from __future__ import annotations

import json
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from memvault.errors import FrontmatterError
from memvault.note import Note

# YAML front-matter block
_FRONTMATTER_RE = re.compile(r"^---[ \t]*\n(.*?)\n---[ \t]*\n", re.DOTALL)


def parse_frontmatter(content: str, *, strict: bool = False) -> tuple[dict[str, Any], str]:
    """Split YAML front-matter from body text.

    Returns ``(metadata_dict, body)``; ``metadata_dict`` is empty when there
    is no front-matter block.  A block that is present but not a YAML mapping
    yields an empty dict, or raises :class:`FrontmatterError` when *strict*.
    """
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return {}, content
    try:
        meta = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        if strict:
            raise FrontmatterError(str(exc)) from exc
        meta = {}
    if not isinstance(meta, dict):
        if strict:
            raise FrontmatterError(f"frontmatter is a {type(meta).__name__}, not a mapping")
        meta = {}
    return meta, content[match.end() :]


def _render_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        # JSON string escapes are a subset of YAML double-quoted escapes.
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_render_value(v) for v in value) + "]"
    return yaml.safe_dump(
        value, default_flow_style=True, sort_keys=False, allow_unicode=True
    ).strip()


def render_frontmatter(meta: dict[str, Any]) -> str:
    """Render *meta* as a ``---`` delimited block (trailing newline included)."""
    lines = ["---"]
    lines.extend(f"{key}: {_render_value(value)}" for key, value in meta.items())
    lines.append("---")
    return "\n".join(lines) + "\n"


def render_note(note: Note) -> str:
    """Serialize *note* to the text stored on disk."""
    return render_frontmatter(note.to_frontmatter()) + note.body


def note_from_text(path: Path, content: str) -> Note:
    """Build a :class:`Note` from raw file text.

    Raises :class:`FrontmatterError` for a malformed metadata block so that
    callers never rewrite a note whose metadata they could not read.
    """
    meta, body = parse_frontmatter(content, strict=True)
    return Note.from_frontmatter(path, meta, body)


def parse_note(path: Path) -> Note:
    """Read a ``.md`` file and return a fully-populated :class:`Note`."""
    return note_from_text(path, path.read_text(encoding="utf-8"))

"""Project folder layout inside the vault.

::

    <vault>/<mem_folder>/projects/<project>/
        <project>.md              project index
        decisions/decisions.md    category index
        decisions/<topic>.md      topic notes
        decisions/.archive/       notes absorbed by consolidation
        ...
        canvases/
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from memvault.config import VaultConfig
from memvault.errors import InvalidProjectNameError
from memvault.index import category_index_name
from memvault.note import CATEGORIES, utc_now
from memvault.parser import render_frontmatter
from memvault.slug import normalize
from memvault.store import NoteStore


def project_slug(name: str) -> str:
    """Validate *name* and return its folder name.

    Raises :class:`InvalidProjectNameError` for empty names, path separators,
    ``..`` or names without a single alphanumeric character.
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidProjectNameError("Project name cannot be empty")
    if ".." in name or "/" in name or "\\" in name:
        raise InvalidProjectNameError(
            f'Invalid project name: "{name}". Path separators and ".." are not allowed.'
        )
    slug = normalize(name)
    if not slug:
        raise InvalidProjectNameError(
            f'Invalid project name: "{name}". Name must contain at least one alphanumeric character.'
        )
    return slug


def project_path(vault: VaultConfig, name: str) -> Path:
    return vault.projects_path / project_slug(name)


def parent_link(mem_folder: str, project: str, category: str | None = None) -> str:
    """Obsidian wikilink to the project index, or to a category index."""
    if category:
        return f"[[{mem_folder}/projects/{project}/{category}/{category}]]"
    return f"[[{mem_folder}/projects/{project}/{project}]]"


def _project_index(slug: str, mem_folder: str, now: datetime) -> str:
    links = "\n".join(
        f"- [[{mem_folder}/projects/{slug}/{cat}/{cat}|{cat.capitalize()}]]" for cat in CATEGORIES
    )
    meta = {"type": "project", "title": slug, "created": now.isoformat(), "status": "active"}
    return render_frontmatter(meta) + f"\n# {slug}\n\n## Categories\n\n{links}\n"


def _category_index(category: str, slug: str, mem_folder: str, now: datetime) -> str:
    meta = {
        "type": "index",
        "title": category.capitalize(),
        "project": slug,
        "created": now.isoformat(),
        "parent": parent_link(mem_folder, slug),
    }
    return (
        render_frontmatter(meta)
        + f"\n# {category.capitalize()}\n\nNotes in this category will be listed below.\n"
    )


def ensure_project_structure(store: NoteStore, vault: VaultConfig, name: str) -> Path:
    """Create the project folder, category folders and index notes if missing.

    Existing index files are never rewritten.  Returns the project path.
    """
    slug = project_slug(name)
    root = vault.projects_path / slug
    now = utc_now()

    store.ensure_dir(root)
    project_index = root / f"{slug}.md"
    if not store.exists(project_index):
        store.write_text(project_index, _project_index(slug, vault.mem_folder, now))

    for category in CATEGORIES:
        directory = root / category
        store.ensure_dir(directory)
        index = directory / category_index_name(category)
        if not store.exists(index):
            store.write_text(index, _category_index(category, slug, vault.mem_folder, now))

    store.ensure_dir(root / "canvases")
    return root

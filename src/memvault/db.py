"""TopicDB — SQL reporting over a project's topic notes.

Uses DuckDB (in-memory) as a query engine over note metadata and returns
:mod:`polars` DataFrames.

Usage::

    index = ProjectIndex(store, project_path)
    index.build()
    db = TopicDB(index)

    df = db.query("SELECT slug, entry_count FROM notes WHERE category = 'errors'")
    recent = db.recent("decisions", limit=5)
    merged = db.most_merged(10)
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import duckdb
import polars as pl

from memvault.note import CATEGORIES

if TYPE_CHECKING:
    from memvault.index import ProjectIndex

_ORDER_COLUMNS = ("updated", "created", "title", "slug", "category", "entry_count")


class TopicDB:
    """In-memory DuckDB database over the notes of one project."""

    def __init__(self, index: "ProjectIndex") -> None:
        self.conn: duckdb.DuckDBPyConnection = duckdb.connect(":memory:")
        self.refresh(index)

    # ------------------------------------------------------------------
    # Build / refresh
    # ------------------------------------------------------------------

    def refresh(self, index: "ProjectIndex") -> None:
        """(Re-)populate the database from *index* (call after index rebuild)."""
        self._index = index
        self._create_schema()
        self._load_notes()

    def _create_schema(self) -> None:
        self.conn.execute("""
            CREATE OR REPLACE TABLE notes (
                path        VARCHAR PRIMARY KEY,
                slug        VARCHAR,
                category    VARCHAR,
                title       VARCHAR,
                body        TEXT,
                tags        VARCHAR[],
                aliases     VARCHAR[],
                entry_count INTEGER,
                created     VARCHAR,
                updated     VARCHAR,
                status      VARCHAR,
                frontmatter JSON
            )
        """)

    def _load_notes(self) -> None:
        rows = [
            (
                str(note.path),
                note.slug,
                note.category,
                note.title,
                note.body,
                note.tags,
                note.aliases,
                note.entry_count,
                note.created,
                note.updated,
                note.status,
                json.dumps(note.frontmatter, default=str),
            )
            for note in self._index.notes.values()
        ]
        if rows:
            self.conn.executemany(
                "INSERT OR REPLACE INTO notes VALUES (?,?,?,?,?,?,?,?,?,?,?,?)", rows
            )

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(self, sql: str) -> pl.DataFrame:
        """Run a raw SQL query and return a Polars DataFrame."""
        return self.conn.execute(sql).pl()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def table_view(
        self,
        *,
        category: str | None = None,
        status: str | None = None,
        order_by: str = "updated",
    ) -> pl.DataFrame:
        """Notes as a DataFrame, newest first when ordered by a date column.

        Parameters
        ----------
        category:
            Only include notes of this category.
        status:
            Only include notes with this status.
        order_by:
            One of ``updated``, ``created``, ``title``, ``slug``,
            ``category`` or ``entry_count``.
        """
        if order_by not in _ORDER_COLUMNS:
            raise ValueError(f"Cannot order by {order_by!r}; choose from {_ORDER_COLUMNS}")
        where_clauses: list[str] = []
        params: list[str] = []
        if category:
            where_clauses.append("category = ?")
            params.append(category)
        if status:
            where_clauses.append("status = ?")
            params.append(status)

        where = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        direction = "ASC" if order_by in ("title", "slug", "category") else "DESC"
        sql = f"""
            SELECT slug, category, title, tags, entry_count, created, updated, status
            FROM notes {where}
            ORDER BY {order_by} {direction} NULLS LAST, path
        """
        return self.conn.execute(sql, params).pl()

    def recent(self, category: str, limit: int = 5) -> pl.DataFrame:
        """The *limit* most recently updated notes of *category*."""
        return self.conn.execute(
            f"""
            SELECT slug, title, updated, entry_count
            FROM notes
            WHERE category = ?
            ORDER BY updated DESC NULLS LAST, path
            LIMIT {int(limit)}
            """,
            [category],
        ).pl()

    def category_counts(self) -> pl.DataFrame:
        """Note count per category, every category listed."""
        counts = dict(
            self.conn.execute(
                "SELECT category, COUNT(*) FROM notes GROUP BY category"
            ).fetchall()
        )
        return pl.DataFrame(
            {
                "category": list(CATEGORIES),
                "note_count": [int(counts.get(c, 0)) for c in CATEGORIES],
            }
        )

    def most_merged(self, limit: int = 10) -> pl.DataFrame:
        """Notes that absorbed the most entries or titles."""
        return self.conn.execute(
            f"""
            SELECT slug, category, title, entry_count, len(aliases) AS alias_count
            FROM notes
            WHERE entry_count > 1 OR len(aliases) > 0
            ORDER BY entry_count DESC, alias_count DESC, path
            LIMIT {int(limit)}
            """
        ).pl()

    def tag_counts(self) -> pl.DataFrame:
        """Return a tag → count table sorted by frequency."""
        return self.conn.execute(
            """
            SELECT tag, COUNT(*) AS note_count
            FROM (SELECT unnest(tags) AS tag FROM notes)
            GROUP BY tag
            ORDER BY note_count DESC, tag
            """
        ).pl()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "TopicDB":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

"""Unit tests for memvault.index."""

from pathlib import Path

import pytest

from conftest import note_text
from memvault.errors import PathEscapeError
from memvault.index import ProjectIndex, scan_category, scan_project

PROJECT = Path("/vault/_claude-mem/projects/demo")


@pytest.fixture()
def project(store):
    store.put(PROJECT / "errors" / "errors.md", "---\ntype: index\n---\n")
    store.put(PROJECT / "errors" / "zeta-failure.md", note_text("Zeta Failure", "Retry storm in zeta."))
    store.put(PROJECT / "errors" / "alpha-timeout.md", note_text("Alpha Timeout", "Connection pool timeout."))
    store.put(PROJECT / "errors" / ".hidden.md", note_text("Hidden"))
    store.put(PROJECT / "errors" / ".archive" / "old.md", note_text("Old"))
    store.put(
        PROJECT / "decisions" / "connection-pool-sizing.md",
        note_text("Connection Pool Sizing", "Pool of 20. The pool is shared; pool size matters."),
    )
    store.put(PROJECT / "decisions" / "broken.md", "---\ntitle: [oops\n---\n")
    return PROJECT


# ---------------------------------------------------------------------------
# scan_category / scan_project
# ---------------------------------------------------------------------------


class TestScan:
    def test_sorted_and_filtered(self, store, project):
        cands = scan_category(store, project, "errors")
        assert [c.slug for c in cands] == ["alpha-timeout", "zeta-failure"]
        assert all(c.category == "errors" for c in cands)
        assert all(c.aliases is None for c in cands)

    def test_missing_category(self, store, project):
        assert scan_category(store, project, "research") == []

    def test_unreadable_category(self, store, project):
        store.fail_lists.add(project / "errors")
        assert scan_category(store, project, "errors") == []

    def test_escape_propagates(self, store):
        with pytest.raises(PathEscapeError):
            scan_category(store, Path("/elsewhere"), "errors")

    def test_project_concatenates_in_category_order(self, store, project):
        cands = scan_project(store, project)
        assert [c.category for c in cands] == ["decisions", "decisions", "errors", "errors"]

    def test_project_subset(self, store, project):
        cands = scan_project(store, project, ["errors"])
        assert {c.category for c in cands} == {"errors"}


# ---------------------------------------------------------------------------
# ProjectIndex
# ---------------------------------------------------------------------------


class TestProjectIndex:
    def test_build_skips_unreadable(self, store, project):
        index = ProjectIndex(store, project)
        index.build()
        assert sorted(Path(p).stem for p in index.notes) == [
            "alpha-timeout",
            "connection-pool-sizing",
            "zeta-failure",
        ]

    def test_notes_in(self, store, project):
        index = ProjectIndex(store, project)
        index.build()
        assert [n.slug for n in index.notes_in("decisions")] == ["connection-pool-sizing"]

    def test_search_ranks_title_overlap_first(self, store, project):
        index = ProjectIndex(store, project)
        index.build()
        results = index.search("connection pool")
        assert results[0].title == "Connection Pool Sizing"
        assert results[0].category == "decisions"
        assert "alpha-timeout" in {r.path.stem for r in results}

    def test_search_scores_are_sorted(self, store, project):
        index = ProjectIndex(store, project)
        index.build()
        scores = [r.score for r in index.search("pool")]
        assert scores == sorted(scores, reverse=True)

    def test_search_no_hits(self, store, project):
        index = ProjectIndex(store, project)
        index.build()
        assert index.search("kubernetes") == []
        assert index.search("   ") == []

    def test_search_limit(self, store, project):
        index = ProjectIndex(store, project)
        index.build()
        assert len(index.search("pool", limit=1)) == 1

    def test_snippet_around_hit(self, store, project):
        index = ProjectIndex(store, project)
        index.build()
        [hit] = [r for r in index.search("retry storm")]
        assert "Retry storm" in hit.snippet

"""Unit tests for memvault.capture.KnowledgeWriter."""

import json
from pathlib import Path

import pytest

from conftest import note_text
from memvault.capture import KnowledgeItem, KnowledgeWriter
from memvault.config import AIConfig, Config, DedupConfig, VaultConfig
from memvault.errors import InvalidProjectNameError
from memvault.mutator import NoteMutator
from memvault.semantic import SemanticMatcher

PROJECT = Path("/vault/_claude-mem/projects/demo")


def _config(**dedup) -> Config:
    return Config(
        vault=VaultConfig(path=Path("/vault"), mem_folder="_claude-mem"),
        deduplication=DedupConfig(**dedup),
    )


@pytest.fixture()
def writer(store, clock) -> KnowledgeWriter:
    return KnowledgeWriter(store, _config(), mutator=NoteMutator(store, clock=clock))


class TestCreate:
    def test_first_item_creates_note_and_structure(self, store, writer):
        result = writer.write("demo", KnowledgeItem("Redis Cache Eviction", "Use LRU.", "patterns"))
        assert result.action == "created"
        assert result.path == PROJECT / "patterns" / "redis-cache-eviction.md"
        assert result.tier is None
        assert store.exists(PROJECT / "demo.md")
        assert store.exists(PROJECT / "patterns" / "patterns.md")

    def test_unknown_category_falls_back(self, writer):
        result = writer.write("demo", KnowledgeItem("Something New", "x", "gossip"))
        assert result.category == "knowledge"
        assert result.path.parent.name == "knowledge"

    def test_blank_title(self, writer):
        assert writer.write("demo", KnowledgeItem("   ", "x")) is None

    def test_bad_project_name(self, writer):
        with pytest.raises(InvalidProjectNameError):
            writer.write("../escape", KnowledgeItem("Title Here", "x"))

    def test_dedup_disabled_always_creates(self, store, clock):
        writer = KnowledgeWriter(store, _config(enabled=False), mutator=NoteMutator(store, clock=clock))
        first = writer.write("demo", KnowledgeItem("Auth Bug", "one", "errors"))
        second = writer.write("demo", KnowledgeItem("Auth Bug", "two", "errors"))
        assert second.action == "created"
        assert second.path == first.path.with_name("auth-bug-2.md")


class TestMerge:
    def test_exact_title_merges(self, store, writer):
        first = writer.write("demo", KnowledgeItem("Authentication Bug", "Token expired.", "errors", ["auth"]))
        second = writer.write("demo", KnowledgeItem("authentication bug", "Clock skew.", "errors", ["jwt"]))
        assert second.action == "merged"
        assert second.tier == "exact"
        assert second.path == first.path
        note = store.read_note(first.path)
        assert note.entry_count == 2
        assert note.tags == ["auth", "jwt"]
        assert "Clock skew." in note.body
        # Same slug: nothing new to remember as an alias.
        assert note.aliases == []

    def test_similar_title_merges_with_alias(self, store, writer):
        writer.write("demo", KnowledgeItem("Database Connection Pool Sizing", "Use 20.", "decisions"))
        result = writer.write("demo", KnowledgeItem("Connection Pool Sizing Database", "Or 30.", "decisions"))
        assert result.action == "merged"
        assert result.tier == "threshold"
        note = store.read_note(result.path)
        assert note.aliases == ["Connection Pool Sizing Database"]

    def test_cross_category_merge_reports_target_category(self, store, writer):
        writer.write("demo", KnowledgeItem("Authentication Bug", "x", "errors"))
        result = writer.write("demo", KnowledgeItem("Authentication Bug", "y", "decisions"))
        assert result.action == "merged"
        assert result.category == "errors"

    def test_in_category_only(self, store, clock):
        writer = KnowledgeWriter(
            store, _config(cross_category=False), mutator=NoteMutator(store, clock=clock)
        )
        writer.write("demo", KnowledgeItem("Authentication Bug", "x", "errors"))
        result = writer.write("demo", KnowledgeItem("Authentication Bug", "y", "decisions"))
        assert result.action == "created"
        assert result.category == "decisions"

    def test_alias_match_after_canonicalization(self, store, writer):
        store.put(
            PROJECT / "errors" / "database-connection-pool.md",
            note_text("Database Connection Pool", aliases=["Database Connection Timeout Handling"]),
        )
        result = writer.write(
            "demo", KnowledgeItem("Database Connection Timeout Handling", "Again.", "errors")
        )
        assert result.action == "merged"
        assert result.tier == "alias"

    def test_append_failure_does_not_create_duplicate(self, store, writer):
        first = writer.write("demo", KnowledgeItem("Authentication Bug", "x", "errors"))
        store.fail_writes.add(first.path)
        assert writer.write("demo", KnowledgeItem("Authentication Bug", "y", "errors")) is None
        assert not store.exists(first.path.with_name("authentication-bug-2.md"))

    def test_batch_merges_later_items_into_earlier(self, writer):
        results = writer.write_batch(
            "demo",
            [
                KnowledgeItem("Retry Storm", "a", "errors"),
                KnowledgeItem("Unrelated Thing", "b", "errors"),
                KnowledgeItem("retry storm", "c", "errors"),
            ],
        )
        assert [r.action for r in results] == ["created", "created", "merged"]
        assert results[2].path == results[0].path


class TestSemanticMerge:
    def _writer(self, store, clock, reply, **ai):
        runner_calls = []

        def runner(prompt):
            runner_calls.append(prompt)
            return json.dumps(reply)

        config = Config(
            vault=VaultConfig(path=Path("/vault"), mem_folder="_claude-mem"),
            ai=AIConfig(**ai),
        )
        semantic = SemanticMatcher(config.ai, runner=runner)
        writer = KnowledgeWriter(store, config, semantic=semantic, mutator=NoteMutator(store, clock=clock))
        return writer, runner_calls

    def test_high_confidence_merges_and_renames(self, store, clock):
        reply = {"match": {"index": 0, "confidence": "high"}, "genericTitle": "Login Failures"}
        writer, calls = self._writer(store, clock, reply)
        writer.write("demo", KnowledgeItem("Expired JWT Rejected", "x", "errors"))
        result = writer.write("demo", KnowledgeItem("Session Token Invalid", "y", "errors"))
        assert result.action == "merged"
        assert result.tier == "semantic"
        assert result.path == PROJECT / "errors" / "login-failures.md"
        note = store.read_note(result.path)
        assert note.title == "Login Failures"
        assert note.entry_count == 2
        assert set(note.aliases) == {"Session Token Invalid", "Expired JWT Rejected"}
        assert not store.exists(PROJECT / "errors" / "expired-jwt-rejected.md")
        assert len(calls) == 1

    @pytest.mark.parametrize("confidence", ["medium", "low"])
    def test_lower_confidence_creates(self, store, clock, confidence):
        reply = {"match": {"index": 0, "confidence": confidence}, "genericTitle": "Login Failures"}
        writer, _ = self._writer(store, clock, reply)
        writer.write("demo", KnowledgeItem("Expired JWT Rejected", "x", "errors"))
        result = writer.write("demo", KnowledgeItem("Session Token Invalid", "y", "errors"))
        assert result.action == "created"

    def test_ai_disabled_never_asks(self, store, clock):
        reply = {"match": {"index": 0, "confidence": "high"}, "genericTitle": "Login Failures"}
        writer, calls = self._writer(store, clock, reply, enabled=False)
        writer.write("demo", KnowledgeItem("Expired JWT Rejected", "x", "errors"))
        writer.write("demo", KnowledgeItem("Session Token Invalid", "y", "errors"))
        assert calls == []

    def test_deterministic_match_skips_semantic(self, store, clock):
        reply = {"match": {"index": 0, "confidence": "high"}, "genericTitle": "Other"}
        writer, calls = self._writer(store, clock, reply)
        writer.write("demo", KnowledgeItem("Authentication Bug", "x", "errors"))
        writer.write("demo", KnowledgeItem("Authentication Bug", "y", "errors"))
        assert calls == []

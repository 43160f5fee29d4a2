"""End-to-end tests for the memvault CLI against a temporary vault."""

from pathlib import Path

import pytest

from memvault.cli import main


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(
        f'[vault]\npath = "{tmp_path / "vault"}"\nmem_folder = "_mem"\n\n'
        f'[ai]\nenabled = false\n\n[logging]\nlog_dir = "{tmp_path / "logs"}"\n',
        encoding="utf-8",
    )
    return path


@pytest.fixture()
def run(config_file, capsys):
    def _run(*argv: str) -> tuple[int, str]:
        code = main(["--config", str(config_file), *argv])
        return code, capsys.readouterr().out

    return _run


def _project(tmp_path: Path) -> Path:
    return tmp_path / "vault" / "_mem" / "projects" / "demo"


class TestCli:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 2
        assert "usage" in capsys.readouterr().out.lower()

    def test_init(self, run, tmp_path):
        code, out = run("init", "demo")
        assert code == 0
        assert (_project(tmp_path) / "demo.md").is_file()
        assert (_project(tmp_path) / "errors" / "errors.md").is_file()

    def test_capture_then_merge(self, run, tmp_path):
        code, out = run("capture", "demo", "--title", "Authentication Bug", "--content", "one", "--category", "errors")
        assert code == 0
        assert out.startswith("Created")
        code, out = run("capture", "demo", "--title", "authentication bug", "--content", "two", "--tag", "auth")
        assert code == 0
        assert out.startswith("Merged (exact)")
        text = (_project(tmp_path) / "errors" / "authentication-bug.md").read_text(encoding="utf-8")
        assert "entry_count: 2" in text
        assert "two" in text

    def test_match(self, run):
        run("capture", "demo", "--title", "Database Connection Pool", "--content", "x", "--category", "patterns")
        code, out = run("match", "demo", "Connection Pool Database")
        assert code == 0
        assert "[patterns] threshold" in out
        code, _ = run("match", "demo", "Redis", "--category", "patterns")
        assert code == 1

    def test_consolidate_dry_run_then_yes(self, run, tmp_path):
        project = _project(tmp_path)
        run("capture", "demo", "--title", "Retry Storm", "--content", "a", "--category", "errors")
        run("init", "demo")
        # A duplicate written by hand into another category.
        (project / "research" / "retry-storm.md").write_text(
            '---\ntitle: "Retry Storm"\n---\n\n# Retry Storm\n\nb\n', encoding="utf-8"
        )
        code, out = run("consolidate", "demo", "--dry-run")
        assert code == 0
        assert "1 group(s) would be merged" in out
        assert (project / "research" / "retry-storm.md").exists()

        code, out = run("consolidate", "demo", "--yes")
        assert code == 0
        assert "Groups merged:   1" in out
        assert (project / "research" / ".archive" / "retry-storm.md").exists()

    def test_consolidate_declined(self, run, tmp_path, monkeypatch):
        project = _project(tmp_path)
        run("capture", "demo", "--title", "Retry Storm", "--content", "a", "--category", "errors")
        (project / "research" / "retry-storm.md").write_text(
            '---\ntitle: "Retry Storm"\n---\nb\n', encoding="utf-8"
        )
        monkeypatch.setattr("builtins.input", lambda prompt="": "n")
        code, out = run("consolidate", "demo")
        assert "Groups skipped:  1" in out
        assert (project / "research" / "retry-storm.md").exists()

    def test_list_and_search(self, run):
        run("capture", "demo", "--title", "Redis Cache Eviction", "--content", "LRU wins", "--category", "patterns")
        code, out = run("list", "demo")
        assert code == 0
        assert "[patterns] redis-cache-eviction" in out
        code, out = run("search", "demo", "redis cache")
        assert code == 0
        assert "Redis Cache Eviction" in out
        code, out = run("search", "demo", "kubernetes")
        assert code == 1

    def test_bad_project_name(self, run, capsys):
        code, _ = run("init", "../evil")
        assert code == 1

    def test_writes_log_file(self, run, tmp_path):
        run("-v", "init", "demo")
        assert (tmp_path / "logs" / "memvault.log").is_file()

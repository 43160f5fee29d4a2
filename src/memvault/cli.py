"""memvault command line: topic dedup and consolidation for a markdown knowledge vault.

Usage:
    memvault init my-app
    memvault match my-app "Database connection timeout" [--category errors]
    memvault capture my-app --title "..." --content "..." [--category decisions] [--tag db]
    memvault consolidate my-app [--dry-run] [--yes] [--ai]
    memvault list my-app [--category errors] [--limit 20]
    memvault search my-app "connection pool"
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from memvault.capture import KnowledgeItem, KnowledgeWriter
from memvault.config import Config, load_config
from memvault.consolidate import ConsolidationReport, Consolidator, PendingGroup
from memvault.db import TopicDB
from memvault.errors import MemvaultError
from memvault.index import ProjectIndex
from memvault.layout import ensure_project_structure, project_path
from memvault.log import setup_logging
from memvault.matcher import find_across_categories, find_in_category
from memvault.note import CATEGORIES
from memvault.semantic import SemanticMatcher
from memvault.store import FileNoteStore

logger = logging.getLogger(__name__)


def _store(config: Config) -> FileNoteStore:
    return FileNoteStore(config.vault.path)


def _semantic(config: Config, enabled: bool) -> SemanticMatcher | None:
    if not enabled or not config.ai.enabled:
        return None
    return SemanticMatcher(config.ai)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_init(args, config: Config) -> int:
    path = ensure_project_structure(_store(config), config.vault, args.project)
    print(f"Project ready at {path}")
    return 0


def cmd_match(args, config: Config) -> int:
    store = _store(config)
    root = project_path(config.vault, args.project)
    threshold = args.threshold if args.threshold is not None else config.deduplication.threshold
    gray_zone = config.deduplication.gray_zone
    if args.category:
        match = find_in_category(
            store, root, args.category, args.title, threshold, gray_zone=gray_zone
        )
    else:
        match = find_across_categories(store, root, args.title, threshold, gray_zone=gray_zone)
    if match is None:
        print(f'No existing topic for "{args.title}"')
        return 1
    print(f"{match.path}  [{match.category}] {match.tier} {match.score:.2f}")
    return 0


def cmd_capture(args, config: Config) -> int:
    writer = KnowledgeWriter(_store(config), config, semantic=_semantic(config, args.ai))
    item = KnowledgeItem(
        title=args.title,
        content=args.content,
        category=args.category,
        tags=tuple(args.tag or ()),
    )
    result = writer.write(args.project, item)
    if result is None:
        print("ERROR: nothing was written; see the log for details", file=sys.stderr)
        return 1
    suffix = f" ({result.tier})" if result.tier else ""
    print(f"{result.action.capitalize()}{suffix}: {result.path}")
    return 0


def _describe(group: PendingGroup) -> str:
    lines = [f'"{group.generic_title}" <- {group.canonical.category}/{group.canonical.slug}']
    lines.extend(f"    + {note.category}/{note.slug}" for note in group.absorbed)
    return "\n".join(lines)


def _ask(group: PendingGroup) -> bool:
    print(_describe(group))
    try:
        answer = input("  Merge this group? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def cmd_consolidate(args, config: Config) -> int:
    consolidator = Consolidator(_store(config), config, semantic=_semantic(config, args.ai))
    report: ConsolidationReport = consolidator.run(
        args.project,
        dry_run=args.dry_run,
        confirm=None if args.yes else _ask,
        use_ai=args.ai,
    )
    if report.dry_run:
        for group in report.groups:
            print(_describe(group))
        print(f"\n{report.planned} group(s) would be merged (dry run)")
        return 0

    print("\nConsolidation complete:")
    print(f"  Groups planned:  {report.planned}")
    print(f"  Groups merged:   {report.merged}")
    print(f"  Groups skipped:  {report.skipped}")
    print(f"  Notes archived:  {report.archived}")
    print(f"  Failures:        {report.failures}")
    return 1 if report.failures else 0


def _index(config: Config, project: str) -> ProjectIndex:
    index = ProjectIndex(_store(config), project_path(config.vault, project))
    index.build()
    return index


def cmd_list(args, config: Config) -> int:
    with TopicDB(_index(config, args.project)) as db:
        df = db.table_view(category=args.category).head(args.limit)
    if df.is_empty():
        print("No notes.")
        return 0
    for row in df.iter_rows(named=True):
        print(f"[{row['category']}] {row['slug']}  ({row['entry_count']} entries)  {row['title']}")
    return 0


def cmd_search(args, config: Config) -> int:
    results = _index(config, args.project).search(args.query, limit=args.limit)
    if not results:
        print(f'No results for "{args.query}"')
        return 1
    for r in results:
        print(f"{r.score:5.1f}  [{r.category}] {r.title}\n       {r.path}\n       {r.snippet}")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memvault",
        description="Topic dedup and consolidation for a markdown knowledge vault",
    )
    parser.add_argument("--config", type=Path, help="Config file (default: $MEMVAULT_CONFIG or ~/.memvault/config.toml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser("init", help="Create the project folders and index notes")
    init_parser.add_argument("project")

    match_parser = subparsers.add_parser("match", help="Find the existing topic a title belongs to")
    match_parser.add_argument("project")
    match_parser.add_argument("title")
    match_parser.add_argument("--category", choices=CATEGORIES, help="Only look in this category")
    match_parser.add_argument("--threshold", type=float, help="Similarity threshold (default: from config)")

    capture_parser = subparsers.add_parser("capture", help="Write knowledge, merging into a matching topic")
    capture_parser.add_argument("project")
    capture_parser.add_argument("--title", required=True)
    capture_parser.add_argument("--content", required=True)
    capture_parser.add_argument("--category", default="knowledge", choices=CATEGORIES)
    capture_parser.add_argument("--tag", action="append", help="Tag (repeatable)")
    capture_parser.add_argument("--ai", action="store_true", help="Ask the model when no deterministic match")

    consolidate_parser = subparsers.add_parser("consolidate", help="Merge duplicate topic notes")
    consolidate_parser.add_argument("project")
    consolidate_parser.add_argument("--dry-run", action="store_true", help="Only show the planned groups")
    consolidate_parser.add_argument("--yes", action="store_true", help="Merge without asking per group")
    consolidate_parser.add_argument("--ai", action="store_true", help="Group notes with the model")

    list_parser = subparsers.add_parser("list", help="List topic notes, most recently updated first")
    list_parser.add_argument("project")
    list_parser.add_argument("--category", choices=CATEGORIES)
    list_parser.add_argument("--limit", type=int, default=20, help="Max notes (default: 20)")

    search_parser = subparsers.add_parser("search", help="Search note titles and content")
    search_parser.add_argument("project")
    search_parser.add_argument("query")
    search_parser.add_argument("--limit", type=int, default=10, help="Max results (default: 10)")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    commands = {
        "init": cmd_init,
        "match": cmd_match,
        "capture": cmd_capture,
        "consolidate": cmd_consolidate,
        "list": cmd_list,
        "search": cmd_search,
    }
    if args.command not in commands:
        parser.print_help()
        return 2

    config = load_config(args.config)
    if args.verbose:
        config = dataclasses.replace(
            config, logging=dataclasses.replace(config.logging, verbose=True)
        )
    setup_logging(config.logging)

    try:
        return commands[args.command](args, config)
    except MemvaultError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

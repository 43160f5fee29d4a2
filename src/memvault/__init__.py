"""memvault: topic dedup and consolidation for a markdown knowledge vault."""

from memvault.capture import CaptureResult, KnowledgeItem, KnowledgeWriter
from memvault.config import Config, get_config, load_config
from memvault.consolidate import ConsolidationReport, Consolidator, PendingGroup
from memvault.db import TopicDB
from memvault.index import ProjectIndex
from memvault.matcher import TopicMatch, find_across_categories, find_in_category, find_match
from memvault.mutator import NoteMutator
from memvault.note import Note
from memvault.parser import parse_note
from memvault.semantic import SemanticMatcher
from memvault.slug import normalize, tokenize
from memvault.store import FileNoteStore, NoteStore

__all__ = [
    "Note",
    "parse_note",
    "normalize",
    "tokenize",
    "NoteStore",
    "FileNoteStore",
    "TopicMatch",
    "find_match",
    "find_in_category",
    "find_across_categories",
    "NoteMutator",
    "SemanticMatcher",
    "KnowledgeItem",
    "KnowledgeWriter",
    "CaptureResult",
    "Consolidator",
    "ConsolidationReport",
    "PendingGroup",
    "ProjectIndex",
    "TopicDB",
    "Config",
    "get_config",
    "load_config",
]

"""Semantic matching delegated to the ``claude`` CLI.

Used when the deterministic tiers are inconclusive, or when a user asks for
AI-assisted consolidation.  The external process only ever sees titles and
categories; it answers with JSON that is decoded against strict models
before any field is trusted.  Every failure (disabled, spawn error, timeout,
non-zero exit, bad JSON, out-of-range index) means "no opinion": this module
never raises to its callers and never guesses a match.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from memvault.config import AIConfig, validate_model

logger = logging.getLogger(__name__)

#: Set in the child's environment so the assistant's hooks skip our own calls
AGENT_SESSION_MARKER = "CC_MEM_AGENT_SESSION"

MAX_TITLE_LENGTH = 100

Confidence = Literal["high", "medium", "low"]

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

M = TypeVar("M", bound=BaseModel)


# ---------------------------------------------------------------------------
# Public result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NoteInfo:
    """What the external process is told about a note."""

    path: Path
    title: str
    category: str


@dataclass(frozen=True)
class SemanticMatch:
    path: Path
    category: str
    title: str
    confidence: Confidence
    generic_title: str


@dataclass(frozen=True)
class DuplicateGroup:
    #: Positions in the list passed to :meth:`SemanticMatcher.group_all`
    indices: tuple[int, ...]
    notes: tuple[NoteInfo, ...]
    generic_title: str


# ---------------------------------------------------------------------------
# Reply schemas
# ---------------------------------------------------------------------------


class _Reply(BaseModel):
    model_config = ConfigDict(strict=True)


class MatchChoice(_Reply):
    index: int | None
    confidence: Confidence


class MatchReply(_Reply):
    match: MatchChoice
    generic_title: str = Field(alias="genericTitle")


class GroupsReply(_Reply):
    groups: list[list[int]]
    generic_titles: list[str] = Field(alias="genericTitles")


class TitleReply(_Reply):
    generic_title: str = Field(alias="genericTitle")


@dataclass(frozen=True)
class Ok(Generic[M]):
    value: M


@dataclass(frozen=True)
class Err:
    reason: str


def extract_json(raw: str) -> str:
    """Strip a Markdown code fence around the reply, if there is one."""
    text = raw.strip()
    fenced = _FENCE_RE.search(text)
    return fenced.group(1).strip() if fenced else text


def decode_reply(raw: str, model: type[M]) -> Ok[M] | Err:
    """Validate *raw* against *model*; never raises."""
    try:
        return Ok(model.model_validate_json(extract_json(raw)))
    except ValidationError as exc:
        return Err(f"{model.__name__}: {exc.error_count()} validation error(s): {exc.errors()[0]['msg']}")


def clean_title(value: str) -> str | None:
    """Trimmed title capped at :data:`MAX_TITLE_LENGTH`, or ``None`` if empty."""
    trimmed = value.strip()
    if not trimmed:
        return None
    return trimmed[:MAX_TITLE_LENGTH].strip()


# ---------------------------------------------------------------------------
# Process runner
# ---------------------------------------------------------------------------

Runner = Callable[[str], str | None]


class ClaudeRunner:
    """Runs ``claude -p`` with the prompt on stdin and returns its stdout."""

    def __init__(self, config: AIConfig) -> None:
        self.command = config.command
        self.model = validate_model(config.model)
        self.timeout = config.timeout

    def argv(self) -> list[str]:
        return [
            self.command,
            "-p",
            "-",
            "--model",
            self.model,
            "--no-session-persistence",
            "--output-format",
            "text",
        ]

    def __call__(self, prompt: str) -> str | None:
        env = {**os.environ, AGENT_SESSION_MARKER: "1"}
        try:
            # subprocess.run kills the child when the timeout expires.
            result = subprocess.run(
                self.argv(),
                input=prompt,
                capture_output=True,
                text=True,
                encoding="utf-8",
                timeout=self.timeout,
                env=env,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.debug("%s timed out after %.0fs", self.command, self.timeout)
            return None
        except UnicodeDecodeError as exc:
            logger.debug("%s wrote undecodable output: %s", self.command, exc)
            return None
        except OSError as exc:
            logger.debug("Failed to spawn %s: %s", self.command, exc)
            return None
        if result.returncode != 0:
            logger.debug(
                "%s exited with %d: %s", self.command, result.returncode, result.stderr.strip()[:500]
            )
            return None
        return result.stdout


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


def _numbered(notes: Sequence[NoteInfo]) -> str:
    return "\n".join(f'{i}. [{n.category}] "{n.title}"' for i, n in enumerate(notes))


def match_prompt(title: str, notes: Sequence[NoteInfo]) -> str:
    return f"""You are analyzing note titles for semantic similarity.

NEW TITLE: "{title}"

EXISTING NOTES (0-indexed):
{_numbered(notes)}

Respond with JSON only:
{{"match": {{"index": <0-based number or null>, "confidence": "high"|"medium"|"low"}}, "genericTitle": "<suggested generic title>"}}

Rules:
- Return the 0-based index (0 for the first note, 1 for the second, etc.)
- high: Same topic, just different wording
- medium: Related topic, could reasonably be combined
- low: Different topics
- null index if no match"""


def groups_prompt(notes: Sequence[NoteInfo]) -> str:
    return f"""Group these notes by semantic similarity (same topic, different wording).

NOTES (0-indexed):
{_numbered(notes)}

Only group notes that cover the same topic. Leave unrelated notes out.

Respond with JSON only, using 0-based indices:
{{"groups": [[0, 2, 4], [1, 3]], "genericTitles": ["Title for group 1", "Title for group 2"]}}"""


def title_prompt(titles: Sequence[str]) -> str:
    listing = "\n".join(f'{i}. "{t}"' for i, t in enumerate(titles, 1))
    return f"""Suggest a short, generic title that encompasses all these specific titles:
{listing}

Respond with JSON only: {{"genericTitle": "<title>"}}"""


# ---------------------------------------------------------------------------
# Matcher
# ---------------------------------------------------------------------------


class SemanticMatcher:
    """Asks an external model whether titles name the same topic."""

    def __init__(self, config: AIConfig, runner: Runner | None = None) -> None:
        self.config = config
        self.runner: Runner = runner if runner is not None else ClaudeRunner(config)
        self.batch_size = max(config.batch_size, 2)

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def _batches(self, notes: Sequence[NoteInfo]) -> list[tuple[int, Sequence[NoteInfo]]]:
        return [
            (start, notes[start : start + self.batch_size])
            for start in range(0, len(notes), self.batch_size)
        ]

    def _ask(self, prompt: str, model: type[M]) -> M | None:
        raw = self.runner(prompt)
        if raw is None:
            return None
        decoded = decode_reply(raw, model)
        if isinstance(decoded, Err):
            logger.debug("Rejected reply (%s): %.200s", decoded.reason, raw)
            return None
        return decoded.value

    # ------------------------------------------------------------------

    def match_one(self, title: str, notes: Sequence[NoteInfo]) -> SemanticMatch | None:
        """Return the note *title* belongs to, or ``None``.

        Large candidate lists are sent in batches; the first batch that
        yields a match wins.
        """
        if not self.enabled or not notes or not title.strip():
            return None
        for _, batch in self._batches(notes):
            match = self._match_batch(title, batch)
            if match is not None:
                return match
        return None

    def _match_batch(self, title: str, notes: Sequence[NoteInfo]) -> SemanticMatch | None:
        reply = self._ask(match_prompt(title, notes), MatchReply)
        if reply is None or reply.match.index is None:
            return None
        index = reply.match.index
        if not 0 <= index < len(notes):
            logger.debug("Match index %d out of bounds (%d notes)", index, len(notes))
            return None
        generic_title = clean_title(reply.generic_title)
        if generic_title is None:
            logger.debug("Empty generic title in match reply")
            return None
        note = notes[index]
        return SemanticMatch(
            path=note.path,
            category=note.category,
            title=note.title,
            confidence=reply.match.confidence,
            generic_title=generic_title,
        )

    def group_all(self, notes: Sequence[NoteInfo]) -> list[DuplicateGroup]:
        """Partition *notes* into same-topic groups of two or more.

        Indices in the result refer to *notes*.  A note is never placed in
        more than one group; notes in different batches are never grouped.
        """
        if not self.enabled or len(notes) < 2:
            return []
        groups: list[DuplicateGroup] = []
        claimed: set[int] = set()
        for offset, batch in self._batches(notes):
            if len(batch) < 2:
                continue
            for group in self._group_batch(batch):
                indices = tuple(offset + i for i in group.indices)
                if claimed.intersection(indices):
                    logger.debug("Dropping group overlapping an earlier one: %s", indices)
                    continue
                claimed.update(indices)
                groups.append(
                    DuplicateGroup(indices=indices, notes=group.notes, generic_title=group.generic_title)
                )
        return groups

    def _group_batch(self, notes: Sequence[NoteInfo]) -> list[DuplicateGroup]:
        reply = self._ask(groups_prompt(notes), GroupsReply)
        if reply is None:
            return []
        groups: list[DuplicateGroup] = []
        for position, raw_indices in enumerate(reply.groups):
            indices = tuple(dict.fromkeys(raw_indices))
            if any(not 0 <= i < len(notes) for i in indices):
                logger.debug("Group %d has out-of-range indices: %s", position, raw_indices)
                continue
            if len(indices) < 2:
                continue
            members = tuple(notes[i] for i in indices)
            title = None
            if position < len(reply.generic_titles):
                title = clean_title(reply.generic_titles[position])
            groups.append(
                DuplicateGroup(indices=indices, notes=members, generic_title=title or members[0].title)
            )
        return groups

    def suggest_generic_title(self, titles: Sequence[str]) -> str:
        """A title covering all *titles*; falls back to the first one."""
        if not titles:
            return "Untitled"
        if len(titles) == 1 or not self.enabled:
            return titles[0]
        reply = self._ask(title_prompt(titles), TitleReply)
        if reply is None:
            return titles[0]
        return clean_title(reply.generic_title) or titles[0]

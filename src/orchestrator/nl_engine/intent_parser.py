"""Intent parser for natural language Drive commands.

Deterministic lexical router: an ordered table of
``OperationKind -> regex patterns -> extractor`` is scanned top to bottom and
the first matching pattern selects the primary action. A match always has
confidence 0.8; an utterance matching nothing falls back to ``search_files``
with confidence 0.3 and a clarification request.

Compound requests ("create a folder called Reports and share it with
bob@example.com") are split into clauses at connectives followed by an
action verb. The first clause yields the primary action; every later clause
that matches the table yields a secondary action with its own parameters.

Example:
    parser = IntentParser()
    intent = parser.parse("share budget.xlsx with alice@example.com", AgentContext())
    intent.primary_action  # OperationKind.share_file
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

from src.orchestrator.agent.tools import get_tool_schema, missing_required_parameters
from src.orchestrator.models.intent import AgentContext, OperationKind, ParsedIntent
from src.orchestrator.nl_engine.clarification import (
    DEFAULT_CLARIFICATION,
    build_clarification_questions,
)

MATCH_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.3

_FLAGS = re.IGNORECASE

Extractor = Callable[[str, AgentContext], dict[str, Any]]


@dataclass(frozen=True)
class IntentPattern:
    """One row of the intent table.

    Attributes:
        kind: Operation selected when any pattern matches.
        patterns: Regexes tried in order.
        extractor: Pulls operation parameters out of the matched clause.
    """

    kind: OperationKind
    patterns: tuple[re.Pattern[str], ...]
    extractor: Extractor

    def matches(self, text: str) -> bool:
        """True when any of the row's patterns matches the text."""
        return any(pattern.search(text) for pattern in self.patterns)


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, _FLAGS) for p in patterns)


# Extraction helpers

_EMAIL = re.compile(r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")
_DETERMINERS = r"(?:(?:the|a|an|my|our|this|that|new)\s+)*"
_NOUNS = r"(?:(?:file|document|doc|note|folder|directory)\s+)?"
_NAMED = r"(?:(?:called|named|titled)\s+)?"
_PRONOUNS = {"it", "this", "that", "them", "one", "the file", "the document", "the folder"}
_NAME_CLAUSE = re.compile(
    r"\b(?:called|named|titled)\s+([\"']?)(.+?)\1"
    r"(?=\s+(?:with|containing|that\s+says|saying|in|inside|under)\b|[.!?]?\s*$)",
    _FLAGS,
)
_CONTENT_CLAUSE = re.compile(
    r"\b(?:with\s+(?:the\s+)?(?:content|contents|text|body)|containing|that\s+says|saying|to\s+say)"
    r"\s*:?\s+(.+)$",
    _FLAGS,
)
_IN_FOLDER = re.compile(
    r"\b(?:in|inside|under|within)\s+(?:the\s+|my\s+)?([\"']?)([\w\- ]+?)\1\s+(?:folder|directory)\b",
    _FLAGS,
)
_ROLE = re.compile(r"\b(editor|writer|commenter|reader|viewer)s?\b", _FLAGS)
_ROLE_ALIASES = {"editor": "writer", "viewer": "reader"}


def _clean(value: Optional[str]) -> Optional[str]:
    """Strip quotes, whitespace and trailing punctuation from a capture."""
    if value is None:
        return None
    cleaned = value.strip().strip("\"'").strip()
    cleaned = re.sub(r"[.!?,;]+$", "", cleaned).strip().strip("\"'")
    return cleaned or None


def _reference(text: str, lead_ins: tuple[str, ...], stops: str = "with|to|into|for|from|as") -> Optional[str]:
    """Capture the file/folder reference following one of the lead-in phrases.

    Skips determiners, the object noun and "called/named" before capturing up
    to the next stop word or the end of the clause. Pronouns ("it", "this")
    count as no reference so later resolution can carry a prior result forward.
    """
    for lead in lead_ins:
        pattern = re.compile(
            lead + r"\s+" + _DETERMINERS + _NOUNS + _NAMED
            + r"([\"']?)(.+?)\1(?=\s+(?:" + stops + r")\b|[.!?]?\s*$)",
            _FLAGS,
        )
        match = pattern.search(text)
        if match:
            value = _clean(match.group(2))
            if value and value.lower() not in _PRONOUNS:
                return value
            return None
    return None


def _called(text: str) -> Optional[str]:
    match = _NAME_CLAUSE.search(text)
    return _clean(match.group(2)) if match else None


def _content(text: str) -> Optional[str]:
    match = _CONTENT_CLAUSE.search(text)
    return _clean(match.group(1)) if match else None


def _folder_hint(text: str) -> Optional[str]:
    match = _IN_FOLDER.search(text)
    return _clean(match.group(2)) if match else None


def _put(params: dict[str, Any], key: str, value: Optional[Any]) -> None:
    if value:
        params[key] = value


# Per-kind extractors


def _extract_list(text: str, context: AgentContext) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if re.search(r"\b(?:root|main)\b", text, _FLAGS):
        params["folderId"] = "root"
    elif re.search(r"\bcurrent\b", text, _FLAGS):
        params["folderId"] = context.current_folder or "root"
    else:
        _put(params, "folderId", _folder_hint(text))
    return params


def _extract_search(text: str, context: AgentContext) -> dict[str, Any]:
    params: dict[str, Any] = {}
    for pattern in (
        r"\b(?:search|find|look|locate)\b.*?\b(?:for|up|named|called|about)\s+(.+)$",
        r"\bwhere\b.*?\b(?:is|are)\s+(?:my|the)\s+(.+)$",
        r"\b(?:search|find|locate)\s+(.+)$",
    ):
        match = re.search(pattern, text, _FLAGS)
        if match:
            query = re.sub(
                r"^" + _DETERMINERS + r"(?:(?:files?|documents?|docs?)\s+)?"
                r"(?:(?:called|named|about|for)\s+)?",
                "",
                match.group(1).strip(),
                flags=_FLAGS,
            )
            _put(params, "query", _clean(query))
            break
    return params


def _extract_create_file(text: str, context: AgentContext) -> dict[str, Any]:
    params: dict[str, Any] = {}
    name = _called(text)
    if name is None:
        match = re.search(
            r"\b(?:create|make|write|save)\s+" + _DETERMINERS + _NOUNS
            + r"([\w\-]+\.[A-Za-z0-9]{1,5})\b",
            text,
            _FLAGS,
        )
        name = match.group(1) if match else None
    _put(params, "fileName", name)
    _put(params, "content", _content(text))
    _put(params, "folderId", _folder_hint(text))
    return params


def _extract_create_folder(text: str, context: AgentContext) -> dict[str, Any]:
    params: dict[str, Any] = {}
    name = _called(text)
    if name is None:
        match = re.search(
            r"\b(?:folder|directory)\s+(?!called\b|named\b|titled\b|in\b|inside\b|under\b)"
            r"([\"']?)(.+?)\1(?=\s+(?:in|inside|under)\b|[.!?]?\s*$)",
            text,
            _FLAGS,
        )
        name = _clean(match.group(2)) if match else None
    _put(params, "folderName", name)
    _put(params, "parentId", _folder_hint(text))
    return params


def _extract_read(text: str, context: AgentContext) -> dict[str, Any]:
    params: dict[str, Any] = {}
    _put(
        params,
        "fileId",
        _reference(text, (r"\bcontents?\s+of", r"\b(?:read|open|view|show)(?:\s+me)?")),
    )
    return params


def _extract_update(text: str, context: AgentContext) -> dict[str, Any]:
    params: dict[str, Any] = {}
    content = _content(text)
    if content is None:
        match = re.search(
            r"\b(?:add|append|write)\s+([\"']?)(.+?)\1\s+(?:to|into|in)\b", text, _FLAGS
        )
        content = _clean(match.group(2)) if match else None
    _put(params, "content", content)
    _put(
        params,
        "fileId",
        _reference(
            text,
            (r"\b(?:edit|modify|change|update)", r"\b(?:add|append|write)\b.+?\b(?:to|into|in)"),
            stops="with|containing|saying|to|so",
        ),
    )
    return params


def _extract_delete(text: str, context: AgentContext) -> dict[str, Any]:
    params: dict[str, Any] = {}
    _put(
        params,
        "fileId",
        _reference(text, (r"\b(?:delete|remove|trash|erase)", r"\bget\s+rid\s+of")),
    )
    return params


def _extract_share(text: str, context: AgentContext) -> dict[str, Any]:
    params: dict[str, Any] = {}
    email = _EMAIL.search(text)
    if email:
        params["email"] = email.group(1)
    _put(params, "fileId", _reference(text, (r"\b(?:share|send)",), stops="with|to"))
    role = _ROLE.search(text)
    if role:
        value = role.group(1).lower()
        params["role"] = _ROLE_ALIASES.get(value, value)
    return params


def _extract_details(text: str, context: AgentContext) -> dict[str, Any]:
    params: dict[str, Any] = {}
    _put(
        params,
        "fileId",
        _reference(
            text,
            (
                r"\b(?:details|info|information|metadata)\s+(?:about|for|of|on)",
                r"\b(?:size|date|owner)\s+of",
                r"\bhow\s+(?:big|large)\s+is",
            ),
        ),
    )
    return params


def _extract_move(text: str, context: AgentContext) -> dict[str, Any]:
    params: dict[str, Any] = {}
    _put(params, "fileId", _reference(text, (r"\b(?:move|relocate)",), stops="to|into"))
    match = re.search(
        r"\b(?:to|into)\s+(?:the\s+|my\s+)?([\"']?)(.+?)\1(?:\s+(?:folder|directory))?[.!?]?\s*$",
        text,
        _FLAGS,
    )
    if match:
        destination = _clean(match.group(2))
        if destination and destination.lower() in {"root", "main"}:
            destination = "root"
        _put(params, "folderId", destination)
    return params


def _extract_copy(text: str, context: AgentContext) -> dict[str, Any]:
    params: dict[str, Any] = {}
    _put(
        params,
        "fileId",
        _reference(text, (r"\bcopy\s+of", r"\b(?:copy|duplicate)"), stops="with|to|into|as|called|named"),
    )
    match = re.search(
        r"\b(?:as|called|named)\s+([\"']?)(.+?)\1[.!?]?\s*$", text, _FLAGS
    )
    if match:
        _put(params, "fileName", _clean(match.group(2)))
    return params


def _extract_upload(text: str, context: AgentContext) -> dict[str, Any]:
    params: dict[str, Any] = {}
    _put(params, "fileName", _called(text))
    _put(params, "folderId", _folder_hint(text))
    return params


# Ordered intent table: first matching row wins.
INTENT_TABLE: tuple[IntentPattern, ...] = (
    IntentPattern(
        OperationKind.list_files,
        _compile(
            r"\b(?:list|show|display|see|browse|explore)\b.*\b(?:files|folders|documents|docs|items|drive)\b",
            r"\bwhat\b.*\b(?:files|folders|documents)\b.*\b(?:have|in|are)\b",
            r"\bwhat(?:'s|\s+is)\s+in\s+my\s+drive\b",
        ),
        _extract_list,
    ),
    IntentPattern(
        OperationKind.search_files,
        _compile(
            r"\b(?:search|find|look|locate)\b.*\b(?:for|up|named|called)\b",
            r"\bwhere\b.*\b(?:is|are)\b.*\b(?:my|the)\b",
            r"\b(?:search|find|locate)\s+(?:my|the|a|all|any)\b",
        ),
        _extract_search,
    ),
    IntentPattern(
        OperationKind.create_file,
        _compile(
            r"\b(?:create|make|write|save|start|add)\s+(?:(?:a|an|the|new|empty|blank|text|google)\s+)*"
            r"(?:file|document|doc|note)s?\b",
            r"\b(?:create|make|write|save)\s+(?:(?:a|an|the|new)\s+)*[\w\-]+\.[A-Za-z0-9]{1,5}\b",
            r"\bnew\s+(?:file|document|doc|note)\b",
        ),
        _extract_create_file,
    ),
    IntentPattern(
        OperationKind.create_folder,
        _compile(
            r"\b(?:create|make|add|start)\s+(?:(?:a|an|the|new|empty)\s+)*(?:folder|directory)\b",
            r"\bnew\s+(?:folder|directory)\b",
            r"\borganize\b.*\bfiles?\b.*\binto\b.*\b(?:folder|directory)\b",
        ),
        _extract_create_folder,
    ),
    IntentPattern(
        OperationKind.read_file,
        _compile(
            r"\b(?:read|open|view)\b",
            r"\bshow\b.*\b(?:contents?|text)\b",
            r"\bwhat\b.*\b(?:file|document|doc)\b.*\b(?:contain|say)s?\b",
        ),
        _extract_read,
    ),
    IntentPattern(
        OperationKind.update_file,
        _compile(
            r"\b(?:edit|modify|change|update)\b.*\b(?:file|document|doc|[\w\-]+\.[A-Za-z0-9]{1,5})\b",
            r"\b(?:add|append|write)\b.*\b(?:to|into|in)\b.*\b(?:file|document|doc|[\w\-]+\.[A-Za-z0-9]{1,5})\b",
        ),
        _extract_update,
    ),
    IntentPattern(
        OperationKind.delete_file,
        _compile(
            r"\b(?:delete|remove|trash|erase)\b",
            r"\bget\s+rid\s+of\b",
        ),
        _extract_delete,
    ),
    IntentPattern(
        OperationKind.share_file,
        _compile(
            r"\b(?:share|send|give)\b.*\baccess\b.*\bto\b",
            r"\b(?:share|send)\b.*\bwith\b",
        ),
        _extract_share,
    ),
    IntentPattern(
        OperationKind.get_file_details,
        _compile(
            r"\b(?:details|info|information|metadata)\b.*\b(?:about|for|of|on)\b",
            r"\bwhat\b.*\bis\b.*\bthe\b.*\b(?:size|date|owner)\b.*\bof\b",
            r"\bhow\s+(?:big|large)\s+is\b",
        ),
        _extract_details,
    ),
    IntentPattern(
        OperationKind.move_file,
        _compile(r"\b(?:move|relocate)\b.*\b(?:to|into)\b"),
        _extract_move,
    ),
    IntentPattern(
        OperationKind.copy_file,
        _compile(r"\b(?:copy|duplicate)\b"),
        _extract_copy,
    ),
    IntentPattern(
        OperationKind.upload_file,
        _compile(r"\bupload\b"),
        _extract_upload,
    ),
)

_ACTION_VERBS = (
    r"list|show|display|browse|search|find|locate|create|make|write|read|open|view|"
    r"edit|update|modify|change|append|delete|remove|trash|erase|share|send|give|"
    r"move|relocate|copy|duplicate|upload|get"
)
_CLAUSE_SPLIT = re.compile(
    r"(?:\s*[,;]\s*|\s+)(?:and\s+then|and\s+also|and|then|also)\s+"
    r"(?=(?:please\s+)?(?:" + _ACTION_VERBS + r")\b)",
    _FLAGS,
)


def split_clauses(utterance: str) -> list[str]:
    """Split a compound request at connectives that introduce a new action.

    Dictated content runs to the end of the utterance, so nothing after a
    content marker ("with content", "saying", ...) is split off.
    """
    marker = _CONTENT_CLAUSE.search(utterance)
    cut = marker.start() if marker else len(utterance)
    head, tail = utterance[:cut], utterance[cut:]
    clauses = [c.strip() for c in _CLAUSE_SPLIT.split(head)]
    if tail:
        clauses[-1] = f"{clauses[-1]} {tail}".strip()
    return [c for c in clauses if c]


class IntentParser:
    """Converts an utterance into a ParsedIntent. Pure function of text + context."""

    def __init__(self, table: tuple[IntentPattern, ...] = INTENT_TABLE) -> None:
        self._table = table

    def _match(self, text: str) -> Optional[IntentPattern]:
        marker = _CONTENT_CLAUSE.search(text)
        if marker and text[: marker.start()].strip():
            text = text[: marker.start()]
        for row in self._table:
            if row.matches(text):
                return row
        return None

    def parse(self, utterance: str, context: Optional[AgentContext] = None) -> ParsedIntent:
        """Parse an utterance.

        Args:
            utterance: Raw typed or transcribed request.
            context: Conversation context (used for "current folder" references).

        Returns:
            ParsedIntent. Unmatched utterances fall back to search_files with
            confidence 0.3 and a clarification request.
        """
        context = context or AgentContext()
        text = (utterance or "").strip()
        clauses = split_clauses(text) or [text]

        primary = self._match(clauses[0])
        if primary is None:
            return ParsedIntent(
                primary_action=OperationKind.search_files,
                parameters={"query": utterance},
                confidence=FALLBACK_CONFIDENCE,
                requires_clarification=True,
                clarification_questions=[DEFAULT_CLARIFICATION],
            )

        parameters = primary.extractor(clauses[0], context)

        secondary_actions: list[OperationKind] = []
        secondary_parameters: list[dict[str, Any]] = []
        for clause in clauses[1:]:
            row = self._match(clause)
            if row is None:
                continue
            secondary_actions.append(row.kind)
            secondary_parameters.append(row.extractor(clause, context))

        if get_tool_schema(primary.kind) is None:
            questions = [DEFAULT_CLARIFICATION]
        else:
            questions = build_clarification_questions(
                missing_required_parameters(primary.kind, parameters)
            )

        return ParsedIntent(
            primary_action=primary.kind,
            secondary_actions=secondary_actions,
            parameters=parameters,
            secondary_parameters=secondary_parameters,
            confidence=MATCH_CONFIDENCE,
            requires_clarification=bool(questions),
            clarification_questions=questions,
        )

"""Natural language engine for parsing Drive requests.

Provides the deterministic intent parser and the clarification question
templates used when required parameters are missing.
"""

from src.orchestrator.nl_engine.clarification import (
    CLARIFICATION_TEMPLATES,
    DEFAULT_CLARIFICATION,
    build_clarification_questions,
    format_clarification_message,
)
from src.orchestrator.nl_engine.intent_parser import (
    FALLBACK_CONFIDENCE,
    INTENT_TABLE,
    MATCH_CONFIDENCE,
    IntentParser,
    IntentPattern,
    split_clauses,
)

__all__ = [
    "CLARIFICATION_TEMPLATES",
    "DEFAULT_CLARIFICATION",
    "build_clarification_questions",
    "format_clarification_message",
    "FALLBACK_CONFIDENCE",
    "INTENT_TABLE",
    "MATCH_CONFIDENCE",
    "IntentParser",
    "IntentPattern",
    "split_clauses",
]
